"""Shared fixtures: a small single-tenant practice in an in-memory store."""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import pytest

from models import (
    Appointment,
    AppointmentStatus,
    BusyInterval,
    BusyReason,
    DayHours,
    OpenHoursTemplate,
    ResourceKind,
    ResourceMetadata,
    ResourceRef,
    SlotRequest,
    TimeInterval
)
from scheduler.config import EngineSettings
from scheduler.service import SchedulingService
from scheduler.store import InMemoryCalendarStore

ORG = "org_main"

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)
TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)

PROVIDER = ResourceRef(kind=ResourceKind.PROVIDER, id="prov_01")
ROOM = ResourceRef(kind=ResourceKind.ROOM, id="room_01")
LOCATION = ResourceRef(kind=ResourceKind.LOCATION, id="loc_main")


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


def window(day: date, start_hour: int, end_hour: int) -> TimeInterval:
    return TimeInterval(start=at(day, start_hour), end=at(day, end_hour))


def weekday_hours(open_hour: int = 9, close_hour: int = 17, days: Iterable[int] = range(5)) -> OpenHoursTemplate:
    return OpenHoursTemplate(
        weekly={d: DayHours(open_time=time(open_hour, 0), close_time=time(close_hour, 0)) for d in days}
    )


def book(store: InMemoryCalendarStore, appt_id: str, start: datetime, minutes: int, *resources: ResourceRef,
         status: AppointmentStatus = AppointmentStatus.CONFIRMED) -> Appointment:
    appointment = Appointment(
        id=appt_id,
        start=start,
        end=start + timedelta(minutes=minutes),
        status=status,
        resources=list(resources)
    )
    store.add_appointment(appointment)
    return appointment


def block(store: InMemoryCalendarStore, resource: ResourceRef, start: datetime, end: datetime) -> BusyInterval:
    busy = BusyInterval(start=start, end=end, resource=resource, reason=BusyReason.BLOCK, source_id="blk")
    store.add_block(busy)
    return busy


def add_resource(store: InMemoryCalendarStore, ref: ResourceRef, template: Optional[OpenHoursTemplate] = None,
                 **meta) -> None:
    meta.setdefault("organization_id", ORG)
    meta.setdefault("name", ref.id)
    store.add_resource(ResourceMetadata(resource=ref, **meta), template)


def slot_request(resources, search_window: TimeInterval, duration: int = 30, granularity: int = 30,
                 **kwargs) -> SlotRequest:
    return SlotRequest(
        resources=list(resources),
        duration_minutes=duration,
        search_window=search_window,
        granularity_minutes=granularity,
        **kwargs
    )


def starts(slots) -> list:
    return [s.start for s in slots]


@pytest.fixture
def store():
    """Provider, room and location, all open Mon-Fri 09:00-17:00."""
    store = InMemoryCalendarStore()
    add_resource(store, PROVIDER, weekday_hours(), location_id=LOCATION.id)
    add_resource(store, ROOM, weekday_hours(), location_id=LOCATION.id)
    add_resource(store, LOCATION, weekday_hours())
    store.assign_provider(LOCATION.id, PROVIDER)
    return store


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def service(store, settings):
    return SchedulingService(store, ORG, settings=settings)


@pytest.fixture
def engine(service):
    return service.engine
