"""Tests for the availability engine and the service entry points."""

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from models import (
    AppointmentStatus,
    DayHours,
    OpenHoursTemplate,
    ResourceKind,
    ResourceRef,
    SlotRequest,
    TimeInterval,
    TimeRange
)
from scheduler.cancellation import CancellationToken
from scheduler.config import EngineSettings
from scheduler.errors import (
    CancelledError,
    InvalidDurationError,
    InvalidRequestError,
    ResourceNotFoundError,
    SlotConflictError
)
from scheduler.service import SchedulingService
from scheduler.store import InMemoryCalendarStore

from conftest import (
    LOCATION,
    MONDAY,
    ORG,
    PROVIDER,
    ROOM,
    SATURDAY,
    add_resource,
    at,
    block,
    book,
    slot_request,
    starts,
    weekday_hours,
    window
)

UTC = timezone.utc
CHICAGO = ZoneInfo("America/Chicago")


class TestFindAvailableSlots:
    """Tests for single-location slot search."""

    def test_existing_appointment_is_skipped(self, service, store):
        """Test the classic morning: one booking at 10:00 removes exactly that slot."""
        book(store, "appt_1", at(MONDAY, 10), 30, PROVIDER)
        request = slot_request([PROVIDER], window(MONDAY, 9, 12))

        slots = service.find_available_slots(request)

        assert starts(slots) == [at(MONDAY, 9), at(MONDAY, 9, 30), at(MONDAY, 10, 30),
                                 at(MONDAY, 11), at(MONDAY, 11, 30)]

    def test_location_block_excludes_slot(self, service, store):
        """Test that a location-wide block wins over a free provider calendar."""
        block(store, LOCATION, at(MONDAY, 12), at(MONDAY, 13))
        request = slot_request([PROVIDER, LOCATION], window(MONDAY, 9, 17), duration=60, granularity=60)

        slots = service.find_available_slots(request)

        assert at(MONDAY, 12) not in starts(slots)
        assert at(MONDAY, 11) in starts(slots)
        assert at(MONDAY, 13) in starts(slots)
        assert all(s.location_id == LOCATION.id for s in slots)

    def test_every_resource_must_be_free(self, service, store):
        """Test that a booked room removes the slot for the provider too."""
        book(store, "room_busy", at(MONDAY, 9), 30, ROOM)
        request = slot_request([PROVIDER, ROOM], window(MONDAY, 9, 10))

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9, 30)]

    def test_capacity_allows_parallel_bookings(self, service, store):
        """Test that a room with capacity 2 stays available with one booking."""
        gym = ResourceRef(kind=ResourceKind.ROOM, id="gym")
        add_resource(store, gym, capacity=2)
        book(store, "gym_1", at(MONDAY, 9), 30, gym)
        request = slot_request([PROVIDER, gym], window(MONDAY, 9, 10))

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9), at(MONDAY, 9, 30)]

    def test_capacity_counts_simultaneous_bookings_only(self, service, store):
        """Test that consecutive bookings leave the second bay of a two-bay room free."""
        gym = ResourceRef(kind=ResourceKind.ROOM, id="gym")
        add_resource(store, gym, capacity=2)
        book(store, "gym_1", at(MONDAY, 9), 30, gym)
        book(store, "gym_2", at(MONDAY, 9, 30), 30, gym)
        request = slot_request([PROVIDER, gym], window(MONDAY, 9, 10), duration=60, granularity=60)

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9)]
        assert service.has_conflict(TimeInterval(start=at(MONDAY, 9), end=at(MONDAY, 10)), [gym]) is False

    def test_cancelled_booking_frees_time(self, service, store):
        """Test that a cancelled appointment does not block."""
        book(store, "cx", at(MONDAY, 9), 30, PROVIDER, status=AppointmentStatus.CANCELLED)
        request = slot_request([PROVIDER], window(MONDAY, 9, 10))

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9), at(MONDAY, 9, 30)]

    def test_future_only_uses_supplied_now(self, service):
        """Test that slots before 'now' are excluded."""
        request = slot_request([PROVIDER], window(MONDAY, 9, 12), granularity=15, future_only=True)

        slots = service.find_available_slots(request, now=at(MONDAY, 10, 10))

        assert min(starts(slots)) == at(MONDAY, 10, 15)

    def test_max_results_caps_output(self, service):
        """Test that only the earliest max_results slots are produced."""
        request = slot_request([PROVIDER], window(MONDAY, 9, 17), max_results=3)

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9), at(MONDAY, 9, 30), at(MONDAY, 10)]

    def test_hard_filters(self, service):
        """Test weekday and clock-range filters together."""
        request = slot_request(
            [PROVIDER],
            TimeInterval(start=at(MONDAY, 0), end=at(SATURDAY, 0)),
            days_of_week=[2],
            time_range=TimeRange(start_time=time(14, 0), end_time=time(15, 0))
        )

        slots = service.find_available_slots(request)

        assert len(slots) == 2
        assert all(s.start.weekday() == 2 and time(14, 0) <= s.start.time() < time(15, 0) for s in slots)

    def test_results_are_deterministic(self, service, store):
        """Test that identical inputs give identical output."""
        book(store, "appt_1", at(MONDAY, 10), 30, PROVIDER)
        request = slot_request([PROVIDER, ROOM, LOCATION], window(MONDAY, 9, 17))

        first = service.find_available_slots(request, now=at(MONDAY, 8))
        second = service.find_available_slots(request, now=at(MONDAY, 8))

        assert [s.model_dump() for s in first] == [s.model_dump() for s in second]

    def test_duplicate_resources_are_ignored(self, service):
        """Test that listing a resource twice does not change the result."""
        once = slot_request([PROVIDER], window(MONDAY, 9, 10))
        twice = slot_request([PROVIDER, PROVIDER], window(MONDAY, 9, 10))

        assert starts(service.find_available_slots(once)) == starts(service.find_available_slots(twice))

    def test_unknown_resource(self, service):
        """Test that a missing resource fails the whole request."""
        ghost = ResourceRef(kind=ResourceKind.ROOM, id="ghost")

        with pytest.raises(ResourceNotFoundError):
            service.find_available_slots(slot_request([PROVIDER, ghost], window(MONDAY, 9, 10)))

    def test_cancelled_token(self, engine):
        """Test that a cancelled token stops the search."""
        token = CancellationToken()
        token.cancel("client went away")

        with pytest.raises(CancelledError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12)), cancel=token)


class TestMostConstrained:
    """Tests for choosing the generating calendar."""

    def test_tightest_calendar_generates(self, engine, store):
        """Test that the calendar with the fewest open minutes drives generation."""
        store.set_template(ROOM, OpenHoursTemplate(weekly={0: DayHours(open_time=time(14, 0), close_time=time(15, 0))}))
        request = slot_request([PROVIDER, ROOM], window(MONDAY, 0, 23))
        calendars = engine.load_calendars([PROVIDER, ROOM], request.search_window)

        assert engine._most_constrained(calendars, request).resource == ROOM
        assert starts(engine.find_available_slots(request)) == [at(MONDAY, 14), at(MONDAY, 14, 30)]

    def test_tie_prefers_provider(self, engine):
        """Test that equally open calendars fall back to the provider."""
        request = slot_request([LOCATION, ROOM, PROVIDER], window(MONDAY, 0, 23))
        calendars = engine.load_calendars(request.resources, request.search_window)

        assert engine._most_constrained(calendars, request).resource == PROVIDER


class TestValidation:
    """Tests for request validation before any store access."""

    def test_empty_resources(self, engine):
        """Test that a request needs at least one resource."""
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([], window(MONDAY, 9, 12)))

    def test_non_positive_duration(self, engine):
        """Test that zero duration is rejected before the unknown resource is looked up."""
        ghost = ResourceRef(kind=ResourceKind.PROVIDER, id="ghost")

        with pytest.raises(InvalidDurationError):
            engine.find_available_slots(slot_request([ghost], window(MONDAY, 9, 12), duration=0))

    def test_empty_window(self, engine):
        """Test that a window must end after it starts."""
        empty = TimeInterval(start=at(MONDAY, 9), end=at(MONDAY, 9))

        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], empty))

    def test_future_only_requires_now(self, engine):
        """Test that the clock is never read implicitly."""
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12), future_only=True))

    def test_bad_granularity_and_cap(self, engine):
        """Test the remaining numeric checks."""
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12), granularity=0))
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12), max_results=0))

    def test_bad_filters(self, engine):
        """Test weekday and clock-range checks."""
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12), days_of_week=[7]))
        inverted = TimeRange(start_time=time(12, 0), end_time=time(9, 0))
        with pytest.raises(InvalidRequestError):
            engine.find_available_slots(slot_request([PROVIDER], window(MONDAY, 9, 12), time_range=inverted))


class TestAlternatives:
    """Tests for searching past the requested window."""

    def test_returns_window_slots_when_present(self, service):
        """Test that alternatives are only used when the window is empty."""
        request = slot_request([PROVIDER], window(MONDAY, 9, 10))

        assert starts(service.find_alternative_slots(request)) == [at(MONDAY, 9), at(MONDAY, 9, 30)]

    def test_searches_following_days(self, service):
        """Test that a closed Saturday rolls over to Monday."""
        saturday = TimeInterval(start=at(SATURDAY, 0), end=at(SATURDAY, 23, 59))
        request = slot_request([PROVIDER], saturday, max_results=2)

        slots = service.find_alternative_slots(request)

        assert len(slots) == 2
        assert all(s.start.weekday() == 0 and s.start > saturday.end for s in slots)

    def test_zero_extra_days_searches_nothing_more(self, service):
        """Test that an explicit zero is honoured rather than replaced by the default."""
        saturday = TimeInterval(start=at(SATURDAY, 0), end=at(SATURDAY, 23, 59))
        request = slot_request([PROVIDER], saturday, max_results=2)

        assert service.find_alternative_slots(request, extra_days=0) == []


class TestConflicts:
    """Tests for commit-time re-validation."""

    def test_has_conflict(self, service, store):
        """Test overlapping and touching candidates."""
        book(store, "appt_1", at(MONDAY, 10), 30, PROVIDER)

        taken = TimeInterval(start=at(MONDAY, 10, 15), end=at(MONDAY, 10, 45))
        after = TimeInterval(start=at(MONDAY, 10, 30), end=at(MONDAY, 11))

        assert service.has_conflict(taken, [PROVIDER, ROOM]) is True
        assert service.has_conflict(after, [PROVIDER, ROOM]) is False

    def test_empty_candidate(self, service):
        """Test that a zero-length candidate is an invalid duration."""
        point = TimeInterval(start=at(MONDAY, 10), end=at(MONDAY, 10))

        with pytest.raises(InvalidDurationError):
            service.has_conflict(point, [PROVIDER])

    def test_verify_slot_raises_with_conflicts(self, service, store):
        """Test that a taken slot raises SlotConflictError naming the resource."""
        book(store, "late_booking", at(MONDAY, 10), 30, ROOM)
        candidate = TimeInterval(start=at(MONDAY, 10), end=at(MONDAY, 10, 30))

        with pytest.raises(SlotConflictError) as exc_info:
            service.verify_slot(candidate, [PROVIDER, ROOM])

        assert exc_info.value.resource == ROOM
        assert [b.source_id for b in exc_info.value.conflicts] == ["late_booking"]

    def test_verify_slot_passes_when_free(self, service):
        """Test that a free slot verifies silently."""
        candidate = TimeInterval(start=at(MONDAY, 10), end=at(MONDAY, 10, 30))

        assert service.verify_slot(candidate, [PROVIDER, ROOM]) is None


class TestRequestDefaults:
    """Tests for filling unset request fields from the engine settings."""

    def test_settings_supply_granularity_and_cap(self, store):
        """Test that a request without granularity or cap follows the configured defaults."""
        settings = EngineSettings(default_max_results=2, default_granularity_minutes=60)
        service = SchedulingService(store, ORG, settings=settings)
        request = SlotRequest(resources=[PROVIDER], duration_minutes=30, search_window=window(MONDAY, 9, 17))

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9), at(MONDAY, 10)]

    def test_explicit_values_win(self, store):
        """Test that request fields override the settings."""
        settings = EngineSettings(default_max_results=2, default_granularity_minutes=60)
        service = SchedulingService(store, ORG, settings=settings)
        request = slot_request([PROVIDER], window(MONDAY, 9, 17), granularity=30, max_results=3)

        assert starts(service.find_available_slots(request)) == [at(MONDAY, 9), at(MONDAY, 9, 30), at(MONDAY, 10)]

    def test_caller_request_is_not_modified(self, service):
        """Test that defaults are applied to a copy."""
        request = SlotRequest(resources=[PROVIDER], duration_minutes=30, search_window=window(MONDAY, 9, 10))

        service.find_available_slots(request)

        assert request.granularity_minutes is None
        assert request.max_results is None


class TestTimezones:
    """Tests for aware search windows over templates in a named zone."""

    @pytest.fixture
    def chicago_service(self, settings):
        store = InMemoryCalendarStore()
        add_resource(store, PROVIDER, OpenHoursTemplate(weekly=weekday_hours().weekly, timezone="America/Chicago"))
        return SchedulingService(store, ORG, settings=settings), store

    def test_local_hours_and_utc_bookings(self, chicago_service):
        """Test that a 15:00 UTC booking blocks 10:00 Chicago time."""
        service, store = chicago_service
        book(store, "utc_appt", datetime(2026, 10, 19, 15, 0, tzinfo=UTC), 60, PROVIDER)
        search = TimeInterval(start=datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
                              end=datetime(2026, 10, 20, 0, 0, tzinfo=UTC))

        slots = service.find_available_slots(slot_request([PROVIDER], search, duration=60, granularity=60))

        assert [s.start.astimezone(CHICAGO).hour for s in slots] == [9, 11, 12, 13, 14, 15, 16]
        assert slots[0].start == datetime(2026, 10, 19, 14, 0, tzinfo=UTC)

    def test_future_only_with_aware_now(self, chicago_service):
        """Test that an aware 'now' cuts the local grid at the next step."""
        service, _ = chicago_service
        search = TimeInterval(start=datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
                              end=datetime(2026, 10, 20, 0, 0, tzinfo=UTC))
        request = slot_request([PROVIDER], search, duration=60, granularity=60, future_only=True)

        slots = service.find_available_slots(request, now=datetime(2026, 10, 19, 16, 30, tzinfo=UTC))

        assert slots[0].start.astimezone(CHICAGO).hour == 12
        assert slots[0].start == datetime(2026, 10, 19, 17, 0, tzinfo=UTC)
