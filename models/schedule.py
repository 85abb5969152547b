"""
Schedule data models for the Availability Engine.

This module defines the time-based values the engine reasons about:
intervals, busy blocks, stored appointments and the candidate slots it returns.
"""

from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime, timedelta

from .resource import ResourceRef

# Zero-length busy blocks are widened by this amount so they still occupy time.
BUSY_EPSILON = timedelta(microseconds=1)


class TimeInterval(BaseModel):
    """
    Half-open time range [start, end).
    Both ends must share the same kind of datetime (both naive or both aware).
    """
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def validate_bounds(self):
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise ValueError("Interval start and end must both be naive or both be timezone-aware")
        if self.end < self.start:
            raise ValueError("Interval end cannot be before start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "TimeInterval") -> bool:
        # Standard Overlap Logic: StartA < EndB and StartB < EndA
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end


class BusyReason(str, Enum):
    """Why a resource is committed."""
    APPOINTMENT = "Appointment"
    BLOCK = "Block"


class BusyInterval(TimeInterval):
    """A time range during which a resource is already committed."""
    resource: ResourceRef
    reason: BusyReason = Field(default=BusyReason.APPOINTMENT)
    source_id: Optional[str] = Field(default=None, description="Appointment or block ID")
    note: str = Field(default="")

    @model_validator(mode='before')
    @classmethod
    def widen_zero_length(cls, data):
        """Treat a zero-length block as [start, start + epsilon)."""
        if isinstance(data, dict):
            start, end = data.get('start'), data.get('end')
            if isinstance(start, str):
                start = datetime.fromisoformat(start)
            if isinstance(end, str):
                end = datetime.fromisoformat(end)
            if isinstance(start, datetime) and isinstance(end, datetime) and start == end:
                data = {**data, 'start': start, 'end': end + BUSY_EPSILON}
        return data


class AppointmentStatus(str, Enum):
    """Lifecycle status of a stored appointment."""
    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    CHECKED_IN = "CheckedIn"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"


# Statuses that release the booked time back to the calendar.
RELEASED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


class Appointment(BaseModel):
    """
    A booking as stored by the surrounding application.
    The engine only reads these (through the store) to derive busy intervals.
    """
    id: str = Field(description="Unique identifier")
    start: datetime
    end: datetime
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    resources: List[ResourceRef] = Field(
        default_factory=list,
        description="Every resource the booking occupies (provider, room, location, equipment)"
    )

    @property
    def occupies_time(self) -> bool:
        return self.status not in RELEASED_STATUSES

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "appt_0001",
            "start": "2026-10-19T10:00:00",
            "end": "2026-10-19T10:30:00",
            "status": "Confirmed",
            "resources": [
                {"kind": "Provider", "id": "prov_01"},
                {"kind": "Room", "id": "room_2"}
            ]
        }
    })


class CandidateSlot(BaseModel):
    """
    A computed, not-yet-booked interval proposed as available.
    Produced fresh per request and never persisted by the engine.
    """
    interval: TimeInterval
    score: float = Field(default=0.0, description="Desirability (higher is better)")
    matched_preferences: List[str] = Field(default_factory=list)

    # --- Resource Allocation ---
    resources: List[ResourceRef] = Field(
        default_factory=list,
        description="Resources that are simultaneously free for this interval"
    )
    location_id: Optional[str] = Field(default=None, description="Location searched, if any")

    @property
    def start(self) -> datetime:
        return self.interval.start

    @property
    def end(self) -> datetime:
        return self.interval.end

    def resource_of(self, kind) -> Optional[ResourceRef]:
        """First resource of the given kind, e.g. the provider of the slot."""
        for ref in self.resources:
            if ref.kind == kind:
                return ref
        return None
