"""
Resource and Open-Hours data models for the Availability Engine.

This module defines the 'Supply' side of slot finding:
1. Resource references (Providers, Rooms, Locations, Equipment)
2. Resource metadata (tenant ownership, active status, capacity)
3. Open-hours templates (weekly hours + date-specific exceptions)
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import date, time


class ResourceKind(str, Enum):
    """Categories of schedulable resources."""
    PROVIDER = "Provider"
    ROOM = "Room"
    LOCATION = "Location"
    EQUIPMENT = "Equipment"


class ResourceRef(BaseModel):
    """
    Identifies a schedulable resource.
    The engine only holds references; resources are looked up, never owned.
    """
    model_config = ConfigDict(frozen=True)

    kind: ResourceKind = Field(description="Resource category")
    id: str = Field(min_length=1, description="Opaque identifier in the store")

    @property
    def key(self) -> str:
        """Stable string key, e.g. 'Provider:prov_01'."""
        return f"{self.kind.value}:{self.id}"

    def __str__(self) -> str:
        return self.key


class ResourceMetadata(BaseModel):
    """What the store knows about a resource: existence, status and owner."""
    resource: ResourceRef
    organization_id: str = Field(description="Owning tenant")
    name: str = Field(default="", description="Display name")
    is_active: bool = Field(default=True)
    is_deleted: bool = Field(default=False, description="Soft-deleted flag")

    # Capacity Constraint
    capacity: int = Field(
        default=1,
        ge=1,
        description="How many bookings can run simultaneously (e.g. a 2-bay gym)"
    )
    location_id: Optional[str] = Field(
        default=None,
        description="Home location for providers, rooms and equipment"
    )


class DayHours(BaseModel):
    """
    Opening hours for one weekday (local wall clock).
    Not validated here: malformed store data is handled as 'closed' at resolve time.
    """
    open_time: time = Field(description="Opening time")
    close_time: time = Field(description="Closing time")


class DateException(BaseModel):
    """A date-specific override of the weekly template (holiday, extended hours)."""
    date: date
    is_available: bool = Field(default=False, description="False blocks the whole date")
    override_start: Optional[time] = Field(default=None, description="Replaces the weekly open time")
    override_end: Optional[time] = Field(default=None, description="Replaces the weekly close time")


class OpenHoursTemplate(BaseModel):
    """
    Recurring weekly availability of a resource, overridable per date.
    Weekdays use 0=Monday, 6=Sunday. A missing weekday means closed.
    """
    weekly: Dict[int, Optional[DayHours]] = Field(
        default_factory=dict,
        description="Standard weekly operating hours"
    )
    exceptions: List[DateException] = Field(
        default_factory=list,
        description="Date-specific overrides (take precedence over 'weekly')"
    )
    timezone: Optional[str] = Field(
        default=None,
        description="IANA zone of the wall-clock times, used with aware datetimes"
    )

    @field_validator('weekly')
    @classmethod
    def validate_weekdays(cls, v):
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Weekday {day} out of range (0=Monday, 6=Sunday)")
        return v

    def exception_for(self, day: date) -> Optional[DateException]:
        """Return the exception registered for a date, the last one winning."""
        found = None
        for exc in self.exceptions:
            if exc.date == day:
                found = exc
        return found

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "weekly": {
                "0": {"open_time": "09:00:00", "close_time": "17:00:00"},
                "1": {"open_time": "09:00:00", "close_time": "17:00:00"}
            },
            "exceptions": [
                {"date": "2026-12-25", "is_available": False}
            ],
            "timezone": "America/Chicago"
        }
    })
