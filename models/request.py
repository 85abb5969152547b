"""
Request data models for the Availability Engine.

A SlotRequest describes WHAT must be free (resources), for HOW LONG (duration),
WHEN to look (search window + hard day/time filters), and WHAT the requester
would like (soft preferences used only for ranking).
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import date, time

from .resource import ResourceRef
from .schedule import TimeInterval


class TimeRange(BaseModel):
    """A wall-clock range within a day, [start_time, end_time)."""
    start_time: time
    end_time: time

    def contains_time(self, value: time) -> bool:
        return self.start_time <= value < self.end_time


class TimeBand(str, Enum):
    """Time-of-day bands with fixed boundaries."""
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"

    @property
    def range(self) -> TimeRange:
        return TIME_BAND_RANGES[self]


TIME_BAND_RANGES = {
    TimeBand.MORNING: TimeRange(start_time=time(9, 0), end_time=time(12, 0)),
    TimeBand.AFTERNOON: TimeRange(start_time=time(12, 0), end_time=time(17, 0)),
    TimeBand.EVENING: TimeRange(start_time=time(17, 0), end_time=time(19, 0)),
}


class ScoreWeights(BaseModel):
    """Explicit, documented ranking weights. Defaults are the house values."""
    base: float = Field(default=50.0)
    preferred_date: float = Field(default=30.0, description="Bonus for the exact anchor date")
    time_band: float = Field(default=20.0, description="Bonus for starting inside the requested band")
    distance_penalty: float = Field(default=2.0, description="Per-hour penalty from the ideal hour (anchor date only)")
    ideal_hour: float = Field(default=10.0, ge=0, lt=24)


class SlotPreferences(BaseModel):
    """Soft preferences: they reorder results, never filter them."""
    anchor_date: Optional[date] = Field(default=None, description="Preferred calendar date")
    time_band: Optional[TimeBand] = Field(default=None)
    timezone: Optional[str] = Field(
        default=None,
        description="Zone used to read a candidate's local date/time when datetimes are aware"
    )
    weights: Optional[ScoreWeights] = Field(default=None, description="Ordering weight hints")


class SlotRequest(BaseModel):
    """
    A single availability query.
    Validation of business rules (positive duration, non-empty resources...)
    happens in the engine so it can raise domain errors before any I/O.
    """

    # --- What must be free ---
    resources: List[ResourceRef] = Field(
        default_factory=list,
        description="Resources that must be simultaneously free"
    )
    duration_minutes: int = Field(description="Length of the appointment")

    # --- Where to look ---
    search_window: TimeInterval
    granularity_minutes: Optional[int] = Field(
        default=None,
        description="Step between candidate start times. None uses the engine default."
    )

    # Hard filters (Logic Gates)
    days_of_week: Optional[List[int]] = Field(
        default=None,
        description="Only these weekdays (0=Monday, 6=Sunday). None means every day."
    )
    time_range: Optional[TimeRange] = Field(
        default=None,
        description="Narrows each day's open hours to this clock range"
    )
    future_only: bool = Field(
        default=False,
        description="Exclude candidates starting before the caller-supplied 'now'"
    )

    # --- Output control ---
    max_results: Optional[int] = Field(
        default=None,
        description="Cap on candidates produced. None uses the engine default."
    )
    preferences: SlotPreferences = Field(default_factory=SlotPreferences)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "resources": [
                {"kind": "Provider", "id": "prov_01"},
                {"kind": "Room", "id": "room_2"},
                {"kind": "Location", "id": "loc_main"}
            ],
            "duration_minutes": 30,
            "search_window": {"start": "2026-10-19T08:00:00", "end": "2026-10-23T18:00:00"},
            "granularity_minutes": 15,
            "max_results": 10,
            "preferences": {"anchor_date": "2026-10-20", "time_band": "Morning"}
        }
    })
