"""
Waitlist data models for the Availability Engine.

A waitlist entry is the 'Demand' side: a standing request that is matched
repeatedly against future availability until the caller deactivates it.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import datetime

from .resource import ResourceRef
from .request import TimeBand, TimeRange
from .schedule import CandidateSlot


class WaitlistPriority(str, Enum):
    """How urgently a waitlisted patient needs a slot."""
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        """Higher rank is served first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    WaitlistPriority.LOW: 0,
    WaitlistPriority.NORMAL: 1,
    WaitlistPriority.HIGH: 2,
    WaitlistPriority.URGENT: 3,
}


class WaitlistEntry(BaseModel):
    """
    A standing request for an appointment.
    The engine never changes 'is_active'; it only reports matches.
    """

    # --- Core Identity ---
    id: str = Field(description="Unique identifier")
    resources: List[ResourceRef] = Field(
        min_length=1,
        description="Resources the appointment needs (normally at least the provider)"
    )
    duration_minutes: int = Field(ge=5, le=480)

    # --- Preferences (applied as hard filters when matching) ---
    preferred_days: List[int] = Field(
        default_factory=list,
        description="Weekdays the patient can attend (0=Monday). Empty means any day."
    )
    preferred_time_band: Optional[TimeBand] = Field(default=None)
    preferred_time_range: Optional[TimeRange] = Field(
        default=None,
        description="Explicit clock range; wins over the band when both are set"
    )

    # --- Lifecycle ---
    priority: WaitlistPriority = Field(default=WaitlistPriority.NORMAL)
    created_at: datetime
    expires_at: Optional[datetime] = Field(default=None)
    is_active: bool = Field(default=True)

    @field_validator('preferred_days')
    @classmethod
    def validate_days(cls, v):
        if any(not 0 <= d <= 6 for d in v):
            raise ValueError("preferred_days must be weekdays between 0 (Monday) and 6 (Sunday)")
        return v

    @model_validator(mode='after')
    def validate_range(self):
        rng = self.preferred_time_range
        if rng and rng.end_time <= rng.start_time:
            raise ValueError("Preferred time range end must be after its start")
        return self

    def is_open_at(self, now: datetime) -> bool:
        """Active and not expired at 'now'."""
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "wl_0042",
            "resources": [{"kind": "Provider", "id": "prov_01"}],
            "duration_minutes": 30,
            "preferred_days": [1, 3],
            "preferred_time_band": "Morning",
            "priority": "High",
            "created_at": "2026-10-01T08:15:00"
        }
    })


class WaitlistMatch(BaseModel):
    """Slots found for one entry (best first)."""
    entry: WaitlistEntry
    matches: List[CandidateSlot] = Field(default_factory=list)


class WaitlistReport(BaseModel):
    """
    Outcome of a waitlist pass.
    Unmatched entries are listed separately so the caller can decide on escalation.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    matched: List[WaitlistMatch] = Field(default_factory=list)
    unmatched: List[WaitlistEntry] = Field(default_factory=list)
    errors: Dict[str, Exception] = Field(default_factory=dict, description="entry id -> failure")
