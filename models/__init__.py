"""
Data models package for the Availability Engine.

This package exports the three core pillars of the data architecture:
1. Supply (ResourceRef, ResourceMetadata, OpenHoursTemplate)
2. Demand (SlotRequest, SlotPreferences, WaitlistEntry)
3. Output (TimeInterval, BusyInterval, CandidateSlot)
"""

from .resource import (
    ResourceKind,
    ResourceRef,
    ResourceMetadata,
    DayHours,
    DateException,
    OpenHoursTemplate
)

from .schedule import (
    TimeInterval,
    BusyReason,
    BusyInterval,
    AppointmentStatus,
    Appointment,
    CandidateSlot
)

from .request import (
    TimeRange,
    TimeBand,
    ScoreWeights,
    SlotPreferences,
    SlotRequest
)

from .waitlist import (
    WaitlistPriority,
    WaitlistEntry,
    WaitlistMatch,
    WaitlistReport
)

from .snapshot import PracticeSnapshot

__all__ = [
    # --- Resource & Open-Hours Models ---
    "ResourceKind",
    "ResourceRef",
    "ResourceMetadata",
    "DayHours",
    "DateException",
    "OpenHoursTemplate",

    # --- Time Models ---
    "TimeInterval",
    "BusyReason",
    "BusyInterval",
    "AppointmentStatus",
    "Appointment",
    "CandidateSlot",

    # --- Request Models ---
    "TimeRange",
    "TimeBand",
    "ScoreWeights",
    "SlotPreferences",
    "SlotRequest",

    # --- Waitlist Models ---
    "WaitlistPriority",
    "WaitlistEntry",
    "WaitlistMatch",
    "WaitlistReport",

    # --- Fixtures ---
    "PracticeSnapshot",
]
