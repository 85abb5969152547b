"""
Hard Constraint Validation Logic.

This module answers the binary question: "Is this interval free on every
required resource?" It enforces physical reality (a resource cannot be in two
bookings at once beyond its capacity) and opening hours.
"""

from typing import Dict, Iterable, List, Optional, Sequence
from dataclasses import dataclass, field

from models import ResourceRef, TimeInterval, BusyInterval
from .generator import within_open_hours
from .loader import ResourceCalendar


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Half-open overlap. Touching intervals (a.end == b.start) do not overlap."""
    return a.start < b.end and b.start < a.end


def has_conflict(candidate: TimeInterval, busy: Iterable[TimeInterval], capacity: int = 1) -> bool:
    """
    True if, at some instant inside the candidate, 'capacity' busy intervals run at once.
    With the default capacity of 1 this short-circuits on the first overlap.
    """
    if capacity <= 1:
        return any(overlaps(candidate, interval) for interval in busy)
    return max_concurrency(candidate, busy) >= capacity


def max_concurrency(candidate: TimeInterval, busy: Iterable[TimeInterval]) -> int:
    """Peak number of busy intervals running simultaneously within the candidate."""
    # Clip to the candidate, then sweep start (+1) / end (-1) events.
    # Ends sort before starts at the same instant: back-to-back bookings never stack.
    events = []
    for interval in busy:
        if overlaps(candidate, interval):
            events.append((max(interval.start, candidate.start), 1))
            events.append((min(interval.end, candidate.end), -1))
    events.sort()

    running = peak = 0
    for _, delta in events:
        running += delta
        peak = max(peak, running)
    return peak


@dataclass
class ConstraintViolation:
    """Detailed reason for rejection."""
    constraint_type: str  # "OpenHours" or "Overlap"
    reason: str
    resource: ResourceRef
    interval: TimeInterval
    conflicts: List[BusyInterval] = field(default_factory=list)


class ConstraintChecker:
    """
    Validates a candidate interval against a set of loaded resource calendars.
    """

    def __init__(self, calendars: Sequence[ResourceCalendar], window: TimeInterval):
        self.calendars = list(calendars)
        self.window = window

    def check(self, interval: TimeInterval, skip_hours_for: Optional[ResourceRef] = None) -> Optional[ConstraintViolation]:
        """
        Master validation function. Returns None if valid, the first violation otherwise.
        'skip_hours_for' names the resource whose template produced the candidate.
        """
        # 1. Opening hours of every other resource
        for cal in self.calendars:
            if cal.resource == skip_hours_for:
                continue
            if not within_open_hours(interval, cal.template, self.window):
                return ConstraintViolation(
                    "OpenHours",
                    f"{cal.display_name} is not open for the whole interval",
                    cal.resource, interval
                )

        # 2. Busy intervals on every resource
        for cal in self.calendars:
            if has_conflict(interval, cal.busy, cal.capacity):
                return ConstraintViolation(
                    "Overlap",
                    f"{cal.display_name} is already booked",
                    cal.resource, interval,
                    conflicts=[b for b in cal.busy if overlaps(interval, b)]
                )
        return None

    def find_conflicts(self, interval: TimeInterval) -> Dict[ResourceRef, List[BusyInterval]]:
        """Every busy interval that overlaps, grouped by resource (over-capacity resources only)."""
        found: Dict[ResourceRef, List[BusyInterval]] = {}
        for cal in self.calendars:
            if has_conflict(interval, cal.busy, cal.capacity):
                found[cal.resource] = [b for b in cal.busy if overlaps(interval, b)]
        return found
