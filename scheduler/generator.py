"""
Candidate Slot Generator.

Steps through a search window at a fixed granularity and emits candidate
intervals that fit entirely inside a resource's open hours for that date.

Rules:
1. Date exceptions override the weekly template; an unavailable exception closes the date.
2. Closed dates are skipped outright (no candidates to reject later).
3. A candidate never crosses the closing boundary, even if the next day reopens.
4. 'now' is never read from the clock: callers pass it as 'not_before'.
"""

import logging
from datetime import date as date_type, datetime, time as time_type, timedelta, tzinfo
from typing import Iterator, List, Optional, Tuple
from zoneinfo import ZoneInfo

from models import OpenHoursTemplate, TimeInterval, TimeRange

logger = logging.getLogger(__name__)


def zone_for(template: Optional[OpenHoursTemplate], window: TimeInterval) -> Optional[tzinfo]:
    """
    Zone in which a template's wall-clock times are read.
    Naive windows stay naive; aware windows use the template zone, else the window's own.
    """
    if window.start.tzinfo is None:
        return None
    if template is not None and template.timezone:
        return ZoneInfo(template.timezone)
    return window.start.tzinfo


def local_date(moment: datetime, zone: Optional[tzinfo]) -> date_type:
    if zone is None or moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(zone).date()


def resolve_open_hours(template: OpenHoursTemplate, day: date_type) -> Optional[Tuple[time_type, time_type]]:
    """
    Resolve the (open, close) wall-clock pair for one date, or None if closed.
    Malformed hours (close not after open) count as closed and are logged.
    """
    weekly = template.weekly.get(day.weekday())
    exception = template.exception_for(day)

    if exception is not None:
        if not exception.is_available:
            return None
        open_time = exception.override_start or (weekly.open_time if weekly else None)
        close_time = exception.override_end or (weekly.close_time if weekly else None)
    elif weekly is not None:
        open_time, close_time = weekly.open_time, weekly.close_time
    else:
        return None

    if open_time is None or close_time is None:
        return None

    if close_time <= open_time:
        logger.warning(
            f"Data quality: close time {close_time} is not after open time {open_time} "
            f"on {day.isoformat()}; treating the day as closed"
        )
        return None
    return open_time, close_time


def open_boundary(
    template: Optional[OpenHoursTemplate],
    day: date_type,
    zone: Optional[tzinfo],
    time_range: Optional[TimeRange] = None
) -> Optional[TimeInterval]:
    """
    Bookable boundary of a date as an interval.
    A missing template means the resource is unrestricted for the whole date.
    """
    if template is None:
        start = datetime.combine(day, time_type(0, 0), tzinfo=zone)
        end = datetime.combine(day + timedelta(days=1), time_type(0, 0), tzinfo=zone)
        if time_range is None:
            return TimeInterval(start=start, end=end)
        open_time, close_time = time_type(0, 0), None
    else:
        hours = resolve_open_hours(template, day)
        if hours is None:
            return None
        open_time, close_time = hours

    if time_range is not None:
        open_time = max(open_time, time_range.start_time)
        close_time = time_range.end_time if close_time is None else min(close_time, time_range.end_time)
        if close_time <= open_time:
            return None

    return TimeInterval(
        start=datetime.combine(day, open_time, tzinfo=zone),
        end=datetime.combine(day, close_time, tzinfo=zone)
    )


def iter_days(window: TimeInterval, zone: Optional[tzinfo]) -> Iterator[date_type]:
    day = local_date(window.start, zone)
    last = local_date(window.end, zone)
    while day <= last:
        yield day
        day += timedelta(days=1)


def within_open_hours(interval: TimeInterval, template: Optional[OpenHoursTemplate], window: TimeInterval) -> bool:
    """True if the whole interval sits inside the open boundary of its start date."""
    if template is None:
        return True
    zone = zone_for(template, window)
    boundary = open_boundary(template, local_date(interval.start, zone), zone)
    return boundary is not None and boundary.contains(interval)


def open_minutes(
    template: Optional[OpenHoursTemplate],
    window: TimeInterval,
    days_of_week: Optional[List[int]] = None,
    time_range: Optional[TimeRange] = None
) -> float:
    """How many minutes of the window the template leaves open (lower = more constrained)."""
    zone = zone_for(template, window)
    total = timedelta(0)
    for day in iter_days(window, zone):
        if days_of_week is not None and day.weekday() not in days_of_week:
            continue
        boundary = open_boundary(template, day, zone, time_range)
        if boundary is None:
            continue
        lo = max(boundary.start, window.start)
        hi = min(boundary.end, window.end)
        if hi > lo:
            total += hi - lo
    return total.total_seconds() / 60.0


class SlotGenerator:
    """
    Lazily enumerates candidate intervals of a fixed duration.
    Start times sit on a grid anchored at each day's opening time.
    """

    def __init__(self, duration_minutes: int, granularity_minutes: int):
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)

    def generate(
        self,
        template: Optional[OpenHoursTemplate],
        window: TimeInterval,
        not_before: Optional[datetime] = None,
        days_of_week: Optional[List[int]] = None,
        time_range: Optional[TimeRange] = None
    ) -> Iterator[TimeInterval]:
        """Yield candidates in nondecreasing start order."""
        zone = zone_for(template, window)

        for day in iter_days(window, zone):
            if days_of_week is not None and day.weekday() not in days_of_week:
                continue

            boundary = open_boundary(template, day, zone, time_range)
            if boundary is None:
                continue

            # Effective range: open hours ∩ window (∩ [now, ...) when requested)
            lo = max(boundary.start, window.start)
            if not_before is not None:
                lo = max(lo, not_before)
            hi = min(boundary.end, window.end)
            if lo >= hi:
                continue

            t = self._first_grid_point(boundary.start, lo)
            while t + self.duration <= hi:
                yield TimeInterval(start=t, end=t + self.duration)
                t += self.step

    def _first_grid_point(self, anchor: datetime, lower_bound: datetime) -> datetime:
        """Smallest anchor + k*step that is >= lower_bound."""
        if lower_bound <= anchor:
            return anchor
        steps = (lower_bound - anchor) // self.step
        candidate = anchor + steps * self.step
        if candidate < lower_bound:
            candidate += self.step
        return candidate
