"""
Waitlist Matcher.

Turns standing waitlist entries into bounded slot searches. It reports matches
and non-matches; acting on them (offering the slot, notifying staff,
deactivating the entry) is the caller's job.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from models import (
    CandidateSlot,
    SlotPreferences,
    SlotRequest,
    TimeInterval,
    WaitlistEntry,
    WaitlistMatch,
    WaitlistReport
)
from .config import EngineSettings
from .engine import AvailabilityEngine
from .errors import SchedulingError

logger = logging.getLogger(__name__)


class WaitlistMatcher:
    """Matches waitlist entries against future availability through the engine."""

    def __init__(self, engine: AvailabilityEngine, settings: Optional[EngineSettings] = None):
        self.engine = engine
        self.settings = settings or engine.settings

    def build_request(
        self,
        entry: WaitlistEntry,
        now: datetime,
        horizon_days: Optional[int] = None,
        max_matches: Optional[int] = None
    ) -> SlotRequest:
        """Translate an entry's filters into a future-only SlotRequest."""
        horizon = self.settings.waitlist_horizon_days if horizon_days is None else horizon_days
        if max_matches is None:
            max_matches = self.settings.waitlist_max_matches
        time_range = entry.preferred_time_range
        if time_range is None and entry.preferred_time_band is not None:
            time_range = entry.preferred_time_band.range

        return SlotRequest(
            resources=entry.resources,
            duration_minutes=entry.duration_minutes,
            search_window=TimeInterval(start=now, end=now + timedelta(days=horizon)),
            granularity_minutes=self.settings.default_granularity_minutes,
            days_of_week=entry.preferred_days or None,
            time_range=time_range,
            future_only=True,
            max_results=max_matches,
            preferences=SlotPreferences(time_band=entry.preferred_time_band)
        )

    def match_entry(
        self,
        entry: WaitlistEntry,
        now: datetime,
        horizon_days: Optional[int] = None,
        max_matches: Optional[int] = None
    ) -> List[CandidateSlot]:
        """
        Best matching slots for one entry (possibly none).
        Inactive or expired entries never match.
        """
        if not entry.is_open_at(now):
            logger.debug(f"Waitlist entry {entry.id} is inactive or expired; skipping")
            return []

        request = self.build_request(entry, now, horizon_days, max_matches)
        return self.engine.find_available_slots(request, now=now)

    def match_entries(self, entries: Iterable[WaitlistEntry], now: datetime) -> WaitlistReport:
        """
        Process every open entry, most urgent (then oldest) first.
        One entry's failure is recorded and does not stop the pass.
        """
        report = WaitlistReport()
        queue = [e for e in entries if e.is_open_at(now)]
        queue.sort(key=lambda e: (-e.priority.rank, e.created_at))

        for entry in queue:
            try:
                matches = self.match_entry(entry, now)
            except SchedulingError as e:
                logger.warning(f"Waitlist entry {entry.id} could not be matched: {e}")
                report.errors[entry.id] = e
                continue

            if matches:
                report.matched.append(WaitlistMatch(entry=entry, matches=matches))
            else:
                report.unmatched.append(entry)

        logger.info(
            f"Waitlist pass: {len(report.matched)} matched, {len(report.unmatched)} unmatched, "
            f"{len(report.errors)} errors"
        )
        return report
