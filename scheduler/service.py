"""
Scheduling Service.

The public entry points of the availability engine, bound to one store and one
tenant. Request handlers of the surrounding application call these; nothing
here writes to the booking store.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from models import (
    CandidateSlot,
    ResourceRef,
    SlotRequest,
    TimeInterval,
    WaitlistEntry,
    WaitlistReport
)
from .cancellation import CancellationToken
from .config import EngineSettings
from .engine import AvailabilityEngine
from .errors import SlotConflictError
from .loader import CalendarLoader, CalendarStore
from .orchestrator import CrossLocationOrchestrator, MultiLocationResult
from .scoring import SlotScorer
from .waitlist import WaitlistMatcher

logger = logging.getLogger(__name__)


class SchedulingService:
    """Facade over the engine, the waitlist matcher and the cross-location orchestrator."""

    def __init__(
        self,
        store: CalendarStore,
        organization_id: str,
        settings: Optional[EngineSettings] = None
    ):
        self.settings = settings or EngineSettings.from_env()
        self.loader = CalendarLoader(store, organization_id)
        self.engine = AvailabilityEngine(self.loader, SlotScorer(), self.settings)
        self.waitlist = WaitlistMatcher(self.engine, self.settings)
        self.orchestrator = CrossLocationOrchestrator(self.engine, self.settings)

    def find_available_slots(self, request: SlotRequest, now: Optional[datetime] = None) -> List[CandidateSlot]:
        return self.engine.find_available_slots(request, now=now)

    def find_alternative_slots(
        self,
        request: SlotRequest,
        now: Optional[datetime] = None,
        extra_days: Optional[int] = None
    ) -> List[CandidateSlot]:
        return self.engine.find_alternative_slots(request, now=now, extra_days=extra_days)

    def find_available_slots_multi_location(
        self,
        locations: Sequence[ResourceRef],
        request: SlotRequest,
        now: Optional[datetime] = None,
        per_provider: bool = False,
        cancel: Optional[CancellationToken] = None
    ) -> MultiLocationResult:
        return self.orchestrator.find_multi_location(
            locations, request, now=now, per_provider=per_provider, cancel=cancel
        )

    def match_waitlist_entry(
        self,
        entry: WaitlistEntry,
        now: datetime,
        horizon_days: Optional[int] = None,
        max_matches: Optional[int] = None
    ) -> List[CandidateSlot]:
        return self.waitlist.match_entry(entry, now, horizon_days=horizon_days, max_matches=max_matches)

    def match_waitlist(self, entries: Iterable[WaitlistEntry], now: datetime) -> WaitlistReport:
        return self.waitlist.match_entries(entries, now)

    def has_conflict(
        self,
        candidate: TimeInterval,
        resources: Sequence[ResourceRef],
        window: Optional[TimeInterval] = None
    ) -> bool:
        return self.engine.has_conflict(candidate, resources, window)

    def verify_slot(self, candidate: TimeInterval, resources: Sequence[ResourceRef]) -> None:
        """
        Commit-path check. Raises SlotConflictError when the slot was taken
        since it was computed; the caller decides whether to re-search.
        """
        conflicts = self.engine.find_conflicts(candidate, resources)
        if not conflicts:
            return

        resource, busy = next(iter(conflicts.items()))
        logger.info(f"Slot {candidate.start.isoformat()} no longer free on {resource.key}")
        raise SlotConflictError(
            f"Slot starting {candidate.start.isoformat()} is no longer available",
            resource,
            conflicts=busy
        )
