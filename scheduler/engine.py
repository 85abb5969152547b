"""
The Multi-Resource Availability Engine.

This module implements the core "Solver" logic. It combines:
1. Most-Constrained-First generation - candidates come from the tightest calendar.
2. Cross-resource filtering - a slot survives only if every resource is open and free.
3. Lazy evaluation - candidates are produced on demand and generation stops at the cap.
"""

import logging
from datetime import datetime, timedelta
from itertools import islice
from typing import Dict, Iterator, List, Optional, Sequence

from models import (
    BusyInterval,
    CandidateSlot,
    ResourceKind,
    ResourceRef,
    SlotRequest,
    TimeInterval
)
from .cancellation import CancellationToken
from .config import EngineSettings
from .constraints import ConstraintChecker
from .errors import InvalidDurationError, InvalidRequestError
from .generator import SlotGenerator, open_minutes
from .loader import CalendarLoader, ResourceCalendar
from .scoring import SlotScorer

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    """
    Aggregates per-resource calendars into bookable slots.
    Holds no per-request state: every call loads fresh calendar data.
    """

    # Tie-break when two calendars are equally constrained: providers are usually tightest
    KIND_ORDER = {
        ResourceKind.PROVIDER: 0,
        ResourceKind.ROOM: 1,
        ResourceKind.EQUIPMENT: 2,
        ResourceKind.LOCATION: 3,
    }

    def __init__(
        self,
        loader: CalendarLoader,
        scorer: Optional[SlotScorer] = None,
        settings: Optional[EngineSettings] = None
    ):
        self.loader = loader
        self.scorer = scorer or SlotScorer()
        self.settings = settings or EngineSettings()

    # --- Public API ---

    def iter_available_slots(
        self,
        request: SlotRequest,
        now: Optional[datetime] = None,
        cancel: Optional[CancellationToken] = None
    ) -> Iterator[CandidateSlot]:
        """
        Validate, load every calendar, then return a single-pass lazy stream of
        unscored slots in start order, capped at request.max_results.
        Errors surface here, not on first iteration.
        """
        request = self.apply_defaults(request)
        resources = self.validate_request(request, now)
        if cancel is not None:
            cancel.raise_if_cancelled()

        calendars = self.load_calendars(resources, request.search_window)
        return islice(self._scan(request, calendars, now, cancel), request.max_results)

    def find_available_slots(
        self,
        request: SlotRequest,
        now: Optional[datetime] = None,
        cancel: Optional[CancellationToken] = None
    ) -> List[CandidateSlot]:
        """Available slots, ranked best first."""
        slots = list(self.iter_available_slots(request, now=now, cancel=cancel))
        ranked = self.scorer.rank(slots, request.preferences)
        logger.debug(f"Found {len(ranked)} slots for {[r.key for r in request.resources]}")
        return ranked

    def find_alternative_slots(
        self,
        request: SlotRequest,
        now: Optional[datetime] = None,
        extra_days: Optional[int] = None
    ) -> List[CandidateSlot]:
        """
        Slots in the requested window, or, when it has none, in the days that
        follow it (one day at a time). The original anchor date still drives ranking.
        """
        request = self.apply_defaults(request)
        slots = self.find_available_slots(request, now=now)
        if slots:
            return slots

        if extra_days is None:
            extra_days = self.settings.alternative_extra_days
        found: List[CandidateSlot] = []
        window = request.search_window
        for offset in range(extra_days):
            day_window = TimeInterval(
                start=window.end + timedelta(days=offset),
                end=window.end + timedelta(days=offset + 1)
            )
            shifted = request.model_copy(update={
                "search_window": day_window,
                "max_results": request.max_results - len(found)
            })
            found.extend(self.iter_available_slots(shifted, now=now))
            if len(found) >= request.max_results:
                break

        logger.info(f"No slots in requested window; {len(found)} alternatives in the next {extra_days} days")
        return self.scorer.rank(found, request.preferences)

    def find_conflicts(
        self,
        candidate: TimeInterval,
        resources: Sequence[ResourceRef],
        window: Optional[TimeInterval] = None
    ) -> Dict[ResourceRef, List[BusyInterval]]:
        """Busy intervals blocking the candidate on each over-capacity resource."""
        if candidate.is_empty:
            raise InvalidDurationError("Candidate interval has zero length")
        if not resources:
            raise InvalidRequestError("At least one resource is required")

        window = window or candidate
        calendars = self.load_calendars(self._dedupe(resources), window)
        return ConstraintChecker(calendars, window).find_conflicts(candidate)

    def has_conflict(
        self,
        candidate: TimeInterval,
        resources: Sequence[ResourceRef],
        window: Optional[TimeInterval] = None
    ) -> bool:
        """Lightweight re-validation used right before a booking is committed."""
        return bool(self.find_conflicts(candidate, resources, window))

    # --- Validation & Loading ---

    def apply_defaults(self, request: SlotRequest) -> SlotRequest:
        """Fill unset granularity and result cap from the engine settings."""
        updates = {}
        if request.granularity_minutes is None:
            updates["granularity_minutes"] = self.settings.default_granularity_minutes
        if request.max_results is None:
            updates["max_results"] = self.settings.default_max_results
        return request.model_copy(update=updates) if updates else request

    def validate_request(self, request: SlotRequest, now: Optional[datetime] = None) -> List[ResourceRef]:
        """Reject malformed requests before any I/O. Returns the de-duplicated resources."""
        request = self.apply_defaults(request)
        if not request.resources:
            raise InvalidRequestError("At least one resource (normally the provider) is required")
        if request.duration_minutes <= 0:
            raise InvalidDurationError(f"Duration must be positive, got {request.duration_minutes} minutes")
        if request.granularity_minutes <= 0:
            raise InvalidRequestError(f"Granularity must be positive, got {request.granularity_minutes} minutes")
        if request.max_results <= 0:
            raise InvalidRequestError("max_results must be at least 1")

        window = request.search_window
        if window.start >= window.end:
            raise InvalidRequestError("Search window must end after it starts")

        if request.future_only and now is None:
            raise InvalidRequestError("future_only requires an explicit 'now'")
        if now is not None and (now.tzinfo is None) != (window.start.tzinfo is None):
            raise InvalidRequestError("'now' and the search window must both be naive or both be aware")

        if request.days_of_week is not None and any(not 0 <= d <= 6 for d in request.days_of_week):
            raise InvalidRequestError("days_of_week must contain weekdays between 0 (Monday) and 6 (Sunday)")
        rng = request.time_range
        if rng is not None and rng.end_time <= rng.start_time:
            raise InvalidRequestError("time_range must end after it starts")

        return self._dedupe(request.resources)

    def load_calendars(self, resources: Sequence[ResourceRef], window: TimeInterval) -> List[ResourceCalendar]:
        return [self.loader.load_calendar(ref, window) for ref in resources]

    # --- Internals ---

    def _scan(
        self,
        request: SlotRequest,
        calendars: List[ResourceCalendar],
        now: Optional[datetime],
        cancel: Optional[CancellationToken]
    ) -> Iterator[CandidateSlot]:
        window = request.search_window
        anchor = self._most_constrained(calendars, request)
        checker = ConstraintChecker(calendars, window)
        generator = SlotGenerator(request.duration_minutes, request.granularity_minutes)

        resources = [cal.resource for cal in calendars]
        location_id = next((r.id for r in resources if r.kind == ResourceKind.LOCATION), None)

        logger.debug(f"Generating from {anchor.resource.key} (most constrained of {len(calendars)})")

        candidates = generator.generate(
            anchor.template,
            window,
            not_before=now if request.future_only else None,
            days_of_week=request.days_of_week,
            time_range=request.time_range
        )
        for interval in candidates:
            if cancel is not None:
                cancel.raise_if_cancelled()

            violation = checker.check(interval, skip_hours_for=anchor.resource)
            if violation is not None:
                logger.debug(f"Rejected {interval.start}: {violation.constraint_type} - {violation.reason}")
                continue

            yield CandidateSlot(interval=interval, resources=resources, location_id=location_id)

    def _most_constrained(self, calendars: List[ResourceCalendar], request: SlotRequest) -> ResourceCalendar:
        """Calendar with the fewest open minutes in the window; provider first on ties."""
        def difficulty(indexed):
            index, cal = indexed
            minutes = open_minutes(cal.template, request.search_window, request.days_of_week, request.time_range)
            return (minutes, self.KIND_ORDER[cal.resource.kind], index)

        return min(enumerate(calendars), key=difficulty)[1]

    @staticmethod
    def _dedupe(resources: Sequence[ResourceRef]) -> List[ResourceRef]:
        seen = set()
        unique = []
        for ref in resources:
            if ref not in seen:
                seen.add(ref)
                unique.append(ref)
        return unique
