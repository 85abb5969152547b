"""
Cross-Location Orchestrator.

Fans the availability engine out across several locations (and optionally
across every provider working at each location), runs the branches
concurrently and merges the results with the same scorer so cross-location
comparisons stay fair.

Failure model:
- A branch that errors or times out is a soft failure: its location reports an
  error and contributes no slots. The rest of the batch carries on.
- One cancellation token covers the whole call; branches that have not started
  when it fires never begin.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import CandidateSlot, ResourceKind, ResourceRef, SlotRequest
from .cancellation import CancellationToken
from .config import EngineSettings
from .engine import AvailabilityEngine
from .errors import (
    CancelledError,
    InvalidRequestError,
    LoaderTimeoutError,
    LoaderUnavailableError,
    SchedulingError
)

logger = logging.getLogger(__name__)

BranchKey = Tuple[str, Optional[str]]  # (location id, provider id)


@dataclass
class MultiLocationResult:
    """Per-location slots and errors, plus the merged cross-location ranking."""
    slots: Dict[str, List[CandidateSlot]] = field(default_factory=dict)
    errors: Dict[str, SchedulingError] = field(default_factory=dict)
    ranked: List[CandidateSlot] = field(default_factory=list)


class CrossLocationOrchestrator:
    """Concurrent fan-out of the engine over locations and providers."""

    def __init__(self, engine: AvailabilityEngine, settings: Optional[EngineSettings] = None):
        self.engine = engine
        self.settings = settings or engine.settings

    def find_multi_location(
        self,
        locations: Sequence[ResourceRef],
        request: SlotRequest,
        now: Optional[datetime] = None,
        per_provider: bool = False,
        cancel: Optional[CancellationToken] = None,
        branch_timeout: Optional[float] = None
    ) -> MultiLocationResult:
        if not locations:
            raise InvalidRequestError("At least one location is required")
        for loc in locations:
            if loc.kind != ResourceKind.LOCATION:
                raise InvalidRequestError(f"{loc.key} is not a location", loc)

        locations = self.engine._dedupe(locations)
        request = self.engine.apply_defaults(request)
        # Reject malformed requests once, before any branch touches the store
        self.engine.validate_request(self._branch_request(request, locations[0]), now)

        token = cancel or CancellationToken()
        timeout = self.settings.branch_timeout_seconds if branch_timeout is None else branch_timeout
        result = MultiLocationResult()

        # --- Phase 1: resolve providers per location (only when fanning out per provider) ---
        providers: Dict[str, List[Optional[ResourceRef]]] = {loc.id: [None] for loc in locations}
        if per_provider:
            tasks = [
                ((loc.id, None), self._provider_lookup(loc))
                for loc in locations
            ]
            for (loc_id, _), outcome in self._run_concurrently(tasks, token, timeout).items():
                if isinstance(outcome, SchedulingError):
                    result.errors[loc_id] = outcome
                    providers.pop(loc_id)
                elif not outcome:
                    logger.info(f"No active providers at location {loc_id}")
                    result.slots[loc_id] = []
                    providers.pop(loc_id)
                else:
                    providers[loc_id] = outcome

        # --- Phase 2: one engine run per (location, provider) branch ---
        tasks = []
        for loc in locations:
            for provider in providers.get(loc.id, []):
                branch_request = self._branch_request(request, loc, provider)
                tasks.append(((loc.id, provider.id if provider else None), self._search(branch_request, now)))

        outcomes = self._run_concurrently(tasks, token, timeout)

        # --- Phase 3: merge ---
        merged: List[CandidateSlot] = []
        for (loc_id, provider_id), outcome in outcomes.items():
            if isinstance(outcome, SchedulingError):
                logger.warning(f"Location {loc_id} (provider {provider_id or 'any'}) failed: {outcome}")
                result.errors.setdefault(loc_id, outcome)
                continue
            result.slots.setdefault(loc_id, []).extend(outcome)
            merged.extend(outcome)

        for loc_id, slots in result.slots.items():
            result.slots[loc_id] = self._rank(slots, request)
        result.ranked = self._rank(merged, request)

        logger.info(
            f"Cross-location search over {len(locations)} locations: "
            f"{len(result.ranked)} slots, {len(result.errors)} failed locations"
        )
        return result

    # --- Branch construction ---

    @staticmethod
    def _branch_request(
        request: SlotRequest,
        location: ResourceRef,
        provider: Optional[ResourceRef] = None
    ) -> SlotRequest:
        """The request's resources with the location (and provider) substituted in."""
        replaced = {ResourceKind.LOCATION}
        if provider is not None:
            replaced.add(ResourceKind.PROVIDER)
        resources = [r for r in request.resources if r.kind not in replaced]
        if provider is not None:
            resources.insert(0, provider)
        resources.append(location)
        return request.model_copy(update={"resources": resources})

    def _provider_lookup(self, location: ResourceRef) -> Callable[[CancellationToken], List[ResourceRef]]:
        def lookup(token: CancellationToken) -> List[ResourceRef]:
            self.engine.loader.load_metadata(location)
            token.raise_if_cancelled()
            return self.engine.loader.load_location_providers(location)
        return lookup

    def _search(self, request: SlotRequest, now: Optional[datetime]) -> Callable[[CancellationToken], List[CandidateSlot]]:
        def search(token: CancellationToken) -> List[CandidateSlot]:
            return list(self.engine.iter_available_slots(request, now=now, cancel=token))
        return search

    # --- Concurrency ---

    def _run_concurrently(
        self,
        tasks: List[Tuple[BranchKey, Callable[[CancellationToken], object]]],
        token: CancellationToken,
        timeout: float
    ) -> Dict[BranchKey, object]:
        """
        Run every task on a worker thread, each with its own timeout.
        Returns task key -> result, or the SchedulingError that replaced it.
        """
        outcomes: Dict[BranchKey, object] = {}
        if not tasks:
            return outcomes

        executor = ThreadPoolExecutor(
            max_workers=min(self.settings.max_workers, len(tasks)),
            thread_name_prefix="slot-branch"
        )
        try:
            submitted = []
            for key, fn in tasks:
                child = token.child(timeout)
                submitted.append((key, child, executor.submit(self._guarded, fn, child)))

            for key, child, future in submitted:
                location = ResourceRef(kind=ResourceKind.LOCATION, id=key[0])
                try:
                    outcomes[key] = future.result(timeout=child.remaining())
                except FutureTimeout:
                    future.cancel()
                    if token.is_cancelled():
                        child.cancel("orchestration cancelled")
                        outcomes[key] = CancelledError(f"Cancelled: {token.describe()}", location)
                    else:
                        child.cancel("branch timed out")
                        outcomes[key] = LoaderTimeoutError(f"Branch exceeded {timeout:.2f}s", location)
                except SchedulingError as e:
                    if e.resource is None:
                        e.resource = location
                    outcomes[key] = e
                except Exception as e:
                    logger.exception(f"Unexpected failure in branch {key[0]} (provider {key[1] or 'any'})")
                    error = LoaderUnavailableError(f"Branch failed: {e}", location)
                    error.__cause__ = e
                    outcomes[key] = error
        finally:
            # Timed-out branches stop cooperatively; do not block on them
            executor.shutdown(wait=False, cancel_futures=True)
        return outcomes

    @staticmethod
    def _guarded(fn: Callable[[CancellationToken], object], token: CancellationToken) -> object:
        token.raise_if_cancelled()
        return fn(token)

    def _rank(self, slots: List[CandidateSlot], request: SlotRequest) -> List[CandidateSlot]:
        """Deterministic merge: order by (start, location, provider) before the stable score sort."""
        def merge_key(slot: CandidateSlot):
            provider = slot.resource_of(ResourceKind.PROVIDER)
            return (slot.start, slot.location_id or "", provider.id if provider else "")

        ranked = self.engine.scorer.rank(sorted(slots, key=merge_key), request.preferences)
        return ranked[:request.max_results]
