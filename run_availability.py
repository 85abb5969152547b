"""
Main Execution Script for the Availability Engine demo.
Loads (or generates) a practice snapshot, then runs a single-provider search,
a cross-location search and a waitlist pass against it.
"""

import os
import sys
import json
import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from generators.data_factory import PracticeDataGenerator
from models import (
    PracticeSnapshot,
    ResourceKind,
    SlotPreferences,
    SlotRequest,
    TimeBand,
    TimeInterval,
    WaitlistEntry,
    WaitlistPriority
)
from scheduler.orchestrator import MultiLocationResult
from scheduler.service import SchedulingService
from scheduler.store import InMemoryCalendarStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
API_KEY = os.environ.get("GOOGLE_API_KEY")
ORGANIZATION_ID = "org_demo"
CACHE_FILENAME = "practice_snapshot.json"
USE_CACHE = True  # Set to False to force new AI generation
# ---------------------


def save_snapshot(snapshot: PracticeSnapshot, filename: str) -> None:
    """Cache generated data so we don't re-query the LLM every time."""
    with open(filename, 'w') as f:
        f.write(snapshot.model_dump_json(indent=2))
    logger.info(f"💾 Saved practice snapshot to {filename}")


def load_cached_snapshot(filename: str) -> Optional[PracticeSnapshot]:
    try:
        with open(filename, 'r') as f:
            snapshot = PracticeSnapshot.model_validate_json(f.read())
    except FileNotFoundError:
        logger.warning(f"⚠️ Cache file {filename} not found. Falling back to Generator.")
        return None
    except ValueError as e:
        logger.warning(f"⚠️ Cache file {filename} is invalid ({e}). Falling back to Generator.")
        return None

    logger.info(f"📂 Cache Loaded: {len(snapshot.resources)} resources, {len(snapshot.appointments)} appointments.")
    return snapshot


def demo_waitlist(snapshot: PracticeSnapshot, now: datetime) -> List[WaitlistEntry]:
    """Use the snapshot's waitlist, or make up two entries for the first providers."""
    if snapshot.waitlist:
        return snapshot.waitlist

    providers = [m.resource for m in snapshot.resources if m.resource.kind == ResourceKind.PROVIDER]
    return [
        WaitlistEntry(
            id=f"wl_{i:03d}",
            resources=[provider],
            duration_minutes=30,
            preferred_days=[1, 3],
            preferred_time_band=TimeBand.MORNING,
            priority=WaitlistPriority.HIGH if i == 0 else WaitlistPriority.NORMAL,
            created_at=now - timedelta(days=7 - i)
        )
        for i, provider in enumerate(providers[:2])
    ]


def export_report(result: MultiLocationResult, filename: str = "availability_report.json") -> None:
    """Serializes the cross-location result for a frontend."""
    data = {
        "ranked": [s.model_dump(mode='json') for s in result.ranked],
        "by_location": {
            loc_id: [s.model_dump(mode='json') for s in slots]
            for loc_id, slots in result.slots.items()
        },
        "errors": {loc_id: str(err) for loc_id, err in result.errors.items()},
    }
    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info(f"✅ Report exported to {filename}")


def main():
    if not API_KEY and not USE_CACHE:
        logger.error("❌ GOOGLE_API_KEY not found. Please set it via 'export GOOGLE_API_KEY=...'")
        return

    start_date = date.today()
    now = datetime.combine(start_date, time(8, 0))

    # --- PHASE 1: DATA ACQUISITION (Cache vs. GenAI) ---
    snapshot = load_cached_snapshot(CACHE_FILENAME) if USE_CACHE else None
    if snapshot is None:
        if not API_KEY:
            logger.error("❌ No cached snapshot and no GOOGLE_API_KEY. Exiting.")
            return
        generator = PracticeDataGenerator(api_key=API_KEY)
        snapshot, cost = generator.generate_practice(ORGANIZATION_ID, start_date=start_date)
        logger.info(f"💸 Total Estimated LLM Cost: ${cost:.4f}")
        save_snapshot(snapshot, CACHE_FILENAME)

    store = InMemoryCalendarStore.from_snapshot(snapshot)
    service = SchedulingService(store, snapshot.organization_id)

    locations = [m.resource for m in snapshot.resources if m.resource.kind == ResourceKind.LOCATION]
    if not locations:
        logger.error("❌ Snapshot has no locations. Exiting.")
        return

    # --- PHASE 2: SINGLE LOCATION SEARCH ---
    window = TimeInterval(start=now, end=now + timedelta(days=5))
    first_location = locations[0]
    staff = store.load_location_providers(first_location)
    request = SlotRequest(
        resources=staff[:1] + [first_location],
        duration_minutes=30,
        search_window=window,
        future_only=True,
        preferences=SlotPreferences(anchor_date=start_date + timedelta(days=1), time_band=TimeBand.MORNING)
    )

    print("\n" + "=" * 50)
    print(f"📅 SLOTS AT {first_location.id}")
    print("=" * 50)
    for slot in service.find_alternative_slots(request, now=now):
        print(f"  {slot.start:%a %Y-%m-%d %H:%M}  score={slot.score:5.1f}  {slot.matched_preferences}")

    # --- PHASE 3: CROSS-LOCATION SEARCH ---
    cross = service.find_available_slots_multi_location(
        locations, request.model_copy(update={"resources": []}), now=now, per_provider=True
    )
    print("\n🌐 BEST SLOTS ACROSS LOCATIONS")
    for slot in cross.ranked:
        provider = slot.resource_of(ResourceKind.PROVIDER)
        print(f"  {slot.start:%a %H:%M} @ {slot.location_id} with {provider.id if provider else '-'} (score {slot.score:.1f})")
    for loc_id, err in cross.errors.items():
        print(f"  ❌ {loc_id}: {err}")

    # --- PHASE 4: WAITLIST ---
    report = service.match_waitlist(demo_waitlist(snapshot, now), now)
    print("\n⏳ WAITLIST")
    for match in report.matched:
        times = ", ".join(f"{s.start:%a %H:%M}" for s in match.matches)
        print(f"  ✅ {match.entry.id} [{match.entry.priority.value}]: {times}")
    for entry in report.unmatched:
        print(f"  🔔 {entry.id}: no match, escalate to staff")

    export_report(cross)


if __name__ == "__main__":
    main()
