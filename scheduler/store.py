"""
In-Memory Calendar Store.

A reference implementation of the CalendarStore read interface.
It keeps:
1. Resource metadata and open-hours templates.
2. Appointments & schedule blocks, indexed per resource.
3. Location staffing (which providers work where).

The surrounding application normally backs the same interface with its database;
this store serves the tests and the demo runner.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from models import (
    Appointment,
    BusyInterval,
    BusyReason,
    OpenHoursTemplate,
    PracticeSnapshot,
    ResourceKind,
    ResourceMetadata,
    ResourceRef,
    TimeInterval
)

logger = logging.getLogger(__name__)


class InMemoryCalendarStore:
    """Dictionary-backed store. Not thread-safe for writes; reads may run concurrently."""

    def __init__(self):
        self.metadata: Dict[ResourceRef, ResourceMetadata] = {}
        self.templates: Dict[ResourceRef, OpenHoursTemplate] = {}

        # Resource Indices (for O(1) lookup per resource)
        self.appointments: Dict[ResourceRef, List[Appointment]] = defaultdict(list)
        self.blocks: Dict[ResourceRef, List[BusyInterval]] = defaultdict(list)

        # Location ID -> providers
        self.location_staff: Dict[str, List[ResourceRef]] = defaultdict(list)

    # --- Write Methods (used to seed the store) ---

    def add_resource(self, metadata: ResourceMetadata, template: Optional[OpenHoursTemplate] = None) -> None:
        self.metadata[metadata.resource] = metadata
        if template is not None:
            self.templates[metadata.resource] = template

    def set_template(self, resource: ResourceRef, template: OpenHoursTemplate) -> None:
        self.templates[resource] = template

    def add_appointment(self, appointment: Appointment) -> None:
        """Index the booking under every resource it occupies."""
        for ref in appointment.resources:
            self.appointments[ref].append(appointment)

    def add_block(self, block: BusyInterval) -> None:
        self.blocks[block.resource].append(block)

    def assign_provider(self, location_id: str, provider: ResourceRef) -> None:
        if provider not in self.location_staff[location_id]:
            self.location_staff[location_id].append(provider)

    @classmethod
    def from_snapshot(cls, snapshot: PracticeSnapshot) -> "InMemoryCalendarStore":
        store = cls()
        for meta in snapshot.resources:
            store.add_resource(meta)
        for item in snapshot.templates:
            store.set_template(item.resource, item.template)
        for appt in snapshot.appointments:
            store.add_appointment(appt)
        for block in snapshot.blocks:
            store.add_block(block)
        for location_id, provider_ids in snapshot.location_staff.items():
            for pid in provider_ids:
                store.assign_provider(location_id, ResourceRef(kind=ResourceKind.PROVIDER, id=pid))
        logger.info(
            f"Store seeded for {snapshot.organization_id}: {len(store.metadata)} resources, "
            f"{len(snapshot.appointments)} appointments, {len(snapshot.blocks)} blocks"
        )
        return store

    # --- Query Methods (the CalendarStore interface) ---

    def load_resource_metadata(self, resource: ResourceRef) -> Optional[ResourceMetadata]:
        return self.metadata.get(resource)

    def load_open_hours_template(self, resource: ResourceRef) -> Optional[OpenHoursTemplate]:
        return self.templates.get(resource)

    def load_busy_intervals(self, resource: ResourceRef, window: TimeInterval) -> List[BusyInterval]:
        busy = []
        for appt in self.appointments.get(resource, []):
            if not appt.occupies_time:
                continue
            if appt.start < window.end and window.start < appt.end:
                busy.append(BusyInterval(
                    start=appt.start,
                    end=appt.end,
                    resource=resource,
                    reason=BusyReason.APPOINTMENT,
                    source_id=appt.id
                ))
        for block in self.blocks.get(resource, []):
            if block.overlaps(window):
                busy.append(block)
        return busy

    def load_location_providers(self, location: ResourceRef) -> List[ResourceRef]:
        return list(self.location_staff.get(location.id, []))
