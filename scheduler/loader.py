"""
Resource Calendar Loader.

The only path from the engine to the external store. Every load is scoped to
the caller's organization: a resource owned by another tenant is reported as
unauthorized, never silently used.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from models import (
    ResourceRef,
    ResourceMetadata,
    OpenHoursTemplate,
    TimeInterval,
    BusyInterval
)
from .errors import (
    LoaderTimeoutError,
    LoaderUnavailableError,
    ResourceNotFoundError,
    ResourceUnauthorizedError
)

logger = logging.getLogger(__name__)


class CalendarStore(Protocol):
    """Read interface implemented by the surrounding application."""

    def load_resource_metadata(self, resource: ResourceRef) -> Optional[ResourceMetadata]:
        ...

    def load_busy_intervals(self, resource: ResourceRef, window: TimeInterval) -> List[BusyInterval]:
        ...

    def load_open_hours_template(self, resource: ResourceRef) -> Optional[OpenHoursTemplate]:
        ...

    def load_location_providers(self, location: ResourceRef) -> List[ResourceRef]:
        ...


@dataclass
class ResourceCalendar:
    """Everything the engine needs to know about one resource for one window."""
    resource: ResourceRef
    metadata: ResourceMetadata
    busy: List[BusyInterval] = field(default_factory=list)
    template: Optional[OpenHoursTemplate] = None

    @property
    def capacity(self) -> int:
        return self.metadata.capacity

    @property
    def display_name(self) -> str:
        return self.metadata.name or self.resource.key


class CalendarLoader:
    """
    Fetches busy intervals and open hours for a resource, enforcing
    existence, active status and tenant ownership.
    """

    def __init__(self, store: CalendarStore, organization_id: str):
        self.store = store
        self.organization_id = organization_id

    def load_metadata(self, resource: ResourceRef) -> ResourceMetadata:
        meta = self._call(self.store.load_resource_metadata, resource)
        if meta is None or not meta.is_active or meta.is_deleted:
            raise ResourceNotFoundError("Resource does not exist or is inactive", resource)
        if meta.organization_id != self.organization_id:
            logger.warning(f"Tenant {self.organization_id} attempted to read {resource.key} owned by another organization")
            raise ResourceUnauthorizedError("Resource belongs to another organization", resource)
        return meta

    def load_calendar(self, resource: ResourceRef, window: TimeInterval) -> ResourceCalendar:
        meta = self.load_metadata(resource)

        raw_busy = self._call(self.store.load_busy_intervals, resource, window)
        busy = []
        for interval in raw_busy:
            if interval.resource != resource:
                logger.warning(f"Store returned a busy interval of {interval.resource.key} for {resource.key}; ignoring it")
                continue
            if interval.overlaps(window):
                busy.append(interval)
        busy.sort(key=lambda b: (b.start, b.end))

        template = self._call(self.store.load_open_hours_template, resource)

        logger.debug(f"Loaded {resource.key}: {len(busy)} busy intervals, template={'yes' if template else 'unrestricted'}")
        return ResourceCalendar(resource=resource, metadata=meta, busy=busy, template=template)

    def load_location_providers(self, location: ResourceRef) -> List[ResourceRef]:
        """Active providers of this tenant assigned to a location."""
        providers = []
        for ref in self._call(self.store.load_location_providers, location):
            try:
                self.load_metadata(ref)
            except (ResourceNotFoundError, ResourceUnauthorizedError) as e:
                logger.debug(f"Skipping provider {ref.key} at {location.key}: {e}")
                continue
            providers.append(ref)
        return providers

    def _call(self, fn, resource: ResourceRef, *args):
        """Translate store transport failures into engine errors tagged with the resource."""
        try:
            return fn(resource, *args)
        except TimeoutError as e:
            raise LoaderTimeoutError(f"Store timed out: {e}", resource) from e
        except (ConnectionError, OSError) as e:
            raise LoaderUnavailableError(f"Store unavailable: {e}", resource) from e
