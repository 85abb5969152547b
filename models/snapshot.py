"""
Practice snapshot model.

A JSON-serialisable picture of one practice (tenant): its resources, their
hours, the bookings and blocks on their calendars and the waitlist. Used to
seed the in-memory store for the demo runner and to cache generated data.
"""

from typing import Dict, List
from pydantic import BaseModel, Field

from .resource import ResourceMetadata, ResourceRef, OpenHoursTemplate
from .schedule import Appointment, BusyInterval
from .waitlist import WaitlistEntry


class ResourceTemplate(BaseModel):
    """Open hours attached to a resource."""
    resource: ResourceRef
    template: OpenHoursTemplate


class PracticeSnapshot(BaseModel):
    organization_id: str
    resources: List[ResourceMetadata] = Field(default_factory=list)
    templates: List[ResourceTemplate] = Field(default_factory=list)
    appointments: List[Appointment] = Field(default_factory=list)
    blocks: List[BusyInterval] = Field(default_factory=list)
    location_staff: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Location ID -> provider IDs working there"
    )
    waitlist: List[WaitlistEntry] = Field(default_factory=list)
