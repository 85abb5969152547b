"""
LLM-powered practice data generator for the Availability Engine demo.
STRATEGY: 'Big Bang' Batching (1 Request per Category) to stay under RPM limits.
Every generated item is validated against a draft model; invalid items are skipped.
"""

import os
import json
import logging
import re
import google.generativeai as genai
from typing import List, Optional, Tuple, Type, Any
from datetime import date, datetime, time, timedelta
from pydantic import BaseModel, Field, ValidationError

from models import (
    Appointment,
    AppointmentStatus,
    DateException,
    DayHours,
    OpenHoursTemplate,
    PracticeSnapshot,
    ResourceKind,
    ResourceMetadata,
    ResourceRef
)
from models.snapshot import ResourceTemplate

logger = logging.getLogger(__name__)

MODEL_NAME = "gemini-2.5-flash"


def parse_json_payload(raw_text: str) -> List[Any]:
    """
    Handles Markdown stripping and shape normalization of an LLM JSON reply.
    Always returns a list (possibly empty).
    """
    if not raw_text:
        return []

    # 1. Clean Markdown Code Blocks
    clean_text = re.sub(r"```json\s*|\s*```", "", raw_text).strip()

    try:
        data = json.loads(clean_text)
    except json.JSONDecodeError:
        # Fallback: Try to regex extract the main list
        match = re.search(r'(\[.*\])', clean_text, re.DOTALL)
        if not match:
            return []
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            return []

    # 2. Normalize Data Shape
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ['locations', 'providers', 'rooms', 'appointments', 'result']:
            if key in data and isinstance(data[key], list):
                return data[key]
        return [data]
    return []


# --- Draft shapes the LLM is asked to produce ---

class WeeklyHoursDraft(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time


class LocationDraft(BaseModel):
    id: str
    name: str = Field(min_length=1)
    timezone: Optional[str] = None
    hours: List[WeeklyHoursDraft]
    closed_dates: List[date] = Field(default_factory=list)


class ProviderDraft(BaseModel):
    id: str
    name: str = Field(min_length=1)
    location_ids: List[str] = Field(min_length=1)
    schedule: List[WeeklyHoursDraft]
    days_off: List[date] = Field(default_factory=list)


class RoomDraft(BaseModel):
    id: str
    name: str = Field(min_length=1)
    location_id: str
    capacity: int = Field(default=1, ge=1)


class AppointmentDraft(BaseModel):
    id: str
    provider_id: str
    location_id: str
    room_id: Optional[str] = None
    date: date
    start_time: time
    duration_minutes: int = Field(ge=10, le=120)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


def _template(hours: List[WeeklyHoursDraft], closed: List[date], timezone: Optional[str] = None) -> OpenHoursTemplate:
    return OpenHoursTemplate(
        weekly={h.day_of_week: DayHours(open_time=h.start_time, close_time=h.end_time) for h in hours},
        exceptions=[DateException(date=d, is_available=False) for d in closed],
        timezone=timezone
    )


class PracticeDataGenerator:
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError("GOOGLE_API_KEY not found. Please set it in environment.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(MODEL_NAME)
        self.total_cost = 0.0

    def _estimate_cost(self, prompt_tokens: int, response_tokens: int) -> float:
        return (prompt_tokens * 0.075 + response_tokens * 0.30) / 1_000_000

    def _fetch_big_batch(self, prompt: str, model_class: Type[BaseModel]) -> Tuple[List[Any], float]:
        """
        Executes a generation request and validates each returned item.
        """
        generation_config = genai.GenerationConfig(
            response_mime_type="application/json",
            max_output_tokens=16000,
            temperature=0.7
        )
        response = self.model.generate_content(prompt, generation_config=generation_config)

        cost = 0.0
        if getattr(response, 'usage_metadata', None):
            cost = self._estimate_cost(
                response.usage_metadata.prompt_token_count,
                response.usage_metadata.candidates_token_count
            )
        self.total_cost += cost

        valid_items = []
        for i, item in enumerate(parse_json_payload(response.text)):
            try:
                valid_items.append(model_class(**item))
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping invalid {model_class.__name__} item {i}: {e}")
        return valid_items, cost

    def generate_practice(
        self,
        organization_id: str,
        location_count: int = 3,
        provider_count: int = 6,
        room_count: int = 6,
        appointment_count: int = 60,
        start_date: Optional[date] = None
    ) -> Tuple[PracticeSnapshot, float]:
        """
        Generates a complete practice (4 API calls) and assembles a PracticeSnapshot.
        """
        if start_date is None:
            start_date = date.today()
        end_date = start_date + timedelta(days=13)
        step_cost = 0.0

        logger.info(f"Generating practice '{organization_id}' (4 API Calls)...")

        # 1. Locations
        prompt_loc = f"""
        Generate {location_count} clinic locations of one chiropractic practice.
        OUTPUT: JSON Array.
        RULES:
        - "id": Must be a STRING (e.g., "loc_01").
        - "hours": list of objects {{ "day_of_week": 0-6 (0=Monday), "start_time": "HH:MM:SS", "end_time": "HH:MM:SS" }}.
          Weekdays are typical; some locations open Saturday mornings.
        - "closed_dates": list of "YYYY-MM-DD" between {start_date} and {end_date} (may be empty).
        FIELDS: id, name, hours, closed_dates.
        """
        locations, c1 = self._fetch_big_batch(prompt_loc, LocationDraft)
        step_cost += c1
        location_ids = json.dumps([loc.id for loc in locations])

        # 2. Providers
        prompt_prov = f"""
        Generate {provider_count} healthcare providers (chiropractors, physical therapists).
        OUTPUT: JSON Array.
        RULES:
        - "id": Must be a STRING (e.g., "prov_01").
        - "location_ids": non-empty subset of {location_ids}.
        - "schedule": list of {{ "day_of_week": 0-6, "start_time": "HH:MM:SS", "end_time": "HH:MM:SS" }}.
        - "days_off": list of "YYYY-MM-DD" between {start_date} and {end_date}.
        FIELDS: id, name, location_ids, schedule, days_off.
        """
        providers, c2 = self._fetch_big_batch(prompt_prov, ProviderDraft)
        step_cost += c2

        # 3. Rooms
        prompt_room = f"""
        Generate {room_count} treatment rooms.
        OUTPUT: JSON Array.
        RULES:
        - "id": Must be a STRING (e.g., "room_01").
        - "location_id": one of {location_ids}.
        - "capacity": integer 1-2.
        FIELDS: id, name, location_id, capacity.
        """
        rooms, c3 = self._fetch_big_batch(prompt_room, RoomDraft)
        step_cost += c3

        # 4. Appointments
        provider_ids = json.dumps([p.id for p in providers])
        room_ids = json.dumps([r.id for r in rooms])
        prompt_appt = f"""
        Generate {appointment_count} appointments between {start_date} and {end_date}.
        OUTPUT: JSON Array.
        RULES:
        - "provider_id" from {provider_ids}; "location_id" from {location_ids}; "room_id" from {room_ids} or null.
        - "start_time": "HH:MM:SS" on a quarter hour between 08:00 and 17:00.
        - "duration_minutes": 15, 30, 45 or 60.
        - "status": one of ["Scheduled", "Confirmed", "Cancelled", "NoShow"], mostly "Confirmed".
        FIELDS: id, provider_id, location_id, room_id, date, start_time, duration_minutes, status.
        """
        appointments, c4 = self._fetch_big_batch(prompt_appt, AppointmentDraft)
        step_cost += c4

        snapshot = self._assemble(organization_id, locations, providers, rooms, appointments)
        logger.info(
            f"✅ Generated {len(locations)} locations, {len(providers)} providers, "
            f"{len(rooms)} rooms, {len(snapshot.appointments)} appointments"
        )
        return snapshot, step_cost

    @staticmethod
    def _assemble(
        organization_id: str,
        locations: List[LocationDraft],
        providers: List[ProviderDraft],
        rooms: List[RoomDraft],
        appointments: List[AppointmentDraft]
    ) -> PracticeSnapshot:
        """Convert drafts into store-ready models, dropping dangling references."""
        snapshot = PracticeSnapshot(organization_id=organization_id)
        known = set()

        for loc in locations:
            ref = ResourceRef(kind=ResourceKind.LOCATION, id=loc.id)
            snapshot.resources.append(ResourceMetadata(resource=ref, organization_id=organization_id, name=loc.name))
            snapshot.templates.append(ResourceTemplate(resource=ref, template=_template(loc.hours, loc.closed_dates, loc.timezone)))
            known.add(ref)

        for prov in providers:
            ref = ResourceRef(kind=ResourceKind.PROVIDER, id=prov.id)
            snapshot.resources.append(ResourceMetadata(resource=ref, organization_id=organization_id, name=prov.name))
            snapshot.templates.append(ResourceTemplate(resource=ref, template=_template(prov.schedule, prov.days_off)))
            known.add(ref)
            for loc_id in prov.location_ids:
                snapshot.location_staff.setdefault(loc_id, []).append(prov.id)

        for room in rooms:
            ref = ResourceRef(kind=ResourceKind.ROOM, id=room.id)
            snapshot.resources.append(ResourceMetadata(
                resource=ref, organization_id=organization_id, name=room.name,
                capacity=room.capacity, location_id=room.location_id
            ))
            known.add(ref)

        for appt in appointments:
            # The location itself is not occupied by a single booking; only location-wide blocks make it busy
            location = ResourceRef(kind=ResourceKind.LOCATION, id=appt.location_id)
            refs = [ResourceRef(kind=ResourceKind.PROVIDER, id=appt.provider_id)]
            if appt.room_id:
                refs.append(ResourceRef(kind=ResourceKind.ROOM, id=appt.room_id))
            if location not in known or not all(r in known for r in refs):
                logger.warning(f"Dropping appointment {appt.id}: references unknown resources")
                continue
            start = datetime.combine(appt.date, appt.start_time)
            snapshot.appointments.append(Appointment(
                id=appt.id,
                start=start,
                end=start + timedelta(minutes=appt.duration_minutes),
                status=appt.status,
                resources=refs
            ))

        return snapshot
