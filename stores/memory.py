"""
In-memory store implementations.

Used by the demo runner and the test-suite. Every read hands back a
deep copy so callers cannot mutate stored state without going through
an update call, the same as a real datastore.
"""

import logging
from collections import defaultdict
from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

from models import (
    Appointment,
    Authorization,
    AuthorizationStatus,
    AvailabilitySlot,
    Client,
    DomainEvent,
    ScheduleStatus,
    TechnicianProfile,
    TechnicianStatus,
    TimeOffRecord,
    WeeklySchedule,
)

logger = logging.getLogger(__name__)


class InMemoryScheduleStore:
    """Technician profiles, availability, time-off and weekly schedules."""

    def __init__(self):
        self.technicians: Dict[str, TechnicianProfile] = {}
        self.availability: Dict[str, List[AvailabilitySlot]] = {}
        self.time_off: Dict[str, List[TimeOffRecord]] = defaultdict(list)
        self.schedules: Dict[str, WeeklySchedule] = {}

    # --- Technician Profiles ---

    def create_technician(self, profile: TechnicianProfile) -> TechnicianProfile:
        self.technicians[profile.id] = profile.model_copy(deep=True)
        return profile.model_copy(deep=True)

    def get_technician(self, technician_id: str) -> Optional[TechnicianProfile]:
        profile = self.technicians.get(technician_id)
        return profile.model_copy(deep=True) if profile else None

    def update_technician(self, technician_id: str, updates: Dict[str, Any]) -> Optional[TechnicianProfile]:
        profile = self.technicians.get(technician_id)
        if not profile:
            return None
        updated = profile.model_copy(update=updates, deep=True)
        self.technicians[technician_id] = updated
        return updated.model_copy(deep=True)

    def delete_technician(self, technician_id: str) -> bool:
        self.availability.pop(technician_id, None)
        self.time_off.pop(technician_id, None)
        return self.technicians.pop(technician_id, None) is not None

    def list_technicians(self, user_id: str) -> List[TechnicianProfile]:
        return [t.model_copy(deep=True) for t in self.technicians.values() if t.user_id == user_id]

    def get_active_technicians(self, user_id: str) -> List[TechnicianProfile]:
        return [t for t in self.list_technicians(user_id) if t.status == TechnicianStatus.ACTIVE]

    def get_technicians_by_skill(self, user_id: str, skill: str) -> List[TechnicianProfile]:
        return [t for t in self.get_active_technicians(user_id) if skill in t.skills]

    def get_technicians_by_location(self, user_id: str, location: str) -> List[TechnicianProfile]:
        return [t for t in self.get_active_technicians(user_id) if location in t.service_areas]

    # --- Availability ---

    def set_availability(self, technician_id: str, slots: List[AvailabilitySlot]) -> None:
        self.availability[technician_id] = [s.model_copy(deep=True) for s in slots]

    def get_availability(self, technician_id: str) -> List[AvailabilitySlot]:
        return [s.model_copy(deep=True) for s in self.availability.get(technician_id, [])]

    # --- Time-Off ---

    def add_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str) -> None:
        self.time_off[technician_id].append(TimeOffRecord(start=start, end=end, reason=reason))

    def remove_time_off(self, technician_id: str, start: datetime) -> bool:
        records = self.time_off.get(technician_id, [])
        kept = [r for r in records if r.start != start]
        self.time_off[technician_id] = kept
        return len(kept) < len(records)

    def get_time_off(
        self,
        technician_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[TimeOffRecord]:
        records = self.time_off.get(technician_id, [])
        lo = start or datetime.min
        hi = end or datetime.max
        return [r.model_copy() for r in records if r.overlaps(lo, hi)]

    # --- Weekly Schedules ---

    def create_schedule(self, schedule: WeeklySchedule) -> WeeklySchedule:
        if schedule.id in self.schedules:
            raise ValueError(f"Schedule {schedule.id} already exists")
        self.schedules[schedule.id] = schedule.model_copy(deep=True)
        return schedule.model_copy(deep=True)

    def get_schedule(self, schedule_id: str) -> Optional[WeeklySchedule]:
        schedule = self.schedules.get(schedule_id)
        return schedule.model_copy(deep=True) if schedule else None

    def update_schedule(self, schedule_id: str, updates: Dict[str, Any]) -> Optional[WeeklySchedule]:
        schedule = self.schedules.get(schedule_id)
        if not schedule:
            return None
        updated = schedule.model_copy(update={**updates, "updated_at": datetime.now()}, deep=True)
        self.schedules[schedule_id] = updated
        return updated.model_copy(deep=True)

    def delete_schedule(self, schedule_id: str) -> bool:
        return self.schedules.pop(schedule_id, None) is not None

    def list_schedules(
        self,
        user_id: str,
        technician_id: Optional[str] = None,
        week_start: Optional[date_type] = None,
        status: Optional[ScheduleStatus] = None
    ) -> List[WeeklySchedule]:
        results = []
        for schedule in self.schedules.values():
            if schedule.user_id != user_id:
                continue
            if technician_id is not None and schedule.technician_id != technician_id:
                continue
            if week_start is not None and schedule.week_start != week_start:
                continue
            if status is not None and schedule.status != status:
                continue
            results.append(schedule.model_copy(deep=True))
        results.sort(key=lambda s: (s.week_start, s.technician_id))
        return results

    def get_schedule_by_technician(
        self, user_id: str, technician_id: str, week_start: date_type
    ) -> Optional[WeeklySchedule]:
        matches = self.list_schedules(user_id, technician_id=technician_id, week_start=week_start)
        return matches[0] if matches else None

    def get_schedules_by_week(self, user_id: str, week_start: date_type) -> List[WeeklySchedule]:
        return self.list_schedules(user_id, week_start=week_start)


class InMemoryAppointmentStore:
    def __init__(self, appointments: Optional[List[Appointment]] = None):
        self.appointments: List[Appointment] = list(appointments or [])

    def add_appointment(self, appointment: Appointment) -> None:
        self.appointments.append(appointment)

    def list_appointments(
        self,
        user_id: str,
        technician_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Appointment]:
        results = []
        for apt in self.appointments:
            if apt.user_id != user_id:
                continue
            if technician_id is not None and apt.technician_id != technician_id:
                continue
            if start is not None and apt.start < start:
                continue
            if end is not None and apt.start >= end:
                continue
            results.append(apt.model_copy())
        results.sort(key=lambda a: a.start)
        return results


class InMemoryAuthorizationStore:
    def __init__(self, authorizations: Optional[List[Authorization]] = None):
        self.authorizations: List[Authorization] = list(authorizations or [])

    def add_authorization(self, authorization: Authorization) -> None:
        self.authorizations.append(authorization)

    def get_active_authorizations(
        self, user_id: str, client_id: Optional[str] = None
    ) -> List[Authorization]:
        return [
            a.model_copy() for a in self.authorizations
            if a.user_id == user_id
            and a.status == AuthorizationStatus.ACTIVE
            and (client_id is None or a.client_id == client_id)
        ]

    def get_authorization_for_service(
        self, user_id: str, client_id: str, service_code: str
    ) -> Optional[Authorization]:
        for auth in self.get_active_authorizations(user_id, client_id):
            if auth.service_code == service_code:
                return auth
        return None


class InMemoryClientStore:
    def __init__(self, clients: Optional[List[Client]] = None):
        self.clients: Dict[str, Client] = {c.id: c for c in (clients or [])}

    def add_client(self, client: Client) -> None:
        self.clients[client.id] = client

    def get_client(self, client_id: str) -> Optional[Client]:
        client = self.clients.get(client_id)
        return client.model_copy() if client else None

    def list_clients(self, user_id: str) -> List[Client]:
        return [c.model_copy() for c in self.clients.values() if c.user_id == user_id]


class RecordingEventSink:
    """Keeps every delivered event in order. Useful for tests and local runs."""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        logger.debug(f"Event delivered: {event.type.value}")
        self.events.append(event)
