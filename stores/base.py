"""
Contracts for the external collaborators the scheduler consumes.

The scheduler core only ever talks to these protocols. Concrete
backends (database, HTTP, in-memory) live elsewhere.
"""

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional, Protocol

from models import (
    Appointment,
    Authorization,
    AvailabilitySlot,
    Client,
    DomainEvent,
    ScheduleStatus,
    TechnicianProfile,
    TimeOffRecord,
    WeeklySchedule,
)


class ScheduleStore(Protocol):
    """Technician profiles, weekly availability, time-off and persisted schedules."""

    # --- Technician Profiles ---
    def create_technician(self, profile: TechnicianProfile) -> TechnicianProfile: ...
    def get_technician(self, technician_id: str) -> Optional[TechnicianProfile]: ...
    def update_technician(self, technician_id: str, updates: Dict[str, Any]) -> Optional[TechnicianProfile]: ...
    def delete_technician(self, technician_id: str) -> bool: ...
    def list_technicians(self, user_id: str) -> List[TechnicianProfile]: ...
    def get_active_technicians(self, user_id: str) -> List[TechnicianProfile]: ...
    def get_technicians_by_skill(self, user_id: str, skill: str) -> List[TechnicianProfile]: ...
    def get_technicians_by_location(self, user_id: str, location: str) -> List[TechnicianProfile]: ...

    # --- Availability ---
    def set_availability(self, technician_id: str, slots: List[AvailabilitySlot]) -> None: ...
    def get_availability(self, technician_id: str) -> List[AvailabilitySlot]: ...

    # --- Time-Off ---
    def add_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str) -> None: ...
    def remove_time_off(self, technician_id: str, start: datetime) -> bool: ...
    def get_time_off(
        self,
        technician_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[TimeOffRecord]: ...

    # --- Weekly Schedules ---
    def create_schedule(self, schedule: WeeklySchedule) -> WeeklySchedule: ...
    def get_schedule(self, schedule_id: str) -> Optional[WeeklySchedule]: ...
    def update_schedule(self, schedule_id: str, updates: Dict[str, Any]) -> Optional[WeeklySchedule]: ...
    def delete_schedule(self, schedule_id: str) -> bool: ...
    def list_schedules(
        self,
        user_id: str,
        technician_id: Optional[str] = None,
        week_start: Optional[date_type] = None,
        status: Optional[ScheduleStatus] = None
    ) -> List[WeeklySchedule]: ...
    def get_schedule_by_technician(
        self, user_id: str, technician_id: str, week_start: date_type
    ) -> Optional[WeeklySchedule]: ...
    def get_schedules_by_week(self, user_id: str, week_start: date_type) -> List[WeeklySchedule]: ...


class AppointmentStore(Protocol):
    def list_appointments(
        self,
        user_id: str,
        technician_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Appointment]: ...


class AuthorizationStore(Protocol):
    def get_active_authorizations(
        self, user_id: str, client_id: Optional[str] = None
    ) -> List[Authorization]: ...

    def get_authorization_for_service(
        self, user_id: str, client_id: str, service_code: str
    ) -> Optional[Authorization]: ...


class ClientStore(Protocol):
    def get_client(self, client_id: str) -> Optional[Client]: ...


class EventSink(Protocol):
    """Fire-and-forget receiver for domain events."""
    def publish(self, event: DomainEvent) -> None: ...
