"""
Scheduling Service.

Single entry point for embedding the scheduler behind a service boundary.
Composes the availability manager, the conflict resolver and the
optimization engine with the external stores, and collects their events.
"""

import logging
from datetime import date as date_type, datetime, timedelta
from typing import Any, Dict, List, Optional

from models import (
    AvailabilityBlock,
    AvailabilitySlot,
    DomainEvent,
    EventType,
    OptimizationRequest,
    OptimizationResult,
    ResolutionSuggestion,
    ScheduleAssignment,
    ScheduleConflict,
    ScheduleStatus,
    Severity,
    TechnicianProfile,
    TimeOffRequest,
    WeeklySchedule,
)
from .availability import AvailabilityManager, SlotInput
from .config import SchedulerConfig
from .conflicts import ConflictResolver
from .engine import OptimizationEngine
from .errors import PublishBlockedError
from .events import EventOutbox, deliver
from .ids import IdGenerator, uuid_ids
from . import timeutils

logger = logging.getLogger(__name__)


class SchedulingService:
    def __init__(
        self,
        schedule_store,
        client_store,
        appointment_store,
        authorization_store,
        config: Optional[SchedulerConfig] = None,
        id_generator: IdGenerator = uuid_ids
    ):
        self.schedule_store = schedule_store
        self.config = config or SchedulerConfig()
        self.new_id = id_generator
        self.outbox = EventOutbox()

        self.availability = AvailabilityManager(schedule_store, id_generator=id_generator)
        self.conflicts = ConflictResolver(
            schedule_store,
            appointment_store,
            authorization_store,
            config=self.config,
            id_generator=id_generator,
        )
        self.engine = OptimizationEngine(
            schedule_store,
            client_store,
            authorization_store,
            self.availability,
            self.conflicts,
            config=self.config,
            id_generator=id_generator,
        )

    # --- Events ---

    def drain_events(self) -> List[DomainEvent]:
        """Everything recorded since the last drain, across all components, oldest first."""
        events = (
            self.availability.outbox.drain()
            + self.conflicts.outbox.drain()
            + self.outbox.drain()
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    def dispatch_events(self, sink) -> int:
        """Deliver pending events to `sink`. Delivery failures never propagate."""
        return deliver(self.drain_events(), sink)

    # --- Technician Profiles ---

    def create_technician(self, profile: TechnicianProfile) -> TechnicianProfile:
        created = self.schedule_store.create_technician(profile)
        self.outbox.record(EventType.TECHNICIAN_CREATED, technician_id=created.id)
        return created

    def get_technician(self, technician_id: str) -> Optional[TechnicianProfile]:
        return self.schedule_store.get_technician(technician_id)

    def update_technician(self, technician_id: str, updates: Dict[str, Any]) -> Optional[TechnicianProfile]:
        return self.schedule_store.update_technician(technician_id, updates)

    def delete_technician(self, technician_id: str) -> bool:
        return self.schedule_store.delete_technician(technician_id)

    def list_technicians(self, user_id: str) -> List[TechnicianProfile]:
        return self.schedule_store.list_technicians(user_id)

    def get_active_technicians(self, user_id: str) -> List[TechnicianProfile]:
        return self.schedule_store.get_active_technicians(user_id)

    def get_technicians_by_skill(self, user_id: str, skill: str) -> List[TechnicianProfile]:
        return self.schedule_store.get_technicians_by_skill(user_id, skill)

    def get_technicians_by_location(self, user_id: str, location: str) -> List[TechnicianProfile]:
        return self.schedule_store.get_technicians_by_location(user_id, location)

    # --- Availability & Time-Off ---

    def set_availability(self, technician_id: str, slots: List[SlotInput]) -> List[AvailabilitySlot]:
        return self.availability.set_availability(technician_id, slots)

    def get_availability(self, technician_id: str) -> List[AvailabilitySlot]:
        return self.availability.get_availability(technician_id)

    def get_availability_blocks(
        self, technician_id: str, range_start: date_type, range_end: date_type
    ) -> List[AvailabilityBlock]:
        return self.availability.get_availability_blocks(technician_id, range_start, range_end)

    def is_available(self, technician_id: str, day: date_type, start_minute: int, end_minute: int) -> bool:
        return self.availability.is_available(technician_id, day, start_minute, end_minute)

    def get_available_technicians(
        self, user_id: str, day: date_type, start_minute: int, end_minute: int
    ) -> List[TechnicianProfile]:
        return self.availability.get_available_technicians(user_id, day, start_minute, end_minute)

    def request_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str = "") -> TimeOffRequest:
        return self.availability.request_time_off(technician_id, start, end, reason)

    def approve_time_off(self, request_id: str, approved_by: str) -> Optional[TimeOffRequest]:
        return self.availability.approve_time_off(request_id, approved_by)

    def deny_time_off(self, request_id: str, denied_by: str) -> Optional[TimeOffRequest]:
        return self.availability.deny_time_off(request_id, denied_by)

    def add_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str = "") -> None:
        self.availability.add_time_off(technician_id, start, end, reason)

    def remove_time_off(self, technician_id: str, start: datetime) -> bool:
        return self.availability.remove_time_off(technician_id, start)

    def get_pending_time_off_requests(self) -> List[TimeOffRequest]:
        return self.availability.get_pending_time_off_requests()

    # --- Schedules ---

    def create_schedule(self, schedule: WeeklySchedule) -> WeeklySchedule:
        if not schedule.id:
            schedule = schedule.model_copy(update={"id": self.new_id()})
        created = self.schedule_store.create_schedule(schedule)
        self.outbox.record(
            EventType.SCHEDULE_CREATED,
            schedule_id=created.id,
            technician_id=created.technician_id,
            week_start=created.week_start.isoformat(),
        )
        return created

    def get_schedule(self, schedule_id: str) -> Optional[WeeklySchedule]:
        return self.schedule_store.get_schedule(schedule_id)

    def update_schedule(self, schedule_id: str, updates: Dict[str, Any]) -> Optional[WeeklySchedule]:
        updated = self.schedule_store.update_schedule(schedule_id, updates)
        if updated:
            self.outbox.record(
                EventType.SCHEDULE_UPDATED,
                schedule_id=schedule_id,
                updates=sorted(updates),
            )
        return updated

    def delete_schedule(self, schedule_id: str) -> bool:
        return self.schedule_store.delete_schedule(schedule_id)

    def list_schedules(self, user_id: str, **filters: Any) -> List[WeeklySchedule]:
        return self.schedule_store.list_schedules(user_id, **filters)

    def get_schedule_by_technician(
        self, user_id: str, technician_id: str, week_start: date_type
    ) -> Optional[WeeklySchedule]:
        return self.schedule_store.get_schedule_by_technician(user_id, technician_id, week_start)

    def get_schedules_by_week(self, user_id: str, week_start: date_type) -> List[WeeklySchedule]:
        return self.schedule_store.get_schedules_by_week(user_id, week_start)

    def add_assignment(self, schedule_id: str, assignment: ScheduleAssignment) -> Optional[WeeklySchedule]:
        """
        Append a session. The status is left untouched, even on a
        published schedule; callers flag MODIFIED explicitly if they want it.
        """
        schedule = self.schedule_store.get_schedule(schedule_id)
        if not schedule:
            return None

        schedule.assignments.append(assignment.model_copy(update={"id": assignment.id or self.new_id()}))
        return self._store_assignments(schedule)

    def remove_assignment(self, schedule_id: str, assignment_id: str) -> Optional[WeeklySchedule]:
        schedule = self.schedule_store.get_schedule(schedule_id)
        if not schedule:
            return None

        schedule.assignments = [a for a in schedule.assignments if a.id != assignment_id]
        return self._store_assignments(schedule)

    def _store_assignments(self, schedule: WeeklySchedule) -> Optional[WeeklySchedule]:
        schedule.refresh_totals()
        return self.schedule_store.update_schedule(schedule.id, {
            "assignments": schedule.assignments,
            "scheduled_hours": schedule.scheduled_hours,
            "utilization_percent": schedule.utilization_percent,
        })

    def publish_schedule(self, schedule_id: str) -> Optional[WeeklySchedule]:
        """
        Finalize a schedule.
        Raises PublishBlockedError while any error-severity conflict remains.
        """
        schedule = self.schedule_store.get_schedule(schedule_id)
        if not schedule:
            return None

        conflicts = self.conflicts.detect_conflicts(schedule)
        blocking = [c for c in conflicts if c.severity == Severity.ERROR]
        if blocking:
            logger.warning(f"Publish refused for {schedule_id}: {len(blocking)} blocking conflict(s)")
            raise PublishBlockedError(schedule_id, blocking)

        updated = self.schedule_store.update_schedule(schedule_id, {
            "status": ScheduleStatus.PUBLISHED,
            "published_at": datetime.now(),
            "conflicts": conflicts,
        })
        if updated:
            logger.info(f"Published schedule {schedule_id}")
            self.outbox.record(
                EventType.SCHEDULE_PUBLISHED,
                schedule_id=schedule_id,
                technician_id=schedule.technician_id,
            )
        return updated

    # --- Conflicts ---

    def detect_conflicts(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        return self.conflicts.detect_conflicts(schedule)

    def suggest_resolutions(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        return self.conflicts.suggest_resolutions(conflict)

    def apply_resolution(self, schedule_id: str, suggestion: ResolutionSuggestion) -> bool:
        return self.conflicts.apply_resolution(schedule_id, suggestion)

    # --- Optimization ---

    def optimize_schedules(self, request: OptimizationRequest) -> OptimizationResult:
        result = self.engine.optimize(request)
        self.outbox.extend(result.events)
        return result

    def save_optimized_schedules(self, result: OptimizationResult, replace: bool = False) -> List[WeeklySchedule]:
        """Persist every draft of a run as a fresh DRAFT schedule."""
        saved = []
        for schedule in result.schedules:
            if replace:
                existing = self.schedule_store.get_schedule_by_technician(
                    schedule.user_id, schedule.technician_id, schedule.week_start
                )
                if existing:
                    self.schedule_store.delete_schedule(existing.id)

            draft = schedule.model_copy(update={
                "id": self.new_id(),
                "status": ScheduleStatus.DRAFT,
                "published_at": None,
            }, deep=True)
            saved.append(self.create_schedule(draft))

        logger.info(f"Saved {len(saved)} optimized schedule(s)")
        return saved

    # --- Utilities ---

    def get_scheduling_stats(self, user_id: str, week_start: date_type) -> Dict[str, Any]:
        technicians = self.schedule_store.get_active_technicians(user_id)
        schedules = self.schedule_store.get_schedules_by_week(user_id, week_start)

        total_assignments = 0
        total_minutes = 0
        conflict_count = 0
        for schedule in schedules:
            total_assignments += len(schedule.assignments)
            total_minutes += schedule.total_minutes()
            conflict_count += len(self.conflicts.detect_conflicts(schedule))

        total_hours = total_minutes / 60
        max_possible_hours = len(technicians) * self.config.standard_week_hours

        return {
            "total_technicians": len(technicians),
            "scheduled_technicians": len(schedules),
            "total_assignments": total_assignments,
            "total_hours": total_hours,
            "conflict_count": conflict_count,
            "utilization_percent": (total_hours / max_possible_hours * 100) if max_possible_hours else 0.0,
        }

    @staticmethod
    def week_start_for(day: date_type) -> date_type:
        return timeutils.week_start_for(day)

    @staticmethod
    def week_end_for(week_start: date_type) -> date_type:
        return week_start + timedelta(days=7)
