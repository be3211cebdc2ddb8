"""
Conflict Detection & Resolution.

This module answers "What is wrong with this week?" and "How could it be fixed?".
Four independent rules run over a schedule:
1. Double-booking (a technician in two sessions at once)
2. Travel time (not enough gap to drive between locations)
3. Appointment overlap (clash with an already-booked appointment)
4. Authorization (no budget, or more units than the budget allows)
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, time as time_type, timedelta
from typing import Any, Dict, List, Optional

from models import (
    ConflictType,
    EventType,
    Impact,
    ResolutionSuggestion,
    ScheduleAssignment,
    ScheduleConflict,
    Severity,
    SuggestedChange,
    SuggestionType,
    WeeklySchedule,
)
from .config import SchedulerConfig
from .events import EventOutbox
from .ids import IdGenerator, uuid_ids
from .timeutils import date_for_day_of_week, day_name, format_minutes, minutes_of
from .travel import estimate_travel_time

logger = logging.getLogger(__name__)


def times_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Standard Overlap Logic: StartA < EndB and EndA > StartB"""
    return start1 < end2 and end1 > start2


def units_for_minutes(minutes: int, units_per_hour: int = 4) -> int:
    """Billable units for one session, rounded up."""
    return math.ceil(minutes / 60 * units_per_hour)


class ConflictResolver:
    """
    Detects schedule conflicts and proposes remediations.
    """

    def __init__(
        self,
        schedule_store,
        appointment_store,
        authorization_store,
        config: Optional[SchedulerConfig] = None,
        id_generator: IdGenerator = uuid_ids
    ):
        self.schedule_store = schedule_store
        self.appointment_store = appointment_store
        self.authorization_store = authorization_store
        self.config = config or SchedulerConfig()
        self.new_id = id_generator
        self.outbox = EventOutbox()

    def detect_conflicts(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        """
        Master detection function. Runs every rule and concatenates the results.
        An empty list means the schedule is clean.
        """
        conflicts: List[ScheduleConflict] = []
        conflicts.extend(self._detect_double_bookings(schedule))
        conflicts.extend(self._detect_travel_conflicts(schedule))
        conflicts.extend(self._detect_appointment_conflicts(schedule))
        conflicts.extend(self._detect_authorization_conflicts(schedule))

        if conflicts:
            logger.debug(f"Schedule {schedule.id}: {len(conflicts)} conflict(s) detected")
        return conflicts

    def _conflict(
        self,
        schedule: WeeklySchedule,
        conflict_type: ConflictType,
        severity: Severity,
        description: str,
        assignments: List[ScheduleAssignment],
        metadata: Optional[Dict[str, Any]] = None
    ) -> ScheduleConflict:
        return ScheduleConflict(
            id=self.new_id(),
            type=conflict_type,
            severity=severity,
            description=description,
            schedule_id=schedule.id,
            technician_id=schedule.technician_id,
            conflicting_assignments=[a.model_copy() for a in assignments],
            metadata=metadata or {},
        )

    # --- Rule 1: Double-Booking ---

    def _detect_double_bookings(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        conflicts = []
        assignments = schedule.assignments

        for i in range(len(assignments)):
            for j in range(i + 1, len(assignments)):
                a1, a2 = assignments[i], assignments[j]
                if a1.overlaps(a2):
                    conflicts.append(self._conflict(
                        schedule,
                        ConflictType.DOUBLE_BOOKING,
                        Severity.ERROR,
                        f"Double booking on {day_name(a1.day_of_week)}: "
                        f"{format_minutes(a1.start_minute)}-{format_minutes(a1.end_minute)} overlaps with "
                        f"{format_minutes(a2.start_minute)}-{format_minutes(a2.end_minute)}",
                        [a1, a2],
                    ))
        return conflicts

    # --- Rule 2: Travel Time ---

    def _detect_travel_conflicts(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        conflicts = []
        by_day: Dict[int, List[ScheduleAssignment]] = defaultdict(list)
        for assignment in schedule.assignments:
            by_day[assignment.day_of_week].append(assignment)

        for day, day_assignments in by_day.items():
            ordered = sorted(day_assignments, key=lambda a: a.start_minute)

            for current, following in zip(ordered, ordered[1:]):
                if current.location == following.location:
                    continue

                travel_needed = estimate_travel_time(
                    current.location, following.location, self.config.default_travel_minutes
                )
                time_between = following.start_minute - current.end_minute

                if time_between < travel_needed:
                    conflicts.append(self._conflict(
                        schedule,
                        ConflictType.TRAVEL_TIME,
                        Severity.WARNING,
                        f"Insufficient travel time on {day_name(day)}: "
                        f"{time_between} minutes between appointments, "
                        f"{travel_needed} minutes needed for travel",
                        [current, following],
                        {
                            "travel_time_needed": travel_needed,
                            "time_between": time_between,
                            "from_location": current.location,
                            "to_location": following.location,
                        },
                    ))
        return conflicts

    # --- Rule 3: Existing Appointments ---

    def _detect_appointment_conflicts(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        conflicts = []
        if not schedule.assignments:
            return conflicts

        window_start = datetime.combine(schedule.week_start, time_type.min)
        window_end = window_start + timedelta(days=7)
        appointments = self.appointment_store.list_appointments(
            schedule.user_id,
            technician_id=schedule.technician_id,
            start=window_start,
            end=window_end,
        )

        for assignment in schedule.assignments:
            assignment_date = date_for_day_of_week(schedule.week_start, assignment.day_of_week)

            for apt in appointments:
                # Same client is assumed to be the session itself
                if apt.client_id == assignment.client_id:
                    continue
                if apt.start.date() != assignment_date:
                    continue

                apt_start = minutes_of(apt.start)
                apt_end = apt_start + (apt.duration_minutes or self.config.default_appointment_minutes)

                if times_overlap(assignment.start_minute, assignment.end_minute, apt_start, apt_end):
                    conflicts.append(self._conflict(
                        schedule,
                        ConflictType.APPOINTMENT_OVERLAP,
                        Severity.ERROR,
                        f"Schedule conflicts with existing appointment on {day_name(assignment.day_of_week)}",
                        [assignment],
                        {
                            "appointment_id": apt.id,
                            "appointment_client_id": apt.client_id,
                        },
                    ))
        return conflicts

    # --- Rule 4: Authorization Budget ---

    def _detect_authorization_conflicts(self, schedule: WeeklySchedule) -> List[ScheduleConflict]:
        conflicts = []
        by_client: Dict[str, List[ScheduleAssignment]] = defaultdict(list)
        for assignment in schedule.assignments:
            by_client[assignment.client_id].append(assignment)

        for client_id, assignments in by_client.items():
            service_code = assignments[0].service_code
            if not service_code:
                continue

            auth = self.authorization_store.get_authorization_for_service(
                schedule.user_id, client_id, service_code
            )

            if not auth:
                conflicts.append(self._conflict(
                    schedule,
                    ConflictType.AUTHORIZATION_MISSING,
                    Severity.ERROR,
                    f"No active authorization found for client {client_id}",
                    assignments,
                    {"client_id": client_id},
                ))
                continue

            total_units = sum(
                units_for_minutes(a.duration_minutes, self.config.units_per_hour) for a in assignments
            )

            if total_units > auth.remaining_units:
                conflicts.append(self._conflict(
                    schedule,
                    ConflictType.AUTHORIZATION_EXCEEDED,
                    Severity.WARNING,
                    f"Week's schedule ({total_units} units) would exceed "
                    f"authorization balance ({auth.remaining_units} units)",
                    assignments,
                    {
                        "client_id": client_id,
                        "units_scheduled": total_units,
                        "units_remaining": auth.remaining_units,
                        "authorization_id": auth.id,
                    },
                ))
        return conflicts

    # --- Suggestions ---

    def suggest_resolutions(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        """Heuristic fixes, best first. Unknown conflict types get none."""
        handlers = {
            ConflictType.DOUBLE_BOOKING: self._suggest_double_booking,
            ConflictType.TRAVEL_TIME: self._suggest_travel_time,
            ConflictType.AUTHORIZATION_EXCEEDED: self._suggest_authorization,
            ConflictType.APPOINTMENT_OVERLAP: self._suggest_appointment_overlap,
        }
        handler = handlers.get(conflict.type)
        return handler(conflict) if handler else []

    def _suggest_double_booking(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        assignments = conflict.conflicting_assignments
        if len(assignments) < 2:
            return []
        a1, a2 = assignments[0], assignments[1]
        new_start = a1.end_minute + self.config.reschedule_buffer_minutes

        return [
            ResolutionSuggestion(
                type=SuggestionType.RESCHEDULE,
                description=f"Reschedule {a2.client_id}'s session to a different time",
                affected_assignments=[a2.id or ""],
                suggested_changes=[SuggestedChange(
                    assignment_id=a2.id,
                    action="move",
                    details={
                        "new_start_minute": new_start,
                        "new_end_minute": new_start + a2.duration_minutes,
                    },
                )],
                impact=Impact.MEDIUM,
            ),
            ResolutionSuggestion(
                type=SuggestionType.REASSIGN,
                description=f"Assign {a2.client_id}'s session to a different technician",
                affected_assignments=[a2.id or ""],
                suggested_changes=[SuggestedChange(
                    assignment_id=a2.id,
                    action="reassign",
                    details={"find_available_technician": True},
                )],
                impact=Impact.LOW,
            ),
        ]

    def _suggest_travel_time(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        assignments = conflict.conflicting_assignments
        if len(assignments) < 2:
            return []
        a1, a2 = assignments[0], assignments[1]
        travel = conflict.metadata.get("travel_time_needed", self.config.default_travel_minutes)
        new_start = a1.end_minute + travel

        return [
            ResolutionSuggestion(
                type=SuggestionType.RESCHEDULE,
                description="Move second appointment later to allow for travel time",
                affected_assignments=[a2.id or ""],
                suggested_changes=[SuggestedChange(
                    assignment_id=a2.id,
                    action="move",
                    details={
                        "new_start_minute": new_start,
                        "new_end_minute": new_start + a2.duration_minutes,
                    },
                )],
                impact=Impact.LOW,
            ),
            ResolutionSuggestion(
                type=SuggestionType.SWAP,
                description="Swap order of appointments (may reduce travel)",
                affected_assignments=[a1.id or "", a2.id or ""],
                suggested_changes=[
                    SuggestedChange(
                        assignment_id=a1.id,
                        action="move",
                        details={"new_start_minute": a2.start_minute, "new_end_minute": a2.end_minute},
                    ),
                    SuggestedChange(
                        assignment_id=a2.id,
                        action="move",
                        details={"new_start_minute": a1.start_minute, "new_end_minute": a1.end_minute},
                    ),
                ],
                impact=Impact.MEDIUM,
            ),
        ]

    def _suggest_authorization(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        assignments = conflict.conflicting_assignments
        units_remaining = conflict.metadata.get("units_remaining")

        return [
            ResolutionSuggestion(
                type=SuggestionType.RESCHEDULE,
                description="Reduce session durations to stay within authorization limit",
                affected_assignments=[a.id or "" for a in assignments],
                suggested_changes=[SuggestedChange(
                    action="reduce-duration",
                    details={"max_units": units_remaining},
                )],
                impact=Impact.MEDIUM,
            ),
            ResolutionSuggestion(
                type=SuggestionType.CANCEL,
                description="Cancel some sessions to stay within authorization limit",
                affected_assignments=[a.id or "" for a in assignments[1:]],
                suggested_changes=[SuggestedChange(
                    action="cancel",
                    details={"reason": "Insufficient authorization units"},
                )],
                impact=Impact.HIGH,
            ),
        ]

    def _suggest_appointment_overlap(self, conflict: ScheduleConflict) -> List[ResolutionSuggestion]:
        # No slot search here; the caller supplies the alternate time.
        return [
            ResolutionSuggestion(
                type=SuggestionType.RESCHEDULE,
                description="Reschedule the new assignment to avoid existing appointment",
                affected_assignments=[a.id or "" for a in conflict.conflicting_assignments],
                suggested_changes=[SuggestedChange(action="find-alternate-time")],
                impact=Impact.MEDIUM,
            ),
        ]

    # --- Application ---

    def apply_resolution(self, schedule_id: str, suggestion: ResolutionSuggestion) -> bool:
        """
        Execute the 'move' directives of a suggestion against the stored schedule.
        Every other action (reassign, cancel, reduce-duration, ...) is advisory
        and left to the caller.
        """
        schedule = self.schedule_store.get_schedule(schedule_id)
        if not schedule:
            logger.warning(f"Cannot apply resolution: schedule {schedule_id} not found")
            return False

        moved = 0
        for change in suggestion.suggested_changes:
            if change.action != "move" or not change.assignment_id:
                continue
            assignment = schedule.find_assignment(change.assignment_id)
            new_start = change.details.get("new_start_minute")
            new_end = change.details.get("new_end_minute")
            if assignment and new_start is not None and new_end is not None:
                assignment.start_minute = new_start
                assignment.end_minute = new_end
                moved += 1

        schedule.refresh_totals()
        self.schedule_store.update_schedule(schedule_id, {
            "assignments": schedule.assignments,
            "scheduled_hours": schedule.scheduled_hours,
            "utilization_percent": schedule.utilization_percent,
        })
        logger.info(f"Applied {suggestion.type.value} to {schedule_id} ({moved} move(s))")

        self.outbox.record(
            EventType.CONFLICT_RESOLVED,
            schedule_id=schedule_id,
            resolution_type=suggestion.type.value,
        )
        return True
