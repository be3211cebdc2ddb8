"""
Optimizer State Management.

This module acts as the 'Memory' of one optimization run.
It tracks:
1. The draft schedule of every technician (keyed by technician id).
2. Workload queries used by the placement checks.
3. Shortfall reporting for clients that could not be fully placed.

A state object belongs to exactly one run; nothing here is shared.
"""

from datetime import date as date_type, timedelta
from typing import Dict, List, Any
from dataclasses import dataclass

from models import ScheduleAssignment, TechnicianProfile, WeeklySchedule
from .ids import IdGenerator


@dataclass
class Shortfall:
    """A client whose weekly quota was not met."""
    client_id: str
    client_name: str
    sessions_needed: int
    sessions_assigned: int

    @property
    def is_partial(self) -> bool:
        return self.sessions_assigned > 0


class OptimizationState:
    """
    Working set of draft schedules for one optimization run.
    """

    def __init__(self, user_id: str, week_start: date_type, id_generator: IdGenerator):
        self.user_id = user_id
        self.week_start = week_start
        self.week_end = week_start + timedelta(days=7)
        self.new_id = id_generator

        # technician_id -> draft
        self.drafts: Dict[str, WeeklySchedule] = {}

        self.shortfalls: List[Shortfall] = []

    def seed(self, technicians: List[TechnicianProfile]) -> None:
        """One empty draft per technician."""
        for tech in technicians:
            self.drafts[tech.id] = WeeklySchedule(
                id=self.new_id(),
                user_id=self.user_id,
                technician_id=tech.id,
                week_start=self.week_start,
                week_end=self.week_end,
                available_hours=tech.max_hours_per_week,
            )

    def draft_for(self, technician_id: str) -> WeeklySchedule:
        return self.drafts[technician_id]

    def add_assignment(self, technician_id: str, assignment: ScheduleAssignment) -> None:
        if not assignment.id:
            assignment.id = self.new_id()
        self.drafts[technician_id].assignments.append(assignment)

    def move_assignment(self, assignment: ScheduleAssignment, source_id: str, target_id: str) -> None:
        self.drafts[source_id].assignments.remove(assignment)
        self.drafts[target_id].assignments.append(assignment)

    def record_shortfall(self, client_id: str, client_name: str, needed: int, assigned: int) -> None:
        self.shortfalls.append(Shortfall(client_id, client_name, needed, assigned))

    # --- Query Methods (used by the engine's checks) ---

    def is_slot_free(self, technician_id: str, day_of_week: int, start: int, end: int, padding: int = 0) -> bool:
        """No existing assignment on that day within [start - padding, end + padding)."""
        for assignment in self.drafts[technician_id].assignments:
            if assignment.day_of_week != day_of_week:
                continue
            if start - padding < assignment.end_minute and end + padding > assignment.start_minute:
                return False
        return True

    def day_hours(self, technician_id: str, day_of_week: int) -> float:
        minutes = sum(a.duration_minutes for a in self.drafts[technician_id].assignments_on(day_of_week))
        return minutes / 60

    def week_hours(self, technician_id: str) -> float:
        return self.drafts[technician_id].total_minutes() / 60

    def hours_by_technician(self) -> Dict[str, float]:
        return {tid: self.week_hours(tid) for tid in self.drafts}

    def schedules(self) -> List[WeeklySchedule]:
        return list(self.drafts.values())

    # --- Reporting ---

    def get_shortfall_report(self) -> List[Dict[str, Any]]:
        report = [
            {
                "client_id": s.client_id,
                "client_name": s.client_name,
                "sessions_needed": s.sessions_needed,
                "sessions_assigned": s.sessions_assigned,
                "status": "partial" if s.is_partial else "unassigned",
            }
            for s in self.shortfalls
        ]
        # Biggest gaps first
        report.sort(key=lambda r: r["sessions_needed"] - r["sessions_assigned"], reverse=True)
        return report

