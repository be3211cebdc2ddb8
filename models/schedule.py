"""
Schedule data models for the Session Scheduler.

This module defines the 'Output' of the optimization engine:
weekly per-technician schedules, the conflicts found in them and the
remediations proposed for those conflicts.
"""

from typing import Any, Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type, datetime


class ScheduleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    MODIFIED = "modified"


class ScheduleAssignment(BaseModel):
    """
    One session commitment inside a weekly schedule.
    Times are minutes from midnight on `day_of_week`.
    """
    id: Optional[str] = None
    client_id: str
    day_of_week: int = Field(ge=0, le=6, description="0=Monday, 6=Sunday")
    start_minute: int = Field(ge=0, le=1440)
    end_minute: int = Field(ge=0, le=1440)
    service_code: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def overlaps(self, other: "ScheduleAssignment") -> bool:
        return (
            self.day_of_week == other.day_of_week
            and self.start_minute < other.end_minute
            and self.end_minute > other.start_minute
        )


class ConflictType(str, Enum):
    DOUBLE_BOOKING = "double-booking"
    TRAVEL_TIME = "travel-time"
    OVERTIME = "overtime"
    CERTIFICATION_GAP = "certification-gap"
    PATIENT_PREFERENCE = "patient-preference"
    APPOINTMENT_OVERLAP = "appointment-overlap"
    AUTHORIZATION_MISSING = "authorization-missing"
    AUTHORIZATION_EXCEEDED = "authorization-exceeded"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ScheduleConflict(BaseModel):
    """A detected rule violation. Recomputed on demand, never stored on its own."""
    id: str
    type: ConflictType
    severity: Severity
    description: str
    schedule_id: Optional[str] = None
    technician_id: Optional[str] = None
    conflicting_assignments: List[ScheduleAssignment] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)


class WeeklySchedule(BaseModel):
    """A technician's assignment set for one week."""
    id: str
    user_id: str
    technician_id: str
    week_start: date_type
    week_end: date_type
    assignments: List[ScheduleAssignment] = Field(default_factory=list)

    # Derived
    scheduled_hours: float = 0.0
    available_hours: float = 0.0
    utilization_percent: float = 0.0
    conflicts: List[ScheduleConflict] = Field(default_factory=list)

    status: ScheduleStatus = ScheduleStatus.DRAFT
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def find_assignment(self, assignment_id: str) -> Optional[ScheduleAssignment]:
        for assignment in self.assignments:
            if assignment.id == assignment_id:
                return assignment
        return None

    def assignments_on(self, day_of_week: int) -> List[ScheduleAssignment]:
        return [a for a in self.assignments if a.day_of_week == day_of_week]

    def total_minutes(self) -> int:
        return sum(a.duration_minutes for a in self.assignments)

    def refresh_totals(self) -> None:
        """Recompute the derived hour fields from the assignment list."""
        self.scheduled_hours = self.total_minutes() / 60
        if self.available_hours > 0:
            self.utilization_percent = self.scheduled_hours / self.available_hours * 100
        else:
            self.utilization_percent = 0.0

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "sched_01",
            "user_id": "practice_01",
            "technician_id": "tech_01",
            "week_start": "2025-01-13",
            "week_end": "2025-01-20",
            "assignments": [
                {"id": "asg_01", "client_id": "client_01", "day_of_week": 0,
                 "start_minute": 540, "end_minute": 660,
                 "service_code": "97153", "location": "Springfield"}
            ],
            "status": "draft"
        }
    })


class SuggestionType(str, Enum):
    REASSIGN = "reassign"
    RESCHEDULE = "reschedule"
    SWAP = "swap"
    CANCEL = "cancel"
    SPLIT = "split"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestedChange(BaseModel):
    """A single directive inside a suggestion, e.g. action='move'."""
    assignment_id: Optional[str] = None
    action: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ResolutionSuggestion(BaseModel):
    type: SuggestionType
    description: str
    affected_assignments: List[str] = Field(default_factory=list)
    suggested_changes: List[SuggestedChange] = Field(default_factory=list)
    impact: Impact
