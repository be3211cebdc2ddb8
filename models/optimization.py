"""
Request and result models for a weekly optimization run.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type

from .client import ClientSchedulePreference
from .events import DomainEvent
from .schedule import WeeklySchedule


class OptimizationConstraints(BaseModel):
    max_hours_per_day: Optional[float] = Field(default=None, gt=0)
    max_hours_per_week: Optional[float] = Field(default=None, gt=0)
    min_break_minutes: int = Field(default=0, ge=0, description="Gap kept around every session")
    preferred_locations: List[str] = Field(default_factory=list)
    exclude_technicians: List[str] = Field(default_factory=list)
    client_preferences: Dict[str, ClientSchedulePreference] = Field(
        default_factory=dict,
        description="Per-client overrides keyed by client id"
    )


class OptimizationPriorities(BaseModel):
    """Weights (0-1) for each post-processing objective. Zero disables the pass."""
    minimize_travel_time: float = Field(default=0.0, ge=0, le=1)
    maximize_utilization: float = Field(default=0.0, ge=0, le=1)
    balance_workload: float = Field(default=0.0, ge=0, le=1)
    respect_preferences: float = Field(default=0.0, ge=0, le=1)


class OptimizationRequest(BaseModel):
    user_id: str
    week_start: date_type
    constraints: OptimizationConstraints = Field(default_factory=OptimizationConstraints)
    priorities: OptimizationPriorities = Field(default_factory=OptimizationPriorities)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "practice_01",
            "week_start": "2025-01-13",
            "constraints": {"max_hours_per_day": 8, "exclude_technicians": ["tech_09"]},
            "priorities": {"minimize_travel_time": 0.5, "balance_workload": 1.0}
        }
    })


class OptimizationMetrics(BaseModel):
    total_sessions: int = 0
    total_hours: float = 0.0
    average_travel_time: float = 0.0
    utilization_percent: float = 0.0
    preferences_met_percent: float = 100.0
    workload_variance: float = 0.0


class OptimizationResult(BaseModel):
    success: bool
    schedules: List[WeeklySchedule] = Field(default_factory=list)
    metrics: OptimizationMetrics = Field(default_factory=OptimizationMetrics)
    unassigned_clients: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    events: List[DomainEvent] = Field(default_factory=list)
