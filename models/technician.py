"""
Technician-side data models for the Session Scheduler.

This module defines the 'Supply' side of the scheduler:
1. Technicians (mobile workers with a weekly hour budget)
2. Availability (recurring weekly slots)
3. Time-Off (records and the request workflow that produces them)
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator, ConfigDict
from datetime import date as date_type, datetime

MINUTES_PER_DAY = 1440


class TechnicianStatus(str, Enum):
    """Employment status of a technician."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on-leave"


class TechnicianProfile(BaseModel):
    """
    Mobile service provider assignable to client sessions.
    """
    id: str = Field(description="Unique identifier")
    user_id: str = Field(description="Owning practice / tenant")
    name: str = Field(min_length=1, description="Display name")
    status: TechnicianStatus = Field(default=TechnicianStatus.ACTIVE)

    # Capacity Constraint
    max_hours_per_week: float = Field(default=40, gt=0, description="Weekly hour budget")

    skills: List[str] = Field(default_factory=list)
    home_location: Optional[str] = Field(default=None, description="Starting point for travel")
    service_areas: List[str] = Field(
        default_factory=list,
        description="Cities/zones this technician works in"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "tech_01",
            "user_id": "practice_01",
            "name": "Sarah Jones",
            "max_hours_per_week": 30,
            "skills": ["early-intervention"],
            "home_location": "Springfield",
            "service_areas": ["Springfield", "Shelbyville"]
        }
    })


class AvailabilitySlot(BaseModel):
    """A recurring weekly window when a technician can take sessions."""
    id: Optional[str] = Field(default=None)
    technician_id: str
    day_of_week: int = Field(ge=0, le=6, description="0=Monday, 6=Sunday")
    start_minute: int = Field(ge=0, le=MINUTES_PER_DAY, description="Minutes from midnight")
    end_minute: int = Field(ge=0, le=MINUTES_PER_DAY, description="Minutes from midnight")
    is_recurring: bool = True

    @model_validator(mode='after')
    def validate_times(self):
        if self.start_minute >= self.end_minute:
            raise ValueError("End minute must be strictly after start minute")
        return self


class TimeOffRecord(BaseModel):
    """A committed period of unavailability."""
    start: datetime
    end: datetime
    reason: str = ""

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class TimeOffRequest(BaseModel):
    """
    A technician's request for time off.
    Starts PENDING and moves once to APPROVED or DENIED.
    """
    id: str
    technician_id: str
    start: datetime
    end: datetime
    reason: str = ""
    status: TimeOffStatus = TimeOffStatus.PENDING
    requested_at: datetime = Field(default_factory=datetime.now)
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != TimeOffStatus.PENDING


class AvailabilityBlock(BaseModel):
    """A materialized window on a concrete calendar date."""
    technician_id: str
    date: date_type
    start_minute: int
    end_minute: int
    available: bool = True
    reason: Optional[str] = None
