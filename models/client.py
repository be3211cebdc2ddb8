"""
Client-side data models for the Session Scheduler.

Clients are the 'Demand': each one carries an authorization budget
and, optionally, an explicit weekly preference describing how many
sessions to place and where in the week they may go.
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import date as date_type, datetime, timedelta


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCHARGED = "discharged"


class Client(BaseModel):
    """Care recipient with authorized service hours."""
    id: str = Field(description="Unique identifier for the client")
    user_id: str = Field(description="Owning practice / tenant")
    name: str = Field(min_length=1)
    status: ClientStatus = Field(default=ClientStatus.ACTIVE)
    assigned_technician_id: Optional[str] = Field(
        default=None,
        description="Technician the client usually sees; becomes the default preference"
    )
    location: Optional[str] = Field(default=None, description="City/zone where sessions happen")


class AuthorizationStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class Authorization(BaseModel):
    """
    Payer-approved budget of billable units for one service code.
    One unit is 15 minutes of service.
    """
    id: str
    user_id: str
    client_id: str
    service_code: str
    total_units: int = Field(ge=0)
    used_units: int = Field(default=0, ge=0)
    remaining_units: int = Field(ge=0)
    start_date: date_type
    end_date: date_type
    status: AuthorizationStatus = AuthorizationStatus.ACTIVE

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("Authorization end date cannot be before start date")
        return self

    @property
    def period_days(self) -> int:
        return (self.end_date - self.start_date).days


class Appointment(BaseModel):
    """An already-booked session, owned by the appointment system."""
    id: str
    user_id: str
    client_id: str
    technician_id: Optional[str] = None
    start: datetime
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    service_code: str = ""

    def end(self, default_minutes: int = 60) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes or default_minutes)


class ClientSchedulePreference(BaseModel):
    """Configuration for how a client's week should be filled."""

    preferred_technicians: List[str] = Field(
        default_factory=list,
        description="Technician IDs tried first; empty means anyone"
    )
    preferred_days: List[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Days of the week (0=Monday, 6=Sunday), tried in order"
    )
    preferred_time_start: int = Field(default=9 * 60, ge=0, le=1440)
    preferred_time_end: int = Field(default=17 * 60, ge=0, le=1440)
    sessions_per_week: int = Field(ge=0)
    session_duration_minutes: int = Field(default=120, ge=15, le=720)

    @field_validator('preferred_days')
    @classmethod
    def validate_days(cls, v):
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid day of week: {day}")
        return v

    @model_validator(mode='after')
    def validate_window(self):
        if self.preferred_time_end <= self.preferred_time_start:
            raise ValueError("Preferred window end must be after start")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "preferred_technicians": ["tech_01"],
            "preferred_days": [0, 2, 4],
            "preferred_time_start": 540,
            "preferred_time_end": 1020,
            "sessions_per_week": 3,
            "session_duration_minutes": 120
        }
    })
