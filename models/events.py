"""
Domain events produced by the scheduler.

Components never talk to subscribers directly; they hand these back
to the caller, who decides where to deliver them.
"""

from enum import Enum
from typing import Any, Dict
from pydantic import BaseModel, Field
from datetime import datetime


class EventType(str, Enum):
    AVAILABILITY_UPDATED = "schedule:availability-updated"
    TIME_OFF_REQUESTED = "schedule:time-off-requested"
    TIME_OFF_APPROVED = "schedule:time-off-approved"
    TIME_OFF_DENIED = "schedule:time-off-denied"
    TIME_OFF_ADDED = "schedule:time-off-added"
    TIME_OFF_REMOVED = "schedule:time-off-removed"
    TECHNICIAN_CREATED = "technician:created"
    SCHEDULE_CREATED = "schedule:created"
    SCHEDULE_UPDATED = "schedule:updated"
    SCHEDULE_PUBLISHED = "schedule:published"
    CONFLICT_RESOLVED = "schedule:conflict-resolved"
    SCHEDULE_OPTIMIZED = "schedule:optimized"


class DomainEvent(BaseModel):
    type: EventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)
