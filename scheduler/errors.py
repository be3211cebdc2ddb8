"""
Exceptions raised by the scheduling core.
"""

from typing import List

from models import ScheduleConflict


class SchedulingError(Exception):
    """Base class for every error the scheduler raises on purpose."""


class AvailabilityValidationError(SchedulingError, ValueError):
    """A submitted availability slot is malformed. Nothing was stored."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid availability slot at position {index}: {reason}")


class TimeOffValidationError(SchedulingError, ValueError):
    """A time-off window does not end after it starts."""


class PublishBlockedError(SchedulingError):
    """Publishing was refused because error-severity conflicts remain."""

    def __init__(self, schedule_id: str, conflicts: List[ScheduleConflict]):
        self.schedule_id = schedule_id
        self.conflicts = conflicts
        details = "; ".join(c.description for c in conflicts)
        super().__init__(
            f"Cannot publish schedule {schedule_id} with {len(conflicts)} error(s): {details}"
        )
