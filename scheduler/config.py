"""
Tunables for the scheduling core.

Defaults mirror the constants the business runs on today; each one can be
overridden through a SCHEDULER_* environment variable.
"""

import os
from typing import List
from pydantic import BaseModel, Field

ENV_PREFIX = "SCHEDULER_"


class SchedulerConfig(BaseModel):
    # --- Travel (placeholder model, no geocoding) ---
    default_travel_minutes: int = Field(default=30, ge=0)
    route_buffer_minutes: int = Field(default=15, ge=0, description="Gap between re-timed route stops")
    reschedule_buffer_minutes: int = Field(default=15, ge=0, description="Gap used by double-booking fixes")

    # --- Billing ---
    units_per_hour: int = Field(default=4, ge=1)

    # --- Workload ---
    standard_week_hours: float = Field(default=40, gt=0, description="Denominator for utilization")
    overload_tolerance: float = Field(default=1.1, ge=1.0)
    underload_tolerance: float = Field(default=0.9, gt=0, le=1.0)

    # --- Derived demand defaults ---
    default_session_minutes: int = Field(default=120, ge=15)
    default_window_start: int = Field(default=9 * 60, ge=0, le=1440)
    default_window_end: int = Field(default=17 * 60, ge=0, le=1440)
    default_preferred_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    default_sessions_per_week: int = Field(default=3, ge=0)
    default_service_code: str = "97153"

    # --- External bookings ---
    default_appointment_minutes: int = Field(default=60, ge=1)

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Build a config, overriding any field that has a SCHEDULER_<FIELD> variable set."""
        overrides = {}
        for name in cls.model_fields:
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "default_preferred_days":
                overrides[name] = [int(d) for d in raw.split(",") if d.strip()]
            else:
                overrides[name] = raw
        return cls.model_validate(overrides)
