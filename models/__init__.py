"""
Data models package for the Technician Session Scheduler.

This package exports the core pillars of the data architecture:
1. Demand (Client, Authorization, Appointment, ClientSchedulePreference)
2. Supply (TechnicianProfile, AvailabilitySlot, Time-Off)
3. Output (WeeklySchedule, ScheduleConflict, ResolutionSuggestion)
4. Runs & Events (Optimization request/result, DomainEvent)
"""

from .client import (
    Client,
    ClientStatus,
    Authorization,
    AuthorizationStatus,
    Appointment,
    ClientSchedulePreference
)

from .technician import (
    MINUTES_PER_DAY,
    TechnicianProfile,
    TechnicianStatus,
    AvailabilitySlot,
    AvailabilityBlock,
    TimeOffRecord,
    TimeOffRequest,
    TimeOffStatus
)

from .schedule import (
    ScheduleAssignment,
    WeeklySchedule,
    ScheduleStatus,
    ScheduleConflict,
    ConflictType,
    Severity,
    ResolutionSuggestion,
    SuggestedChange,
    SuggestionType,
    Impact
)

from .events import (
    DomainEvent,
    EventType
)

from .optimization import (
    OptimizationConstraints,
    OptimizationPriorities,
    OptimizationRequest,
    OptimizationMetrics,
    OptimizationResult
)

__all__ = [
    # --- Demand Models ---
    "Client",
    "ClientStatus",
    "Authorization",
    "AuthorizationStatus",
    "Appointment",
    "ClientSchedulePreference",

    # --- Supply Models ---
    "MINUTES_PER_DAY",
    "TechnicianProfile",
    "TechnicianStatus",
    "AvailabilitySlot",
    "AvailabilityBlock",
    "TimeOffRecord",
    "TimeOffRequest",
    "TimeOffStatus",

    # --- Output Models ---
    "ScheduleAssignment",
    "WeeklySchedule",
    "ScheduleStatus",
    "ScheduleConflict",
    "ConflictType",
    "Severity",
    "ResolutionSuggestion",
    "SuggestedChange",
    "SuggestionType",
    "Impact",

    # --- Events ---
    "DomainEvent",
    "EventType",

    # --- Optimization ---
    "OptimizationConstraints",
    "OptimizationPriorities",
    "OptimizationRequest",
    "OptimizationMetrics",
    "OptimizationResult",
]
