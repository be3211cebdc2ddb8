"""
Store contracts and in-memory backends for the Session Scheduler.
"""

from .base import (
    ScheduleStore,
    AppointmentStore,
    AuthorizationStore,
    ClientStore,
    EventSink
)

from .memory import (
    InMemoryScheduleStore,
    InMemoryAppointmentStore,
    InMemoryAuthorizationStore,
    InMemoryClientStore,
    RecordingEventSink
)

__all__ = [
    # --- Contracts ---
    "ScheduleStore",
    "AppointmentStore",
    "AuthorizationStore",
    "ClientStore",
    "EventSink",

    # --- In-Memory Backends ---
    "InMemoryScheduleStore",
    "InMemoryAppointmentStore",
    "InMemoryAuthorizationStore",
    "InMemoryClientStore",
    "RecordingEventSink",
]
