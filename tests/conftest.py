"""
Shared fixtures: in-memory stores, deterministic ids and small model factories.
"""

import pytest
from datetime import date

from models import (
    Authorization,
    AvailabilitySlot,
    Client,
    ScheduleAssignment,
    TechnicianProfile,
    WeeklySchedule,
)
from scheduler.availability import AvailabilityManager
from scheduler.conflicts import ConflictResolver
from scheduler.engine import OptimizationEngine
from scheduler.ids import SequentialIds
from scheduler.service import SchedulingService
from stores import (
    InMemoryAppointmentStore,
    InMemoryAuthorizationStore,
    InMemoryClientStore,
    InMemoryScheduleStore,
)

USER_ID = "practice_01"

# A Monday
WEEK_START = date(2025, 1, 13)


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def week_start():
    return WEEK_START


@pytest.fixture
def ids():
    return SequentialIds("id")


@pytest.fixture
def schedule_store():
    return InMemoryScheduleStore()


@pytest.fixture
def appointment_store():
    return InMemoryAppointmentStore()


@pytest.fixture
def authorization_store():
    return InMemoryAuthorizationStore()


@pytest.fixture
def client_store():
    return InMemoryClientStore()


@pytest.fixture
def availability(schedule_store, ids):
    return AvailabilityManager(schedule_store, id_generator=ids)


@pytest.fixture
def resolver(schedule_store, appointment_store, authorization_store, ids):
    return ConflictResolver(schedule_store, appointment_store, authorization_store, id_generator=ids)


@pytest.fixture
def engine(schedule_store, client_store, authorization_store, availability, resolver, ids):
    return OptimizationEngine(
        schedule_store,
        client_store,
        authorization_store,
        availability,
        resolver,
        id_generator=ids,
    )


@pytest.fixture
def service(schedule_store, client_store, appointment_store, authorization_store, ids):
    return SchedulingService(
        schedule_store,
        client_store,
        appointment_store,
        authorization_store,
        id_generator=ids,
    )


@pytest.fixture
def add_technician(schedule_store):
    """Store an active technician, optionally with weekly slots as (day, start, end) tuples."""
    def _add(technician_id, slots=(), **overrides):
        data = {"id": technician_id, "user_id": USER_ID, "name": technician_id.title()}
        data.update(overrides)
        tech = TechnicianProfile(**data)
        schedule_store.create_technician(tech)
        if slots:
            schedule_store.set_availability(technician_id, [
                AvailabilitySlot(technician_id=technician_id, day_of_week=d, start_minute=s, end_minute=e)
                for d, s, e in slots
            ])
        return tech
    return _add


@pytest.fixture
def add_client(client_store, authorization_store):
    """Store an active client together with one active authorization."""
    def _add(client_id, total_units=400, remaining_units=None, service_code="97153",
             start_date=date(2025, 1, 1), end_date=date(2025, 4, 2), **overrides):
        data = {"id": client_id, "user_id": USER_ID, "name": client_id.title()}
        data.update(overrides)
        client = Client(**data)
        client_store.add_client(client)
        authorization_store.add_authorization(Authorization(
            id=f"auth_{client_id}",
            user_id=USER_ID,
            client_id=client_id,
            service_code=service_code,
            total_units=total_units,
            remaining_units=total_units if remaining_units is None else remaining_units,
            start_date=start_date,
            end_date=end_date,
        ))
        return client
    return _add


@pytest.fixture
def make_schedule():
    def _make(assignments, technician_id="tech_01", schedule_id="sched_01", **overrides):
        data = {
            "id": schedule_id,
            "user_id": USER_ID,
            "technician_id": technician_id,
            "week_start": WEEK_START,
            "week_end": date(2025, 1, 20),
            "assignments": assignments,
            "available_hours": 40,
        }
        data.update(overrides)
        return WeeklySchedule(**data)
    return _make


def assignment(assignment_id, client_id, day, start, end, location=None, service_code="97153"):
    return ScheduleAssignment(
        id=assignment_id,
        client_id=client_id,
        day_of_week=day,
        start_minute=start,
        end_minute=end,
        location=location,
        service_code=service_code,
    )


@pytest.fixture
def make_assignment():
    return assignment
