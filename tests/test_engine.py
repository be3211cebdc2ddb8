"""
Tests for the weekly optimization engine.
"""

import pytest
from datetime import date, datetime

from models import (
    Client,
    ClientSchedulePreference,
    EventType,
    OptimizationConstraints,
    OptimizationPriorities,
    OptimizationRequest,
    ScheduleAssignment,
    WeeklySchedule,
)
from scheduler.engine import round_half_up
from scheduler.metrics import MetricsCalculator, population_variance
from scheduler.travel import nearest_neighbor_route, retime_route, retimed_end

WEEKDAYS = [(d, 540, 1020) for d in range(5)]


def _request(user_id, week_start, constraints=None, **priorities):
    return OptimizationRequest(
        user_id=user_id,
        week_start=week_start,
        constraints=constraints or OptimizationConstraints(),
        priorities=OptimizationPriorities(**priorities),
    )


def _pref(sessions, days, start=540, minutes=120, technicians=()):
    return ClientSchedulePreference(
        preferred_technicians=list(technicians),
        preferred_days=days,
        preferred_time_start=start,
        preferred_time_end=start + minutes,
        sessions_per_week=sessions,
        session_duration_minutes=minutes,
    )


def _slots(result, technician_id):
    schedule = next(s for s in result.schedules if s.technician_id == technician_id)
    return sorted((a.client_id, a.day_of_week, a.start_minute, a.end_minute) for a in schedule.assignments)


class TestRoundHalfUp:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2
        assert round_half_up(0.5) == 1


class TestGreedyAssignment:
    def test_three_sessions_on_preferred_days(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020), (2, 540, 1020), (4, 540, 1020)])
        add_client("client_a", location="Northside")
        constraints = OptimizationConstraints(client_preferences={"client_a": _pref(3, [0, 2, 4])})

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert result.success is True
        assert result.unassigned_clients == []
        assert _slots(result, "tech_01") == [
            ("client_a", 0, 540, 660),
            ("client_a", 2, 540, 660),
            ("client_a", 4, 540, 660),
        ]
        schedule = result.schedules[0]
        assert all(a.service_code == "97153" for a in schedule.assignments)
        assert all(a.location == "Northside" for a in schedule.assignments)
        assert schedule.scheduled_hours == 6
        assert result.metrics.total_sessions == 3

    def test_shortfall_is_reported_not_raised(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_client("client_a", name="Alex Smith")
        constraints = OptimizationConstraints(client_preferences={"client_a": _pref(2, [0, 1])})

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert result.success is False
        assert result.unassigned_clients == ["client_a"]
        assert "Could not fully schedule client Alex Smith (1/2 sessions)" in result.warnings
        assert result.events[0].payload["shortfalls"] == [{
            "client_id": "client_a",
            "client_name": "Alex Smith",
            "sessions_needed": 2,
            "sessions_assigned": 1,
            "status": "partial",
        }]

    def test_time_off_day_is_skipped(
        self, engine, availability, add_technician, add_client, user_id, week_start
    ):
        add_technician("tech_01", slots=WEEKDAYS)
        add_client("client_a")
        availability.add_time_off("tech_01", datetime(2025, 1, 13, 0), datetime(2025, 1, 14, 0))
        constraints = OptimizationConstraints(client_preferences={"client_a": _pref(1, [0, 1])})

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert _slots(result, "tech_01") == [("client_a", 1, 540, 660)]

    def test_preferred_technician_is_used_first(
        self, engine, add_technician, add_client, user_id, week_start
    ):
        add_technician("tech_01", slots=WEEKDAYS)
        add_technician("tech_02", slots=WEEKDAYS)
        add_client("client_a")
        constraints = OptimizationConstraints(
            client_preferences={"client_a": _pref(1, [0], technicians=["tech_02"])}
        )

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert _slots(result, "tech_01") == []
        assert _slots(result, "tech_02") == [("client_a", 0, 540, 660)]
        assert result.metrics.preferences_met_percent == 100

    def test_excluded_technician_gets_no_draft(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=WEEKDAYS)
        add_technician("tech_02", slots=WEEKDAYS)
        add_client("client_a")
        constraints = OptimizationConstraints(
            exclude_technicians=["tech_01"],
            client_preferences={"client_a": _pref(1, [0])},
        )

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert [s.technician_id for s in result.schedules] == ["tech_02"]

    def test_inactive_technician_is_not_a_candidate(
        self, engine, add_technician, add_client, user_id, week_start
    ):
        add_technician("tech_01", slots=WEEKDAYS, status="inactive")
        add_client("client_a")
        constraints = OptimizationConstraints(client_preferences={"client_a": _pref(1, [0])})

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert result.schedules == []
        assert result.unassigned_clients == ["client_a"]

    def test_max_hours_per_day_caps_placement(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_client("client_a")
        add_client("client_b")
        constraints = OptimizationConstraints(
            max_hours_per_day=2,
            client_preferences={
                "client_a": _pref(1, [0], start=540),
                "client_b": _pref(1, [0], start=720),
            },
        )

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert _slots(result, "tech_01") == [("client_a", 0, 540, 660)]
        assert result.unassigned_clients == ["client_b"]

    def test_weekly_cap_from_profile(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=WEEKDAYS, max_hours_per_week=4)
        add_client("client_a")
        constraints = OptimizationConstraints(client_preferences={"client_a": _pref(3, [0, 1, 2])})

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert len(_slots(result, "tech_01")) == 2
        assert result.unassigned_clients == ["client_a"]

    def test_break_padding_keeps_sessions_apart(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_client("client_a")
        add_client("client_b")
        constraints = OptimizationConstraints(
            min_break_minutes=15,
            client_preferences={
                "client_a": _pref(1, [0], start=540),
                "client_b": _pref(1, [0], start=660),
            },
        )

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert result.unassigned_clients == ["client_b"]

    def test_preferred_locations_reorder_candidates(
        self, engine, add_technician, add_client, user_id, week_start
    ):
        add_technician("tech_01", slots=WEEKDAYS, service_areas=["Downtown"])
        add_technician("tech_02", slots=WEEKDAYS, service_areas=["Eastgate"])
        add_client("client_a")
        constraints = OptimizationConstraints(
            preferred_locations=["Eastgate"],
            client_preferences={"client_a": _pref(1, [0])},
        )

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert _slots(result, "tech_02") == [("client_a", 0, 540, 660)]

    def test_result_carries_optimized_event(self, engine, add_technician, user_id, week_start):
        add_technician("tech_01", slots=WEEKDAYS)

        result = engine.optimize(_request(user_id, week_start))

        assert result.success is True
        assert [e.type for e in result.events] == [EventType.SCHEDULE_OPTIMIZED]
        assert result.events[0].payload["week_start"] == "2025-01-13"


class TestDemandDerivation:
    def test_weekly_sessions_from_authorization(self, engine, add_client, user_id):
        # 520 units over 91 days = 40 units/week = 10 hours = 5 two-hour sessions
        client = add_client("client_a", total_units=520)

        prefs = engine._default_preference(user_id, client)

        assert prefs.sessions_per_week == 5
        assert prefs.session_duration_minutes == 120
        assert prefs.preferred_days == [0, 1, 2, 3, 4]
        assert (prefs.preferred_time_start, prefs.preferred_time_end) == (540, 1020)

    def test_short_authorization_counts_as_one_week(self, engine, add_client, user_id):
        client = add_client("client_a", total_units=48, start_date=date(2025, 1, 13), end_date=date(2025, 1, 16))
        assert engine._default_preference(user_id, client).sessions_per_week == 6

    def test_assigned_technician_becomes_preference(self, engine, add_client, user_id):
        client = add_client("client_a", assigned_technician_id="tech_07")
        assert engine._default_preference(user_id, client).preferred_technicians == ["tech_07"]

    def test_no_authorization_falls_back_to_default(self, engine, user_id):
        client = Client(id="client_x", user_id=user_id, name="Nobody")
        assert engine._default_preference(user_id, client).sessions_per_week == 3

    def test_only_active_clients_with_authorizations_need_scheduling(self, engine, add_client, user_id):
        add_client("client_a")
        add_client("client_b", status="discharged")

        assert [c.id for c in engine._clients_needing_scheduling(user_id)] == ["client_a"]


class TestClientOrdering:
    def test_pinned_first_then_bigger_quota(self, engine, add_client):
        flexible_big = add_client("client_a")
        pinned_small = add_client("client_b")
        flexible_small = add_client("client_c")
        preferences = {
            "client_a": _pref(4, [0]),
            "client_b": _pref(1, [0], technicians=["tech_01"]),
            "client_c": _pref(2, [0]),
        }

        ordered = engine._sort_clients([flexible_small, flexible_big, pinned_small], preferences)

        assert [c.id for c in ordered] == ["client_b", "client_a", "client_c"]


class TestRouting:
    def test_nearest_neighbor_groups_locations(self):
        route = nearest_neighbor_route([
            ScheduleAssignment(id="b", client_id="c2", day_of_week=0, start_minute=700, end_minute=820, location="Y"),
            ScheduleAssignment(id="a", client_id="c1", day_of_week=0, start_minute=540, end_minute=660, location="X"),
            ScheduleAssignment(id="c", client_id="c3", day_of_week=0, start_minute=900, end_minute=1020, location="X"),
        ])
        assert [a.id for a in route] == ["a", "c", "b"]

        retime_route(route, 540, 15)
        assert [(a.id, a.start_minute, a.end_minute) for a in route] == [
            ("a", 540, 660),
            ("c", 675, 795),
            ("b", 810, 930),
        ]

    def test_engine_retimes_each_day(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_client("client_a", location="Northside")
        add_client("client_b", location="Northside")
        constraints = OptimizationConstraints(client_preferences={
            "client_a": _pref(1, [0], start=540),
            "client_b": _pref(1, [0], start=780, minutes=60),
        })

        result = engine.optimize(_request(user_id, week_start, constraints, minimize_travel_time=1.0))

        assert _slots(result, "tech_01") == [
            ("client_a", 0, 540, 660),
            ("client_b", 0, 675, 735),
        ]

    def test_day_that_would_run_past_midnight_keeps_its_times(
        self, engine, add_technician, add_client, user_id, week_start
    ):
        add_technician("tech_01", slots=[(0, 0, 1440)])
        add_client("client_x", location="Northside")
        add_client("client_y", location="Southside")
        constraints = OptimizationConstraints(client_preferences={
            "client_x": _pref(1, [0], start=1200),
            "client_y": _pref(1, [0], start=1320),
        })

        result = engine.optimize(_request(user_id, week_start, constraints, minimize_travel_time=1.0))

        assert _slots(result, "tech_01") == [
            ("client_x", 0, 1200, 1320),
            ("client_y", 0, 1320, 1440),
        ]
        for assignment in result.schedules[0].assignments:
            ScheduleAssignment.model_validate(assignment.model_dump())

    def test_retimed_end_matches_layout(self):
        route = [
            ScheduleAssignment(id="a", client_id="c1", day_of_week=0, start_minute=1200, end_minute=1320),
            ScheduleAssignment(id="b", client_id="c2", day_of_week=0, start_minute=1320, end_minute=1440),
        ]
        assert retimed_end(route, 1200, 15) == 1455
        assert retimed_end([], 540, 15) == 540

    def test_routing_is_off_without_weight(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_client("client_a")
        add_client("client_b")
        constraints = OptimizationConstraints(client_preferences={
            "client_a": _pref(1, [0], start=540),
            "client_b": _pref(1, [0], start=780, minutes=60),
        })

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert ("client_b", 0, 780, 840) in _slots(result, "tech_01")


class TestWorkloadBalancing:
    def _setup(self, add_technician, add_client):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_technician("tech_02", slots=[(0, 540, 1020)])
        for client_id in ("client_a", "client_b", "client_c"):
            add_client(client_id)
        return OptimizationConstraints(client_preferences={
            "client_a": _pref(1, [0], start=540, technicians=["tech_01"]),
            "client_b": _pref(1, [0], start=720, technicians=["tech_01"]),
            "client_c": _pref(1, [0], start=900, technicians=["tech_01"]),
        })

    def test_sessions_move_to_underloaded_technician(
        self, engine, add_technician, add_client, user_id, week_start
    ):
        constraints = self._setup(add_technician, add_client)

        result = engine.optimize(_request(user_id, week_start, constraints, balance_workload=1.0))

        # 6h vs 0h around a 3h mean: one session moves, a second would push tech_02 past 110%
        assert _slots(result, "tech_01") == [("client_a", 0, 540, 660), ("client_b", 0, 720, 840)]
        assert _slots(result, "tech_02") == [("client_c", 0, 900, 1020)]
        assert result.metrics.preferences_met_percent == pytest.approx(200 / 3)

    def test_no_balancing_without_weight(self, engine, add_technician, add_client, user_id, week_start):
        constraints = self._setup(add_technician, add_client)

        result = engine.optimize(_request(user_id, week_start, constraints))

        assert len(_slots(result, "tech_01")) == 3
        assert _slots(result, "tech_02") == []

    def test_unavailable_receiver_gets_nothing(self, engine, add_technician, add_client, user_id, week_start):
        add_technician("tech_01", slots=[(0, 540, 1020)])
        add_technician("tech_02", slots=[(1, 540, 1020)])
        add_client("client_a")
        add_client("client_b")
        constraints = OptimizationConstraints(client_preferences={
            "client_a": _pref(1, [0], start=540, technicians=["tech_01"]),
            "client_b": _pref(1, [0], start=720, technicians=["tech_01"]),
        })

        result = engine.optimize(_request(user_id, week_start, constraints, balance_workload=1.0))

        assert len(_slots(result, "tech_01")) == 2


class TestMetrics:
    def _schedule(self, technician_id, minutes):
        assignments = []
        start = 0
        for i, length in enumerate(minutes):
            assignments.append(ScheduleAssignment(
                id=f"{technician_id}-{i}", client_id="client_a",
                day_of_week=0, start_minute=start, end_minute=start + length,
            ))
            start += length
        return WeeklySchedule(
            id=technician_id, user_id="u", technician_id=technician_id,
            week_start=date(2025, 1, 13), week_end=date(2025, 1, 20),
            assignments=assignments,
        )

    def test_variance_and_utilization(self):
        schedules = [self._schedule("t1", [120, 120]), self._schedule("t2", [120]), self._schedule("t3", [])]
        preferences = {"client_a": _pref(3, [0], technicians=["t1"])}

        metrics = MetricsCalculator(40).calculate(schedules, preferences)

        # Hours 4, 2, 0: mean 2, variance (4 + 0 + 4) / 3
        assert metrics.total_sessions == 3
        assert metrics.total_hours == 6
        assert metrics.workload_variance == pytest.approx(8 / 3)
        assert metrics.utilization_percent == pytest.approx(6 / 120 * 100)
        assert metrics.preferences_met_percent == pytest.approx(200 / 3)
        assert metrics.average_travel_time == 0

    def test_empty_run(self):
        metrics = MetricsCalculator().calculate([], {})
        assert metrics.utilization_percent == 0
        assert metrics.preferences_met_percent == 100
        assert population_variance([]) == 0
