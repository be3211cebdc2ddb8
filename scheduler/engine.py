"""
The Weekly Session Optimization Engine.

This module implements the core "Solver" logic.
It combines four strategies:
1. Most Constrained First - clients tied to specific technicians are placed
   before flexible ones, and bigger weekly quotas before smaller ones.
2. Greedy Fill - every (day, technician) pair is tried in preference order
   until the client's weekly quota is met.
3. Route Tightening - each technician's day is re-ordered with a
   nearest-neighbor pass to cut travel.
4. Load Transfer - sessions are shifted from overloaded to underloaded
   technicians in a single best-effort pass.

None of these is globally optimal; they are fast and predictable.
"""

import logging
import math
from typing import Dict, List, Optional

from models import (
    Client,
    ClientSchedulePreference,
    ClientStatus,
    DomainEvent,
    EventType,
    MINUTES_PER_DAY,
    OptimizationConstraints,
    OptimizationRequest,
    OptimizationResult,
    ScheduleAssignment,
    TechnicianProfile,
)
from .availability import AvailabilityManager
from .config import SchedulerConfig
from .conflicts import ConflictResolver
from .ids import IdGenerator, uuid_ids
from .metrics import MetricsCalculator
from .state import OptimizationState
from .timeutils import date_for_day_of_week
from .travel import nearest_neighbor_route, retime_route, retimed_end

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class OptimizationEngine:
    """
    Main scheduling engine.
    Ingests Demand (clients + authorizations) and Supply (technicians), outputs weekly drafts.
    """

    def __init__(
        self,
        schedule_store,
        client_store,
        authorization_store,
        availability_manager: AvailabilityManager,
        conflict_resolver: ConflictResolver,
        config: Optional[SchedulerConfig] = None,
        id_generator: IdGenerator = uuid_ids
    ):
        self.schedule_store = schedule_store
        self.client_store = client_store
        self.authorization_store = authorization_store
        self.availability = availability_manager
        self.conflict_resolver = conflict_resolver
        self.config = config or SchedulerConfig()
        self.new_id = id_generator
        self.metrics = MetricsCalculator(self.config.standard_week_hours)

    def optimize(self, request: OptimizationRequest) -> OptimizationResult:
        """
        Execute the optimization pipeline for one week.
        Infeasibility is reported in the result, never raised.
        """
        constraints = request.constraints
        priorities = request.priorities
        logger.info(f"Starting optimization for {request.user_id}, week of {request.week_start}")

        # 1. Supply: active technicians minus exclusions
        technicians = [
            t for t in self.schedule_store.get_active_technicians(request.user_id)
            if t.id not in constraints.exclude_technicians
        ]

        # 2. Demand: active clients with an active authorization
        clients = self._clients_needing_scheduling(request.user_id)
        preferences: Dict[str, ClientSchedulePreference] = dict(constraints.client_preferences)
        for client in clients:
            if client.id not in preferences:
                preferences[client.id] = self._default_preference(request.user_id, client)

        # 3. Seed one empty draft per technician
        state = OptimizationState(request.user_id, request.week_start, self.new_id)
        state.seed(technicians)

        # 4. Sort by "Difficulty"
        ordered = self._sort_clients(clients, preferences)

        # 5. Main Loop: greedy placement
        unassigned: List[str] = []
        warnings: List[str] = []
        for client in ordered:
            prefs = preferences[client.id]
            assigned = self._assign_client(request.user_id, client, prefs, technicians, state, constraints)

            if assigned < prefs.sessions_per_week:
                unassigned.append(client.id)
                state.record_shortfall(client.id, client.name, prefs.sessions_per_week, assigned)
                warnings.append(
                    f"Could not fully schedule client {client.name} "
                    f"({assigned}/{prefs.sessions_per_week} sessions)"
                )
                logger.warning(f"Client {client.id} placed {assigned}/{prefs.sessions_per_week} sessions")

        # 6. Travel routes
        if priorities.minimize_travel_time:
            self._optimize_travel_routes(state)

        # 7. Workload balance
        if priorities.balance_workload:
            self._balance_workload(state)

        # 8. Validation pass
        for schedule in state.schedules():
            schedule.refresh_totals()
            schedule.conflicts = self.conflict_resolver.detect_conflicts(schedule)
            for conflict in schedule.conflicts:
                warnings.append(f"{conflict.type.value}: {conflict.description}")

        # 9. Metrics
        metrics = self.metrics.calculate(state.schedules(), preferences)
        success = not unassigned

        logger.info(
            f"Optimization finished: {metrics.total_sessions} sessions, "
            f"{len(unassigned)} client(s) short, success={success}"
        )

        event = DomainEvent(
            type=EventType.SCHEDULE_OPTIMIZED,
            payload={
                "user_id": request.user_id,
                "week_start": request.week_start.isoformat(),
                "success": success,
                "metrics": metrics.model_dump(),
                "shortfalls": state.get_shortfall_report(),
            },
        )

        return OptimizationResult(
            success=success,
            schedules=state.schedules(),
            metrics=metrics,
            unassigned_clients=unassigned,
            warnings=warnings,
            events=[event],
        )

    # --- Demand ---

    def _clients_needing_scheduling(self, user_id: str) -> List[Client]:
        authorizations = self.authorization_store.get_active_authorizations(user_id)
        client_ids = list(dict.fromkeys(a.client_id for a in authorizations))

        clients = []
        for client_id in client_ids:
            client = self.client_store.get_client(client_id)
            if client and client.status == ClientStatus.ACTIVE:
                clients.append(client)
        return clients

    def _default_preference(self, user_id: str, client: Client) -> ClientSchedulePreference:
        """
        Derive a weekly demand from the client's primary authorization:
        units/week -> hours/week -> sessions/week.
        """
        session_minutes = self.config.default_session_minutes
        sessions_per_week = self.config.default_sessions_per_week

        authorizations = self.authorization_store.get_active_authorizations(user_id, client.id)
        if authorizations:
            primary = authorizations[0]
            weeks = max(1.0, primary.period_days / 7)
            units_per_week = primary.total_units / weeks
            hours_per_week = units_per_week / self.config.units_per_hour
            sessions_per_week = round_half_up(hours_per_week / (session_minutes / 60))

        return ClientSchedulePreference(
            preferred_technicians=[client.assigned_technician_id] if client.assigned_technician_id else [],
            preferred_days=list(self.config.default_preferred_days),
            preferred_time_start=self.config.default_window_start,
            preferred_time_end=self.config.default_window_end,
            sessions_per_week=sessions_per_week,
            session_duration_minutes=session_minutes,
        )

    def _sort_clients(
        self,
        clients: List[Client],
        preferences: Dict[str, ClientSchedulePreference]
    ) -> List[Client]:
        """Pinned to specific technicians first, then by descending weekly sessions."""
        def difficulty(client: Client):
            prefs = preferences[client.id]
            return (0 if prefs.preferred_technicians else 1, -prefs.sessions_per_week)

        return sorted(clients, key=difficulty)

    def _service_code_for(self, user_id: str, client_id: str) -> str:
        authorizations = self.authorization_store.get_active_authorizations(user_id, client_id)
        if authorizations:
            return authorizations[0].service_code
        return self.config.default_service_code

    # --- Greedy Assignment ---

    def _candidate_technicians(
        self,
        prefs: ClientSchedulePreference,
        technicians: List[TechnicianProfile],
        constraints: OptimizationConstraints
    ) -> List[TechnicianProfile]:
        candidates = list(technicians)
        if prefs.preferred_technicians:
            preferred = [t for t in technicians if t.id in prefs.preferred_technicians]
            # Nobody preferred is in the pool: fall back to everyone
            if preferred:
                candidates = preferred

        if constraints.preferred_locations:
            wanted = set(constraints.preferred_locations)
            candidates.sort(key=lambda t: 0 if wanted.intersection(t.service_areas) else 1)
        return candidates

    def _week_cap(self, tech: TechnicianProfile, constraints: OptimizationConstraints) -> float:
        if constraints.max_hours_per_week is not None:
            return min(tech.max_hours_per_week, constraints.max_hours_per_week)
        return tech.max_hours_per_week

    def _assign_client(
        self,
        user_id: str,
        client: Client,
        prefs: ClientSchedulePreference,
        technicians: List[TechnicianProfile],
        state: OptimizationState,
        constraints: OptimizationConstraints
    ) -> int:
        """
        Place as many of the client's weekly sessions as possible.
        Returns the number placed.
        """
        needed = prefs.sessions_per_week
        assigned = 0
        candidates = self._candidate_technicians(prefs, technicians, constraints)
        service_code = self._service_code_for(user_id, client.id)

        start = prefs.preferred_time_start
        end = start + prefs.session_duration_minutes
        session_hours = prefs.session_duration_minutes / 60

        for day in prefs.preferred_days:
            if assigned >= needed:
                break
            session_date = date_for_day_of_week(state.week_start, day)

            for tech in candidates:
                if assigned >= needed:
                    break

                # A. Technician working at that time?
                if not self.availability.is_available(tech.id, session_date, start, end):
                    continue

                # B. Draft already busy?
                if not state.is_slot_free(tech.id, day, start, end, constraints.min_break_minutes):
                    continue

                # C. Workload caps
                if constraints.max_hours_per_day is not None:
                    if state.day_hours(tech.id, day) + session_hours > constraints.max_hours_per_day:
                        continue
                if state.week_hours(tech.id) + session_hours > self._week_cap(tech, constraints):
                    continue

                # D. Commit
                state.add_assignment(tech.id, ScheduleAssignment(
                    client_id=client.id,
                    day_of_week=day,
                    start_minute=start,
                    end_minute=end,
                    service_code=service_code,
                    location=client.location,
                ))
                assigned += 1
                logger.debug(f"Placed {client.id} with {tech.id} on day {day} at {start}")

        return assigned

    # --- Post-Processing ---

    def _optimize_travel_routes(self, state: OptimizationState) -> None:
        for schedule in state.schedules():
            for day in sorted({a.day_of_week for a in schedule.assignments}):
                day_assignments = schedule.assignments_on(day)
                if len(day_assignments) < 2:
                    continue

                earliest = min(a.start_minute for a in day_assignments)
                route = nearest_neighbor_route(day_assignments)
                buffer = self.config.route_buffer_minutes

                # Re-timed day must still end by midnight
                if retimed_end(route, earliest, buffer) > MINUTES_PER_DAY:
                    logger.debug(
                        f"Keeping original times for {schedule.technician_id} on day {day}: "
                        f"route would run past midnight"
                    )
                    continue
                retime_route(route, earliest, buffer)

    def _balance_workload(self, state: OptimizationState) -> None:
        """
        Shift sessions from technicians above 110% of the mean to those
        below 90%, one at a time, until each donor is within tolerance or
        nothing more can move. A receiver never ends up above 110% itself.
        """
        hours = state.hours_by_technician()
        if not hours:
            return

        target = sum(hours.values()) / len(hours)
        upper = target * self.config.overload_tolerance
        lower = target * self.config.underload_tolerance

        # Donors are fixed up front so a receiver never starts giving back
        donors = [
            tid for tid in sorted(hours, key=lambda tid: hours[tid], reverse=True)
            if hours[tid] > upper
        ]
        for donor_id in donors:
            while hours[donor_id] > upper:
                if not self._transfer_one(state, donor_id, hours, lower, upper):
                    logger.debug(f"No transferable session left for {donor_id}")
                    break

    def _transfer_one(
        self,
        state: OptimizationState,
        donor_id: str,
        hours: Dict[str, float],
        lower: float,
        upper: float
    ) -> bool:
        receivers = sorted(
            (tid for tid in hours if tid != donor_id and hours[tid] < lower),
            key=lambda tid: hours[tid],
        )
        donor = state.draft_for(donor_id)

        for receiver_id in receivers:
            # Most recently placed sessions go first
            for assignment in reversed(list(donor.assignments)):
                if not state.is_slot_free(
                    receiver_id, assignment.day_of_week, assignment.start_minute, assignment.end_minute
                ):
                    continue
                session_date = date_for_day_of_week(state.week_start, assignment.day_of_week)
                if not self.availability.is_available(
                    receiver_id, session_date, assignment.start_minute, assignment.end_minute
                ):
                    continue

                # Receivers stay under the overload line
                moved_hours = assignment.duration_minutes / 60
                if hours[receiver_id] + moved_hours > upper:
                    continue

                state.move_assignment(assignment, donor_id, receiver_id)
                hours[donor_id] -= moved_hours
                hours[receiver_id] += moved_hours
                logger.debug(f"Moved {assignment.id} from {donor_id} to {receiver_id}")
                return True

        return False
