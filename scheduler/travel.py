"""
Travel estimates and route ordering.

There is no geocoding here: any two different locations are one unit
of distance and one default travel time apart.
"""

from typing import List, Optional

from models import ScheduleAssignment


def estimate_travel_time(origin: Optional[str], destination: Optional[str], default_minutes: int) -> int:
    if not origin or not destination or origin == destination:
        return 0
    return default_minutes


def estimate_distance(origin: Optional[str], destination: Optional[str]) -> int:
    if not origin or not destination or origin == destination:
        return 0
    return 1


def nearest_neighbor_route(assignments: List[ScheduleAssignment]) -> List[ScheduleAssignment]:
    """
    Greedy visiting order: start at the earliest session, then always go
    to the closest unvisited one. Ties keep start-time order.
    """
    if len(assignments) <= 1:
        return list(assignments)

    remaining = sorted(assignments, key=lambda a: a.start_minute)
    current = remaining.pop(0)
    route = [current]

    while remaining:
        nearest_idx = 0
        nearest_dist = float('inf')
        for i, candidate in enumerate(remaining):
            dist = estimate_distance(current.location, candidate.location)
            if dist < nearest_dist:
                nearest_dist = dist
                nearest_idx = i
        current = remaining.pop(nearest_idx)
        route.append(current)

    return route


def retime_route(route: List[ScheduleAssignment], start_minute: int, buffer_minutes: int) -> None:
    """Lay the route out back-to-back from `start_minute`, keeping each duration."""
    current = start_minute
    for assignment in route:
        duration = assignment.duration_minutes
        assignment.start_minute = current
        assignment.end_minute = current + duration
        current = assignment.end_minute + buffer_minutes


def retimed_end(route: List[ScheduleAssignment], start_minute: int, buffer_minutes: int) -> int:
    """End minute of the last stop if `route` were laid out by `retime_route`."""
    if not route:
        return start_minute
    total = sum(a.duration_minutes for a in route) + buffer_minutes * (len(route) - 1)
    return start_minute + total
