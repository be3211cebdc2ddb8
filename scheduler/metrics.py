"""
Quality metrics for an optimization run.

Unlike conflict detection (binary yes/no), these give a gradient that
describes how good a set of weekly schedules is.
"""

from typing import Dict, List

from models import ClientSchedulePreference, OptimizationMetrics, WeeklySchedule


def population_variance(values: List[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


class MetricsCalculator:
    def __init__(self, standard_week_hours: float = 40):
        self.standard_week_hours = standard_week_hours

    def calculate(
        self,
        schedules: List[WeeklySchedule],
        preferences: Dict[str, ClientSchedulePreference]
    ) -> OptimizationMetrics:
        """
        Master metrics function.
        Technician count is the number of schedules, busy or not.
        """
        total_sessions = 0
        total_minutes = 0
        preferences_met = 0
        preferences_total = 0
        hours_per_technician: List[float] = []

        for schedule in schedules:
            tech_minutes = 0
            for assignment in schedule.assignments:
                total_sessions += 1
                total_minutes += assignment.duration_minutes
                tech_minutes += assignment.duration_minutes

                prefs = preferences.get(assignment.client_id)
                if prefs:
                    preferences_total += 1
                    if schedule.technician_id in prefs.preferred_technicians:
                        preferences_met += 1

            hours_per_technician.append(tech_minutes / 60)

        total_hours = total_minutes / 60
        max_possible_hours = len(schedules) * self.standard_week_hours
        utilization = (total_hours / max_possible_hours * 100) if max_possible_hours else 0.0

        return OptimizationMetrics(
            total_sessions=total_sessions,
            total_hours=total_hours,
            # Travel is a placeholder model, nothing to average yet
            average_travel_time=0.0,
            utilization_percent=utilization,
            preferences_met_percent=(
                preferences_met / preferences_total * 100 if preferences_total else 100.0
            ),
            workload_variance=population_variance(hours_per_technician),
        )
