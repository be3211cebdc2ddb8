"""
Calendar helpers shared by the scheduler modules.

Times of day are minutes from midnight; weekdays follow date.weekday()
(0=Monday).
"""

from datetime import date as date_type, datetime, time as time_type, timedelta
from typing import Tuple

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def day_name(day_of_week: int) -> str:
    if 0 <= day_of_week < len(DAY_NAMES):
        return DAY_NAMES[day_of_week]
    return f"Day {day_of_week}"


def format_minutes(minutes: int) -> str:
    """540 -> '9:00 AM'."""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours % 24 >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {period}"


def minutes_of(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def day_bounds(day: date_type) -> Tuple[datetime, datetime]:
    """Midnight-to-midnight bounds of a calendar day."""
    start = datetime.combine(day, time_type.min)
    return start, start + timedelta(days=1)


def date_for_day_of_week(week_start: date_type, day_of_week: int) -> date_type:
    """Concrete date of `day_of_week` in the week anchored at `week_start`."""
    return week_start + timedelta(days=day_of_week - week_start.weekday())


def week_start_for(day: date_type) -> date_type:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def iter_days(start: date_type, end: date_type):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
