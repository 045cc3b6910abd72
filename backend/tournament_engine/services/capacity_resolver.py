"""
Schedule capacity check (court-minutes per court).

Exactly one computation:
- required  = ceil(matches / courts) * (match duration + transition)
- available = sum of open window minutes from the calendar start to end_date

An overflowing schedule is not an error: the allocator keeps going past the
nominal end. This check reports it and suggests a duration that would fit.
"""
import math
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional, Tuple

from tournament_engine.services.allocator import CalendarConfig, validate_calendar


@dataclass
class CapacityCheck:
    fits: bool
    required_minutes: int
    available_minutes: int
    active_days_count: int
    suggested_duration_minutes: Optional[int] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def available_minutes(calendar: CalendarConfig, end_date: date) -> Tuple[int, int]:
    """(open window minutes per court, open days) from start_date to end_date inclusive."""
    total = 0
    days = 0
    day = calendar.start_date
    while day <= end_date:
        window = calendar.window_for(day)
        if window is not None:
            total += window.minutes
            days += 1
        day += timedelta(days=1)
    return total, days


def check_schedule_capacity(
    match_count: int,
    court_count: int,
    calendar: CalendarConfig,
    end_date: date,
    transition_minutes: int = 0,
) -> CapacityCheck:
    validate_calendar(court_count, calendar)
    rounds_needed = math.ceil(match_count / court_count)
    required = rounds_needed * (calendar.match_duration_minutes + transition_minutes)
    available, days = available_minutes(calendar, end_date)

    if required <= available:
        return CapacityCheck(
            fits=True,
            required_minutes=required,
            available_minutes=available,
            active_days_count=days,
        )

    suggested = None
    if rounds_needed:
        candidate = available // rounds_needed - transition_minutes
        suggested = candidate if candidate > 0 else None

    warning = (
        f"{match_count} matches on {court_count} courts need {required} minutes per court "
        f"but only {available} are available until {end_date.isoformat()}"
    )
    if suggested is not None:
        warning += f"; a {suggested}-minute match duration would fit"

    return CapacityCheck(
        fits=False,
        required_minutes=required,
        available_minutes=available,
        active_days_count=days,
        suggested_duration_minutes=suggested,
        warning=warning,
    )
