"""Business constants for resolution and the monthly labor forecast."""

from __future__ import annotations

import copy
import datetime
from typing import Any, Dict, Optional


WEEKDAY_TOKENS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
WEEKEND_DAYS = frozenset({0, 6})

STATUS_ON = "on"
STATUS_OFF = "off"
STATUS_CHOICES = ("on", "off", "sick", "vacation", "no-call-no-show")

FREQUENCY_EVERY = "every"
FREQUENCY_EVERY_OTHER = "every-other"
FREQUENCY_CHOICES = (FREQUENCY_EVERY, FREQUENCY_EVERY_OTHER)

SOURCE_WEEKDAY_DEFAULT = "Weekday Default"
SOURCE_WEEKEND_DEFAULT = "Weekend Default"
SOURCE_RECURRING_RULE = "Recurring Rule"
SOURCE_SPECIFIC_OVERRIDE = "Specific Override"

STANDARD_SHIFT_HOURS = 8.0
FALLBACK_WORKING_DAYS = 22
FIELD_SUPERVISOR_COUNT = 2
SECOND_SHIFT_ZONE = "2nd Shift"

# Job volume of a Saturday/Sunday relative to a weekday.
DAY_TYPE_WEIGHTS: Dict[str, float] = {
    "weekday": 1.0,
    "saturday": 0.5,
    "sunday": 0.25,
}

DEFAULT_WAGE_SETTINGS: Dict[str, float] = {
    "avg_hourly_base_wage": 19.52,
    "avg_ot_wage": 29.28,
    "field_supervisor_wage": 64000.0,
    "field_supervisor_bonus": 500.0,
    "foreman_wage": 59000.0,
    "assistant_mit_manager_wage": 78000.0,
    "mit_manager_wage": 100000.0,
}

_WORKING_DAYS = [23, 19, 21, 22, 21, 20, 22, 21, 21, 22, 18, 22]
_LEADS_TARGET = [401, 366, 361, 391, 500, 505, 510, 515, 431, 416, 406, 396]
_HISTORICAL_LEADS_PCT = [0.828, 0.902, 0.873, 0.78, 0.76, 0.89]
_HISTORICAL_BOOKING = [0.852, 0.833, 0.857, 0.83, 0.847, 0.805]
_HISTORICAL_INS_CLOSING = [0.4382, 0.4873, 0.4074, 0.4173, 0.4068, 0.378]
_HISTORICAL_CASH_CLOSING = [0.212, 0.1527, 0.1618, 0.2008, 0.2516, 0.218]


def _historical(values, month_index: int, fallback: float) -> float:
    if 0 <= month_index < len(values):
        return values[month_index]
    return fallback


def default_monthly_inputs(month_index: int, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Seed planning inputs for a zero-based month index.

    Months before ``today``'s month use the recorded historical rates where
    they exist; later months use the standing targets.
    """
    today = today or datetime.date.today()
    historical = month_index < today.month - 1
    return {
        "days_in_month": _WORKING_DAYS[month_index],
        "leads_percent_goal": _historical(_HISTORICAL_LEADS_PCT, month_index, 0.85) if historical else 0.85,
        "leads_target": _LEADS_TARGET[month_index],
        "booking_rate": _historical(_HISTORICAL_BOOKING, month_index, 0.85) if historical else 0.85,
        "wtr_ins_closing_rate": _historical(_HISTORICAL_INS_CLOSING, month_index, 0.43) if historical else 0.43,
        "wtr_cash_closing_rate": _historical(_HISTORICAL_CASH_CLOSING, month_index, 0.175) if historical else 0.175,
        "avg_days_onsite": 5,
        "hours_per_appointment": 4,
        "ot_hours_per_tech_per_day": 1.5 if month_index == 7 else 0,
        "team_members_off_per_day": 3,
        "average_drive_time": 1.0,
    }


def default_wage_settings() -> Dict[str, float]:
    return copy.deepcopy(DEFAULT_WAGE_SETTINGS)


def weekday_index(date_: datetime.date) -> int:
    """Day of week with Sunday = 0 .. Saturday = 6."""
    return (date_.weekday() + 1) % 7


def is_weekend(date_: datetime.date) -> bool:
    return weekday_index(date_) in WEEKEND_DAYS


def day_type(date_: datetime.date) -> str:
    index = weekday_index(date_)
    if index == 6:
        return "saturday"
    if index == 0:
        return "sunday"
    return "weekday"
