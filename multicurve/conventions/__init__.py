"""
Market conventions: day counts, calendars and date arithmetic.
"""

from .calendars import TARGET, WEEKEND_ONLY, Calendar, get_calendar
from .dates import (
    add_months,
    adjust_date,
    compute_maturity,
    generate_schedule,
    get_spot_date,
)
from .daycount import (
    ACT_360,
    ACT_365F,
    ACT_ACT,
    THIRTY_360E,
    DayCountConvention,
    get_day_count_convention,
)
from .types import BusinessDayAdjustment, Frequency

__all__ = [
    # Day counts
    "DayCountConvention",
    "get_day_count_convention",
    "ACT_360",
    "ACT_365F",
    "ACT_ACT",
    "THIRTY_360E",
    # Calendars
    "Calendar",
    "get_calendar",
    "TARGET",
    "WEEKEND_ONLY",
    # Dates
    "BusinessDayAdjustment",
    "Frequency",
    "add_months",
    "adjust_date",
    "compute_maturity",
    "generate_schedule",
    "get_spot_date",
]
