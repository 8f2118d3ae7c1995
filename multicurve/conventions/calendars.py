"""
QuantLib-backed business day calendars.
"""

from datetime import date, datetime
from typing import Union

import QuantLib as ql

from .daycount import from_ql_date, to_ql_date


class Calendar:
    """Business day calendar delegating holiday rules to QuantLib."""

    def __init__(self, name: str, ql_calendar: ql.Calendar):
        self.name = name
        self._ql_calendar = ql_calendar

    def is_business_day(self, dt: Union[date, datetime]) -> bool:
        """Check if date is a business day (not weekend or holiday)."""
        return self._ql_calendar.isBusinessDay(to_ql_date(dt))

    def add_business_days(self, start_date: Union[date, datetime], days: int) -> date:
        """Move a date by a number of business days (negative moves back)."""
        ql_result = self._ql_calendar.advance(to_ql_date(start_date), days, ql.Days)
        return from_ql_date(ql_result)

    def __str__(self) -> str:
        return self.name


TARGET = Calendar("TARGET", ql.TARGET())
WEEKEND_ONLY = Calendar("WEEKEND", ql.WeekendsOnly())

CALENDARS = {
    "TARGET": TARGET,
    "EUR": TARGET,
    "WEEKEND": WEEKEND_ONLY,
}


def get_calendar(name: Union[str, Calendar]) -> Calendar:
    """Resolve a calendar by name ("TARGET", "EUR" or "WEEKEND")."""
    if isinstance(name, Calendar):
        return name
    key = name.upper()
    if key not in CALENDARS:
        raise ValueError(
            f"Unknown calendar: {name}. Available: {list(CALENDARS.keys())}"
        )
    return CALENDARS[key]
