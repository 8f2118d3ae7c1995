"""
QuantLib-backed day count conventions.

Instruments use these to turn accrual periods into year fractions, curves use
them to turn dates into curve times.
"""

from datetime import date, datetime
from typing import Dict, Tuple, Union

import QuantLib as ql

DateLike = Union[date, datetime]


def to_ql_date(dt: DateLike) -> ql.Date:
    """Convert Python date/datetime to QuantLib Date."""
    if isinstance(dt, datetime):
        dt = dt.date()
    return ql.Date(dt.day, dt.month, dt.year)


def from_ql_date(ql_date: ql.Date) -> date:
    return date(ql_date.year(), ql_date.month(), ql_date.dayOfMonth())


class DayCountConvention:
    """A QuantLib day counter registered under a market name.

    Args:
        name: Canonical name, e.g. ``"ACT/360"``
        ql_daycount: The QuantLib counter doing the arithmetic
        aliases: Other names that resolve to this convention
    """

    def __init__(
        self, name: str, ql_daycount: ql.DayCounter, aliases: Tuple[str, ...] = ()
    ):
        self.name = name
        self.aliases = aliases
        self._counter = ql_daycount

    def year_fraction(self, start: DateLike, end: DateLike) -> float:
        return self._counter.yearFraction(to_ql_date(start), to_ql_date(end))

    def day_count(self, start: DateLike, end: DateLike) -> int:
        return self._counter.dayCount(to_ql_date(start), to_ql_date(end))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"DayCountConvention({self.name!r})"


# Money-market deposits, bills and floating legs
ACT_360 = DayCountConvention("ACT/360", ql.Actual360(), ("ACTUAL/360",))
# Time axis of every curve in this package
ACT_365F = DayCountConvention("ACT/365F", ql.Actual365Fixed(), ("ACT/365", "ACTUAL/365F"))
# Fixed swap legs
THIRTY_360E = DayCountConvention(
    "30E/360", ql.Thirty360(ql.Thirty360.European), ("30/360E",)
)
ACT_ACT = DayCountConvention(
    "ACT/ACT", ql.ActualActual(ql.ActualActual.ISDA), ("ACTUAL/ACTUAL", "ACT/ACT ISDA")
)

_REGISTRY: Dict[str, DayCountConvention] = {
    key: convention
    for convention in (ACT_360, ACT_365F, THIRTY_360E, ACT_ACT)
    for key in (convention.name,) + convention.aliases
}


def get_day_count_convention(
    name: Union[str, DayCountConvention]
) -> DayCountConvention:
    """Resolve a day count convention by name; instances pass through."""
    if isinstance(name, DayCountConvention):
        return name
    convention = _REGISTRY.get(name.strip().upper())
    if convention is None:
        raise ValueError(
            f"Unknown day count convention: {name}. Available: {sorted(_REGISTRY)}"
        )
    return convention
