"""
Date arithmetic for calibration instruments: business day adjustment, spot
lag, tenor parsing and regular payment schedules.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from .calendars import Calendar, get_calendar
from .types import BusinessDayAdjustment, Frequency


def adjust_date(
    dt: Union[date, datetime], adjustment: BusinessDayAdjustment, calendar: Calendar
) -> date:
    """Apply business day adjustment to a date."""
    if isinstance(dt, datetime):
        dt = dt.date()

    if adjustment == BusinessDayAdjustment.NO_ADJUSTMENT:
        return dt

    if adjustment in (
        BusinessDayAdjustment.FOLLOWING,
        BusinessDayAdjustment.MODIFIED_FOLLOWING,
    ):
        step = timedelta(days=1)
    elif adjustment in (
        BusinessDayAdjustment.PRECEDING,
        BusinessDayAdjustment.MODIFIED_PRECEDING,
    ):
        step = timedelta(days=-1)
    else:
        raise ValueError(f"Unknown business day adjustment: {adjustment}")

    adjusted = dt
    while not calendar.is_business_day(adjusted):
        adjusted += step

    modified = adjustment in (
        BusinessDayAdjustment.MODIFIED_FOLLOWING,
        BusinessDayAdjustment.MODIFIED_PRECEDING,
    )
    if modified and adjusted.month != dt.month:
        # Rolled into another month, go the other way instead
        adjusted = dt
        while not calendar.is_business_day(adjusted):
            adjusted -= step
    return adjusted


def get_month_end(year: int, month: int) -> date:
    """Get the last calendar day of a given month."""
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return next_month - timedelta(days=1)


def add_months(dt: date, months: int, end_of_month_rule: bool = True) -> date:
    """Add calendar months, keeping month-end dates at month end."""
    total = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(total, 12)
    month += 1

    month_end = get_month_end(year, month)
    if end_of_month_rule and dt == get_month_end(dt.year, dt.month):
        return month_end
    return date(year, month, min(dt.day, month_end.day))


def get_spot_date(
    trade_date: Union[date, datetime], calendar: Optional[Calendar] = None, spot_lag: int = 2
) -> date:
    """Spot date from trade date (default: 2 business days on TARGET)."""
    if isinstance(trade_date, datetime):
        trade_date = trade_date.date()
    if calendar is None:
        calendar = get_calendar("TARGET")
    if spot_lag == 0:
        return trade_date
    return calendar.add_business_days(trade_date, spot_lag)


def tenor_to_months(tenor: str) -> int:
    """Convert tenor string (e.g. '3M', '2Y') to number of months."""
    t = tenor.upper().strip()
    if t.endswith("M"):
        return int(t[:-1])
    if t.endswith("Y"):
        return int(t[:-1]) * 12
    raise ValueError(f"Unsupported tenor: {tenor}")


def tenor_to_days(tenor: str) -> int:
    """Convert short tenor string ('1D', '2W') to calendar days."""
    t = tenor.upper().strip()
    if t.endswith("D"):
        return int(t[:-1])
    if t.endswith("W"):
        return int(t[:-1]) * 7
    raise ValueError(f"Unsupported short tenor: {tenor}")


def compute_maturity(
    start_date: date,
    tenor: str,
    calendar: Optional[Calendar] = None,
    business_day_adjustment: BusinessDayAdjustment = BusinessDayAdjustment.MODIFIED_FOLLOWING,
    end_of_month_rule: bool = True,
) -> date:
    """End date of a period starting at ``start_date`` with the given tenor.

    ``ON``/``TN`` are one business day. Day and week tenors use calendar days
    followed by ``FOLLOWING``; month and year tenors use month arithmetic with
    the requested adjustment.
    """
    if calendar is None:
        calendar = get_calendar("TARGET")
    t = tenor.upper().strip()

    if t in ("ON", "TN"):
        return calendar.add_business_days(start_date, 1)
    if t.endswith(("D", "W")):
        unadjusted = start_date + timedelta(days=tenor_to_days(t))
        return adjust_date(unadjusted, BusinessDayAdjustment.FOLLOWING, calendar)

    unadjusted = add_months(start_date, tenor_to_months(t), end_of_month_rule)
    return adjust_date(unadjusted, business_day_adjustment, calendar)


def generate_schedule(
    start_date: date,
    maturity_date: date,
    frequency: Frequency,
    calendar: Optional[Calendar] = None,
    business_day_adjustment: BusinessDayAdjustment = BusinessDayAdjustment.MODIFIED_FOLLOWING,
    end_of_month_rule: bool = True,
) -> List[date]:
    """Regular schedule rolled forward from ``start_date``.

    Roll dates are computed from the unadjusted start so adjustments do not
    accumulate. A short final stub ends on ``maturity_date``.
    """
    if maturity_date <= start_date:
        raise ValueError(
            f"Maturity {maturity_date} must be after start {start_date}"
        )
    if calendar is None:
        calendar = get_calendar("TARGET")

    dates: List[date] = [start_date]
    k = 1
    while True:
        roll = add_months(start_date, k * frequency.months(), end_of_month_rule)
        adjusted = adjust_date(roll, business_day_adjustment, calendar)
        if adjusted >= maturity_date - timedelta(days=7):
            dates.append(maturity_date)
            return dates
        dates.append(adjusted)
        k += 1
