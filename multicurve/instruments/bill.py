"""
Government bill calibration instrument quoted as a discount yield.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Tuple

import numpy as np

from multicurve.conventions.calendars import Calendar, get_calendar
from multicurve.conventions.dates import compute_maturity, get_spot_date
from multicurve.conventions.daycount import ACT_360, DayCountConvention
from multicurve.conventions.types import BusinessDayAdjustment
from multicurve.curves.base import df_gradients
from multicurve.curves.provider import KnownData

from .base import CalibrationInstrument, accumulate


@dataclass
class BillConvention:
    """Settlement and yield conventions of a bill market."""

    day_count: DayCountConvention
    settlement_lag_days: int
    business_day_adjustment: BusinessDayAdjustment
    calendar: str = "TARGET"

    @property
    def calendar_obj(self) -> Calendar:
        return get_calendar(self.calendar)


EUR_BILL = BillConvention(
    day_count=ACT_360,
    settlement_lag_days=2,
    business_day_adjustment=BusinessDayAdjustment.FOLLOWING,
)


@dataclass(frozen=True)
class BillInstrument(CalibrationInstrument):
    """Zero-coupon bill priced off the issuer curve.

    The price is the issuer forward discount factor from settlement to
    maturity, ``P = D(end) / D(settle)``, and the quote is the discount yield
    ``(1 - P) / tau``.
    """

    curve_name: str
    settlement_date: date
    end_date: date
    day_count: DayCountConvention = ACT_360

    def __post_init__(self):
        if self.end_date <= self.settlement_date:
            raise ValueError(
                f"Bill {self.name}: maturity {self.end_date} must be after "
                f"settlement {self.settlement_date}"
            )

    @classmethod
    def from_tenor(
        cls,
        curve_date: date,
        tenor: str,
        discount_yield: float,
        curve_name: str,
        convention: BillConvention = EUR_BILL,
        name: Optional[str] = None,
    ) -> "BillInstrument":
        calendar = convention.calendar_obj
        settle = get_spot_date(curve_date, calendar, convention.settlement_lag_days)
        end = compute_maturity(
            settle,
            tenor,
            calendar=calendar,
            business_day_adjustment=convention.business_day_adjustment,
        )
        return cls(
            name=name or f"{curve_name} {tenor.upper()} bill",
            reference_date=curve_date,
            quote=discount_yield,
            curve_name=curve_name,
            settlement_date=settle,
            end_date=end,
            day_count=convention.day_count,
        )

    @property
    def curve_names(self) -> Tuple[str, ...]:
        return (self.curve_name,)

    @property
    def maturity_date(self) -> date:
        return self.end_date

    @property
    def accrual_fraction(self) -> float:
        return self.day_count.year_fraction(self.settlement_date, self.end_date)

    def price(self, provider: KnownData) -> float:
        """Price per unit notional at settlement."""
        curve = provider.get_curve(self.curve_name)
        return curve.df(self.end_date) / curve.df(self.settlement_date)

    def par_rate(self, provider: KnownData) -> float:
        return (1.0 - self.price(provider)) / self.accrual_fraction

    def par_rate_sensitivity(self, provider: KnownData) -> Dict[str, np.ndarray]:
        curve = provider.get_curve(self.curve_name)
        df_settle = curve.df(self.settlement_date)
        df_end = curve.df(self.end_date)
        tau = self.accrual_fraction

        # rate = (1 - D(end) / D(settle)) / tau
        d_settle = df_gradients(curve, self.curve_name, self.settlement_date)
        d_end = df_gradients(curve, self.curve_name, self.end_date)
        result: Dict[str, np.ndarray] = {}
        accumulate(result, d_end, -1.0 / (df_settle * tau))
        accumulate(result, d_settle, df_end / (df_settle**2 * tau))
        return result
