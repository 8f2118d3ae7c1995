"""
Money-market deposit calibration instrument and its conventions.
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
class DepositConvention:
    """Market conventions of a deposit or cash instrument."""

    day_count: DayCountConvention
    settlement_lag_days: int
    business_day_adjustment: BusinessDayAdjustment
    calendar: str = "TARGET"

    @property
    def calendar_obj(self) -> Calendar:
        return get_calendar(self.calendar)


EUR_DEPOSIT = DepositConvention(
    day_count=ACT_360,
    settlement_lag_days=2,
    business_day_adjustment=BusinessDayAdjustment.MODIFIED_FOLLOWING,
)

OVERNIGHT_DEPOSIT = DepositConvention(
    day_count=ACT_360,
    settlement_lag_days=0,
    business_day_adjustment=BusinessDayAdjustment.FOLLOWING,
)


@dataclass(frozen=True)
class DepositInstrument(CalibrationInstrument):
    """Deposit quoted as a simple money-market rate.

    ``par_rate = (P(start) / P(end) - 1) / tau`` on a single curve.
    """

    curve_name: str
    start_date: date
    end_date: date
    day_count: DayCountConvention = ACT_360

    def __post_init__(self):
        if self.end_date <= self.start_date:
            raise ValueError(
                f"Deposit {self.name}: end {self.end_date} must be after start {self.start_date}"
            )

    @classmethod
    def from_tenor(
        cls,
        curve_date: date,
        tenor: str,
        rate: float,
        curve_name: str,
        convention: DepositConvention = EUR_DEPOSIT,
        name: Optional[str] = None,
    ) -> "DepositInstrument":
        """Deposit starting at spot and maturing ``tenor`` later."""
        calendar = convention.calendar_obj
        start = get_spot_date(curve_date, calendar, convention.settlement_lag_days)
        end = compute_maturity(
            start,
            tenor,
            calendar=calendar,
            business_day_adjustment=convention.business_day_adjustment,
        )
        return cls(
            name=name or f"{curve_name} {tenor.upper()} deposit",
            reference_date=curve_date,
            quote=rate,
            curve_name=curve_name,
            start_date=start,
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
        return self.day_count.year_fraction(self.start_date, self.end_date)

    def par_rate(self, provider: KnownData) -> float:
        curve = provider.get_curve(self.curve_name)
        return (curve.df(self.start_date) / curve.df(self.end_date) - 1.0) / self.accrual_fraction

    def par_rate_sensitivity(self, provider: KnownData) -> Dict[str, np.ndarray]:
        curve = provider.get_curve(self.curve_name)
        df_start = curve.df(self.start_date)
        df_end = curve.df(self.end_date)
        tau = self.accrual_fraction

        d_start = df_gradients(curve, self.curve_name, self.start_date)
        d_end = df_gradients(curve, self.curve_name, self.end_date)
        result: Dict[str, np.ndarray] = {}
        accumulate(result, d_start, 1.0 / (df_end * tau))
        accumulate(result, d_end, -df_start / (df_end**2 * tau))
        return result
