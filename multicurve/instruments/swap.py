"""
Fixed/floating swap calibration instrument.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

import numpy as np

from multicurve.conventions.calendars import Calendar, get_calendar
from multicurve.conventions.dates import (
    compute_maturity,
    generate_schedule,
    get_spot_date,
)
from multicurve.conventions.daycount import ACT_360, THIRTY_360E, DayCountConvention
from multicurve.conventions.types import BusinessDayAdjustment, Frequency
from multicurve.curves.base import df_gradients
from multicurve.curves.provider import KnownData

from .base import AccrualPeriod, CalibrationInstrument, accumulate


@dataclass
class SwapConvention:
    """Leg conventions for a plain-vanilla fixed/floating swap."""

    fixed_frequency: Frequency
    fixed_day_count: DayCountConvention
    floating_frequency: Frequency
    floating_day_count: DayCountConvention
    settlement_lag_days: int = 2
    business_day_adjustment: BusinessDayAdjustment = BusinessDayAdjustment.MODIFIED_FOLLOWING
    calendar: str = "TARGET"

    @property
    def calendar_obj(self) -> Calendar:
        return get_calendar(self.calendar)


EUR_SWAP_6M = SwapConvention(
    fixed_frequency=Frequency.ANNUAL,
    fixed_day_count=THIRTY_360E,
    floating_frequency=Frequency.SEMIANNUAL,
    floating_day_count=ACT_360,
)

EUR_SWAP_3M = SwapConvention(
    fixed_frequency=Frequency.ANNUAL,
    fixed_day_count=THIRTY_360E,
    floating_frequency=Frequency.QUARTERLY,
    floating_day_count=ACT_360,
)


def _build_periods(
    schedule: List[date], day_count: DayCountConvention
) -> Tuple[AccrualPeriod, ...]:
    periods = []
    for start, end in zip(schedule[:-1], schedule[1:]):
        year_fraction = day_count.year_fraction(start, end)
        if year_fraction <= 1e-12:
            continue
        periods.append(AccrualPeriod(start, end, year_fraction))
    return tuple(periods)


@dataclass(frozen=True)
class SwapInstrument(CalibrationInstrument):
    """Swap quoted as its par fixed rate.

    Forwards are projected off ``forward_curve`` and all cash flows are
    discounted on ``discount_curve``::

        par = sum_j (F(s_j) / F(e_j) - 1) * D(e_j) / sum_k alpha_k * D(t_k)

    The two curve names may coincide for a single-curve set-up.
    """

    discount_curve: str
    forward_curve: str
    fixed_periods: Tuple[AccrualPeriod, ...]
    floating_periods: Tuple[AccrualPeriod, ...]

    def __post_init__(self):
        if not self.fixed_periods or not self.floating_periods:
            raise ValueError(f"Swap {self.name}: both legs need at least one period")

    @classmethod
    def from_tenor(
        cls,
        curve_date: date,
        tenor: str,
        rate: float,
        discount_curve: str,
        forward_curve: Optional[str] = None,
        convention: SwapConvention = EUR_SWAP_6M,
        name: Optional[str] = None,
    ) -> "SwapInstrument":
        """Spot-starting swap with regular schedules on both legs."""
        forward_curve = forward_curve or discount_curve
        calendar = convention.calendar_obj
        adjustment = convention.business_day_adjustment

        spot = get_spot_date(curve_date, calendar, convention.settlement_lag_days)
        maturity = compute_maturity(
            spot, tenor, calendar=calendar, business_day_adjustment=adjustment
        )
        fixed_schedule = generate_schedule(
            spot, maturity, convention.fixed_frequency, calendar, adjustment
        )
        floating_schedule = generate_schedule(
            spot, maturity, convention.floating_frequency, calendar, adjustment
        )
        return cls(
            name=name or f"{forward_curve} {tenor.upper()} swap",
            reference_date=curve_date,
            quote=rate,
            discount_curve=discount_curve,
            forward_curve=forward_curve,
            fixed_periods=_build_periods(fixed_schedule, convention.fixed_day_count),
            floating_periods=_build_periods(floating_schedule, convention.floating_day_count),
        )

    @property
    def curve_names(self) -> Tuple[str, ...]:
        if self.discount_curve == self.forward_curve:
            return (self.discount_curve,)
        return (self.discount_curve, self.forward_curve)

    @property
    def maturity_date(self) -> date:
        return max(self.fixed_periods[-1].accrual_end, self.floating_periods[-1].accrual_end)

    @property
    def last_fixing_end_date(self) -> date:
        return self.floating_periods[-1].accrual_end

    # ------------------------------------------------------------------
    # Legs
    # ------------------------------------------------------------------
    def annuity(self, provider: KnownData) -> float:
        """PV of one unit of fixed rate."""
        discount = provider.get_curve(self.discount_curve)
        return math.fsum(
            period.year_fraction * discount.df(period.accrual_end)
            for period in self.fixed_periods
        )

    def floating_pv(self, provider: KnownData) -> float:
        discount = provider.get_curve(self.discount_curve)
        forward = provider.get_curve(self.forward_curve)
        return math.fsum(
            (forward.df(p.accrual_start) / forward.df(p.accrual_end) - 1.0)
            * discount.df(p.accrual_end)
            for p in self.floating_periods
        )

    def par_rate(self, provider: KnownData) -> float:
        return self.floating_pv(provider) / self.annuity(provider)

    def par_rate_sensitivity(self, provider: KnownData) -> Dict[str, np.ndarray]:
        discount = provider.get_curve(self.discount_curve)
        forward = provider.get_curve(self.forward_curve)
        annuity = self.annuity(provider)
        par = self.floating_pv(provider) / annuity

        # d(par) = (d(floating) - par * d(annuity)) / annuity, per curve
        result: Dict[str, np.ndarray] = {}
        for period in self.fixed_periods:
            d_end = df_gradients(discount, self.discount_curve, period.accrual_end)
            accumulate(result, d_end, -par * period.year_fraction)

        for period in self.floating_periods:
            fwd_start = forward.df(period.accrual_start)
            fwd_end = forward.df(period.accrual_end)
            disc_end = discount.df(period.accrual_end)

            d_disc = df_gradients(discount, self.discount_curve, period.accrual_end)
            accumulate(result, d_disc, fwd_start / fwd_end - 1.0)

            d_start = df_gradients(forward, self.forward_curve, period.accrual_start)
            d_end = df_gradients(forward, self.forward_curve, period.accrual_end)
            accumulate(result, d_start, disc_end / fwd_end)
            accumulate(result, d_end, -disc_end * fwd_start / fwd_end**2)

        return {name: gradient / annuity for name, gradient in result.items()}
