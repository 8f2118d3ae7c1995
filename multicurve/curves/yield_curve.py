"""Interpolated yield curve parameterized by its node zero rates."""

from __future__ import annotations

import math
from datetime import date
from typing import Optional, Sequence, Union

import numpy as np

from multicurve.conventions.daycount import DayCountConvention
from multicurve.interpolation import create_interpolator

from .base import BaseCurve, TimeLike


class InterpolatedYieldCurve(BaseCurve):
    """Yield curve defined by zero rates at nodes.

    The node rates are the curve parameters: calibration moves them and
    :meth:`df_sensitivity` returns the discount factor gradient with respect
    to them. Rates are continuously compounded unless ``compounding_periods``
    is given, in which case they are yields compounded that many times a
    year and ``df(t) = (1 + y / n) ** (-n * t)``.
    """

    def __init__(
        self,
        reference_date: date,
        node_times: Sequence[float],
        zero_rates: Sequence[float],
        interpolation_method: str = "LOGLINEAR_ZERO",
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
        compounding_periods: Optional[int] = None,
    ):
        super().__init__(reference_date, name, time_day_count)

        times = np.asarray(node_times, dtype=float)
        rates = np.asarray(zero_rates, dtype=float)
        if times.shape != rates.shape or times.ndim != 1:
            raise ValueError(
                f"Curve {name!r}: {len(times)} node times but {len(rates)} zero rates"
            )
        if len(times) > 1 and np.any(np.diff(times) <= 0.0):
            raise ValueError(f"Curve {name!r}: node times must be strictly increasing")
        if not np.all(np.isfinite(rates)):
            raise ValueError(f"Curve {name!r}: zero rates must be finite, got {rates}")
        if compounding_periods is not None and compounding_periods < 1:
            raise ValueError(
                f"Curve {name!r}: compounding periods must be positive, got {compounding_periods}"
            )

        self.interpolation_method = interpolation_method.upper()
        self.compounding_periods = compounding_periods
        self._interpolator = create_interpolator(self.interpolation_method, times, rates)

    @classmethod
    def flat(
        cls,
        reference_date: date,
        rate: float,
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
    ) -> "InterpolatedYieldCurve":
        """Single-node curve with a constant zero rate."""
        return cls(reference_date, [1.0], [rate], "LINEAR_ZERO", name, time_day_count)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    @property
    def node_times(self) -> np.ndarray:
        return self._interpolator.pillars.copy()

    @property
    def parameters(self) -> np.ndarray:
        return self._interpolator.values.copy()

    @property
    def n_parameters(self) -> int:
        return self._interpolator.size

    # ------------------------------------------------------------------
    # Curve interface
    # ------------------------------------------------------------------
    def zero(self, t: TimeLike) -> float:
        rate = self._interpolator.interpolate(self.time(t))
        n = self.compounding_periods
        if n is None:
            return rate
        return n * math.log1p(rate / n)

    def df(self, t: TimeLike) -> float:
        time_frac = self.time(t)
        if time_frac == 0.0:
            return 1.0
        rate = self._interpolator.interpolate(time_frac)
        n = self.compounding_periods
        if n is None:
            return math.exp(-rate * time_frac)
        return (1.0 + rate / n) ** (-n * time_frac)

    def df_sensitivity(self, t: TimeLike) -> np.ndarray:
        """Gradient of ``df(t)`` with respect to the node rates."""
        time_frac = self.time(t)
        if time_frac == 0.0:
            return np.zeros(self.n_parameters)
        weights = self._interpolator.node_sensitivity(time_frac)
        d_rate = -time_frac * self.df(time_frac)
        if self.compounding_periods is not None:
            d_rate /= 1.0 + self._interpolator.interpolate(time_frac) / self.compounding_periods
        return d_rate * weights

    def shift_parallel(self, shift: float) -> "InterpolatedYieldCurve":
        """Copy of the curve with every node rate moved by ``shift``."""
        return InterpolatedYieldCurve(
            reference_date=self.reference_date,
            node_times=self.node_times,
            zero_rates=self.parameters + shift,
            interpolation_method=self.interpolation_method,
            name=self.name,
            time_day_count=self.time_day_count,
            compounding_periods=self.compounding_periods,
        )

    def __repr__(self) -> str:
        compounding = (
            "continuous" if self.compounding_periods is None else self.compounding_periods
        )
        return (
            f"InterpolatedYieldCurve(name={self.name!r}, "
            f"reference_date={self.reference_date}, "
            f"nodes={self.n_parameters}, "
            f"interpolation={self.interpolation_method!r}, "
            f"compounding={compounding!r})"
        )
