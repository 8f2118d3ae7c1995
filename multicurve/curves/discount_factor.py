"""Curve interpolating its node discount factors directly."""

from __future__ import annotations

import math
from datetime import date
from typing import Sequence, Union

import numpy as np

from multicurve.conventions.daycount import DayCountConvention

from .base import BaseCurve, TimeLike

DISCOUNT_FACTOR_METHODS = ("LINEAR_DF", "LOGLINEAR_DF")


class DiscountFactorCurve(BaseCurve):
    """Curve whose parameters are the discount factors at its nodes.

    ``LINEAR_DF`` interpolates the discount factors linearly, ``LOGLINEAR_DF``
    interpolates their logarithms. Outside the nodes the zero rate of the
    nearest node is held flat.
    """

    def __init__(
        self,
        reference_date: date,
        node_times: Sequence[float],
        discount_factors: Sequence[float],
        interpolation_method: str = "LOGLINEAR_DF",
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
    ):
        super().__init__(reference_date, name, time_day_count)
        times = np.asarray(node_times, dtype=float)
        factors = np.asarray(discount_factors, dtype=float)
        if times.shape != factors.shape or times.ndim != 1 or len(times) == 0:
            raise ValueError(
                f"Curve {name!r}: {len(times)} node times but {len(factors)} discount factors"
            )
        if times[0] <= 0.0 or np.any(np.diff(times) <= 0.0):
            raise ValueError(f"Curve {name!r}: node times must be positive and increasing")
        if not np.all(np.isfinite(factors)) or np.any(factors <= 0.0):
            raise ValueError(f"Curve {name!r}: discount factors must be positive, got {factors}")

        method = interpolation_method.upper()
        if method not in DISCOUNT_FACTOR_METHODS:
            raise ValueError(
                f"Unknown interpolation method: {interpolation_method}. "
                f"Known methods: {list(DISCOUNT_FACTOR_METHODS)}"
            )
        self.interpolation_method = method
        self._times = times
        self._factors = factors

    @property
    def node_times(self) -> np.ndarray:
        return self._times.copy()

    @property
    def parameters(self) -> np.ndarray:
        return self._factors.copy()

    @property
    def n_parameters(self) -> int:
        return len(self._times)

    def df(self, t: TimeLike) -> float:
        tau = self.time(t)
        if tau == 0.0:
            return 1.0
        edge = self._edge(tau)
        if edge is not None:
            return float(self._factors[edge] ** (tau / self._times[edge]))

        i, weight = self._bracket(tau)
        lower, upper = self._factors[i], self._factors[i + 1]
        if self.interpolation_method == "LINEAR_DF":
            return float(lower + weight * (upper - lower))
        return float(math.exp((1.0 - weight) * math.log(lower) + weight * math.log(upper)))

    def df_sensitivity(self, t: TimeLike) -> np.ndarray:
        """Gradient of ``df(t)`` with respect to the node discount factors."""
        tau = self.time(t)
        gradient = np.zeros(self.n_parameters)
        if tau == 0.0:
            return gradient
        edge = self._edge(tau)
        if edge is not None:
            exponent = tau / self._times[edge]
            gradient[edge] = exponent * self._factors[edge] ** (exponent - 1.0)
            return gradient

        i, weight = self._bracket(tau)
        if self.interpolation_method == "LINEAR_DF":
            gradient[i] = 1.0 - weight
            gradient[i + 1] = weight
        else:
            value = self.df(tau)
            gradient[i] = (1.0 - weight) * value / self._factors[i]
            gradient[i + 1] = weight * value / self._factors[i + 1]
        return gradient

    def _edge(self, tau: float):
        """Index of the node whose zero rate is extrapolated, if any."""
        if tau <= self._times[0]:
            return 0
        if tau >= self._times[-1]:
            return len(self._times) - 1
        return None

    def _bracket(self, tau: float):
        i = int(np.searchsorted(self._times, tau, side="right")) - 1
        weight = (tau - self._times[i]) / (self._times[i + 1] - self._times[i])
        return i, weight

    def __repr__(self) -> str:
        return (
            f"DiscountFactorCurve(name={self.name!r}, nodes={self.n_parameters}, "
            f"interpolation={self.interpolation_method!r})"
        )
