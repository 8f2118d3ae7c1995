"""
Curve protocol used by instruments, and a base class for dated curves.
"""

import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, Optional, Protocol, Union

import numpy as np

from multicurve.conventions.daycount import (
    DayCountConvention,
    get_day_count_convention,
)

# Curve time in years, or a date measured from the curve's reference date
TimeLike = Union[datetime, date, float]


class Curve(Protocol):
    """What an instrument needs from a curve to price itself."""

    name: str

    def df(self, t: TimeLike) -> float:
        ...

    def zero(self, t: TimeLike) -> float:
        ...


class BaseCurve(ABC):
    """Curve anchored at ``reference_date`` with its own time axis.

    Args:
        reference_date: Date at which curve time is zero
        name: Key of the curve in known data
        time_day_count: Convention mapping dates to curve times
    """

    def __init__(
        self,
        reference_date: date,
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
    ):
        self.reference_date = reference_date
        self.name = name
        self.time_day_count = get_day_count_convention(time_day_count)

    def time(self, t: TimeLike) -> float:
        """Curve time of ``t``; numbers are taken as times already."""
        if isinstance(t, (int, float, np.floating)):
            return float(t)
        if isinstance(t, datetime):
            t = t.date()
        return self.time_day_count.year_fraction(self.reference_date, t)

    @abstractmethod
    def df(self, t: TimeLike) -> float:
        pass

    def zero(self, t: TimeLike) -> float:
        """Continuously compounded zero rate implied by :meth:`df`."""
        tau = self.time(t)
        if tau <= 0:
            return 0.0
        discount = self.df(t)
        if discount <= 0:
            raise ValueError(f"Curve {self.name!r}: discount factor {discount} at t={tau}")
        return -math.log(discount) / tau

    def forward(self, u: TimeLike, v: TimeLike, dcc: Optional[str] = None) -> float:
        """Simply compounded forward rate between u and v.

        With ``dcc`` and date inputs the accrual follows that convention,
        otherwise it is the distance on the curve's own time axis.
        """
        if dcc is not None and isinstance(u, date) and isinstance(v, date):
            alpha = get_day_count_convention(dcc).year_fraction(u, v)
        else:
            alpha = self.time(v) - self.time(u)
        if alpha <= 0:
            raise ValueError(f"Forward period from {u} to {v} must be positive")
        return (self.df(u) / self.df(v) - 1.0) / alpha

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.name})" if self.name else type(self).__name__


def df_gradients(curve: Curve, curve_name: str, t: TimeLike) -> Dict[str, np.ndarray]:
    """Gradient of ``curve.df(t)`` keyed by the curve whose parameters move it.

    The curve's own parameters are reported under ``curve_name``. A curve
    built on top of another one (see :class:`~multicurve.curves.spread.SpreadCurve`)
    also reports the gradient with respect to its base curve. Curves without
    ``df_sensitivity`` are fixed and contribute nothing.
    """
    gradient = getattr(curve, "df_sensitivity", None)
    if gradient is None:
        return {}
    result = {curve_name: np.asarray(gradient(t), dtype=float)}
    base_gradients = getattr(curve, "base_df_sensitivity", None)
    if base_gradients is not None:
        for name, vector in base_gradients(t).items():
            result[name] = result[name] + vector if name in result else vector
    return result
