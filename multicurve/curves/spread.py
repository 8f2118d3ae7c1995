"""Curve defined as a spread over an existing base curve."""

from __future__ import annotations

from typing import Dict

import numpy as np

from .base import BaseCurve, Curve, TimeLike, df_gradients


class SpreadCurve(BaseCurve):
    """Adds the zero rates of ``spread`` to those of ``base``.

    Discount factors multiply, ``df(t) = base.df(t) * spread.df(t)``. The
    calibrated parameters are the spread's; the base curve is someone else's
    and its gradient is reported under ``base_name`` through
    :meth:`base_df_sensitivity`.

    Args:
        base: Curve the spread is added to
        base_name: Name of ``base`` in known data
        spread: Curve carrying the spread zero rates and the parameters
        name: Name of this curve
    """

    def __init__(self, base: Curve, base_name: str, spread: BaseCurve, name: str = ""):
        super().__init__(spread.reference_date, name or spread.name, spread.time_day_count)
        self.base = base
        self.base_name = base_name
        self.spread = spread

    @property
    def parameters(self) -> np.ndarray:
        return self.spread.parameters

    @property
    def n_parameters(self) -> int:
        return self.spread.n_parameters

    def df(self, t: TimeLike) -> float:
        return self.base.df(t) * self.spread.df(t)

    def df_sensitivity(self, t: TimeLike) -> np.ndarray:
        return self.base.df(t) * self.spread.df_sensitivity(t)

    def base_df_sensitivity(self, t: TimeLike) -> Dict[str, np.ndarray]:
        """Gradient of ``df(t)`` with respect to the base curve's parameters."""
        scale = self.spread.df(t)
        return {
            name: scale * gradient
            for name, gradient in df_gradients(self.base, self.base_name, t).items()
        }

    def __repr__(self) -> str:
        return f"SpreadCurve(name={self.name!r}, base={self.base_name!r}, spread={self.spread!r})"
