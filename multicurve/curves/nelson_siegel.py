"""Nelson-Siegel functional yield curve."""

from __future__ import annotations

from datetime import date
from typing import Sequence, Union

import numpy as np

from multicurve.conventions.daycount import DayCountConvention

from .base import BaseCurve, TimeLike

# Below this t / tau the loading functions use their series expansions
_SMALL = 1e-6


def _loadings(x: float):
    """Slope and curvature loadings ``g(x)``, ``h(x)`` and their x-derivatives."""
    if abs(x) < _SMALL:
        g = 1.0 - x / 2.0
        dg = -0.5 + x / 3.0
    else:
        g = -np.expm1(-x) / x
        dg = (np.exp(-x) * (1.0 + x) - 1.0) / (x * x)
    decay = np.exp(-x)
    return g, g - decay, dg, dg + decay


class NelsonSiegelCurve(BaseCurve):
    """Continuously compounded zero rates from the Nelson-Siegel form::

        z(t) = b0 + b1 * (1 - e^-x) / x + b2 * ((1 - e^-x) / x - e^-x),  x = t / tau

    The four parameters ``(b0, b1, b2, tau)`` are calibrated directly.
    Arithmetic is done in numpy floats so that a solver iterate with an
    extreme ``tau`` yields non-finite values instead of raising.
    """

    N_PARAMETERS = 4

    def __init__(
        self,
        reference_date: date,
        parameters: Sequence[float],
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
    ):
        super().__init__(reference_date, name, time_day_count)
        values = np.asarray(parameters, dtype=float)
        if values.shape != (self.N_PARAMETERS,):
            raise ValueError(
                f"Curve {name!r}: Nelson-Siegel needs {self.N_PARAMETERS} parameters, "
                f"got {values.size}"
            )
        if not np.all(np.isfinite(values)):
            raise ValueError(f"Curve {name!r}: parameters must be finite, got {values}")
        self._values = values

    @property
    def parameters(self) -> np.ndarray:
        return self._values.copy()

    @property
    def n_parameters(self) -> int:
        return self.N_PARAMETERS

    def zero(self, t: TimeLike) -> float:
        b0, b1, b2, tau = self._values
        g, h, _, _ = _loadings(np.float64(self.time(t)) / tau)
        return float(b0 + b1 * g + b2 * h)

    def df(self, t: TimeLike) -> float:
        time_frac = self.time(t)
        if time_frac == 0.0:
            return 1.0
        return float(np.exp(-self.zero(time_frac) * time_frac))

    def zero_gradient(self, t: TimeLike) -> np.ndarray:
        """Gradient of ``zero(t)`` with respect to ``(b0, b1, b2, tau)``."""
        time_frac = np.float64(self.time(t))
        _, b1, b2, tau = self._values
        g, h, dg, dh = _loadings(time_frac / tau)
        d_tau = (b1 * dg + b2 * dh) * (-time_frac / (tau * tau))
        return np.array([1.0, g, h, d_tau])

    def df_sensitivity(self, t: TimeLike) -> np.ndarray:
        time_frac = self.time(t)
        if time_frac == 0.0:
            return np.zeros(self.N_PARAMETERS)
        return -time_frac * self.df(time_frac) * self.zero_gradient(time_frac)

    def __repr__(self) -> str:
        return f"NelsonSiegelCurve(name={self.name!r}, parameters={self._values.tolist()})"
