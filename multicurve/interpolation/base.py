"""
Base class for zero-rate interpolation methods.
"""
from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np


class Interpolator(ABC):
    """Interpolates node values and reports their sensitivities.

    Besides the interpolated value, every method exposes
    :meth:`node_sensitivity`, the gradient of the interpolated value with
    respect to the node values. Curve calibration relies on it for analytic
    Jacobians.
    """

    def __init__(self, pillars: Sequence[float], values: Sequence[float]):
        if len(pillars) != len(values):
            raise ValueError("Pillars and values must have same length")
        if len(pillars) < 1:
            raise ValueError("Need at least 1 point for interpolation")

        pillars = np.asarray(pillars, dtype=float)
        values = np.asarray(values, dtype=float)
        if np.any(np.diff(pillars) <= 0.0):
            if len(np.unique(pillars)) != len(pillars):
                raise ValueError("Duplicate pillar dates not allowed")
            order = np.argsort(pillars)
            pillars = pillars[order]
            values = values[order]

        self.pillars = pillars
        self.values = values

    @property
    def size(self) -> int:
        return len(self.pillars)

    @abstractmethod
    def interpolate(self, t: float) -> float:
        """Interpolate value at time t."""
        pass

    @abstractmethod
    def node_sensitivity(self, t: float) -> np.ndarray:
        """Gradient of ``interpolate(t)`` with respect to the node values."""
        pass

    def _locate(self, t: float) -> int:
        """Index ``i`` with ``pillars[i] <= t < pillars[i + 1]`` for interior t."""
        return int(np.searchsorted(self.pillars, t, side="right")) - 1

    def _flat_weights(self, t: float) -> np.ndarray:
        """Unit weight on the boundary node used by flat extrapolation."""
        weights = np.zeros(self.size)
        if t <= self.pillars[0]:
            weights[0] = 1.0
        else:
            weights[-1] = 1.0
        return weights

    def _is_outside(self, t: float) -> bool:
        return t <= self.pillars[0] or t >= self.pillars[-1]
