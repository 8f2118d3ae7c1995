"""
Linear-family interpolation methods on zero rates.

All methods extrapolate flat in the zero rate on both sides.
"""
import numpy as np

from .base import Interpolator


class LinearZeroInterpolator(Interpolator):
    """Linear interpolation on zero rates."""

    def interpolate(self, t: float) -> float:
        if self._is_outside(t):
            return float(self.values[0] if t <= self.pillars[0] else self.values[-1])

        i = self._locate(t)
        t1, t2 = self.pillars[i], self.pillars[i + 1]
        weight = (t - t1) / (t2 - t1)
        return float(self.values[i] + weight * (self.values[i + 1] - self.values[i]))

    def node_sensitivity(self, t: float) -> np.ndarray:
        if self._is_outside(t):
            return self._flat_weights(t)

        i = self._locate(t)
        t1, t2 = self.pillars[i], self.pillars[i + 1]
        weight = (t - t1) / (t2 - t1)
        sensitivity = np.zeros(self.size)
        sensitivity[i] = 1.0 - weight
        sensitivity[i + 1] = weight
        return sensitivity


class LogLinearZeroInterpolator(Interpolator):
    """Log-linear interpolation on discount factors, quoted as zero rates.

    Equivalent to linear interpolation of ``r(t) * t``, which gives
    piecewise-flat instantaneous forwards between nodes.
    """

    def __init__(self, pillars, zero_rates):
        super().__init__(pillars, zero_rates)
        # r(t) * t at the nodes, i.e. minus the log discount factors
        self.node_exposures = self.values * self.pillars

    def interpolate(self, t: float) -> float:
        if t <= 0 or self._is_outside(t):
            return float(self.values[0] if t <= self.pillars[0] else self.values[-1])
        return float(self._exposure(t) / t)

    def interpolate_discount_factor(self, t: float) -> float:
        """Discount factor at t, from the interpolated zero rate."""
        if t <= 0:
            return 1.0
        return float(np.exp(-self.interpolate(t) * t))

    def node_sensitivity(self, t: float) -> np.ndarray:
        if t <= 0 or self._is_outside(t):
            return self._flat_weights(t)

        i = self._locate(t)
        t1, t2 = self.pillars[i], self.pillars[i + 1]
        weight = (t - t1) / (t2 - t1)
        sensitivity = np.zeros(self.size)
        sensitivity[i] = (1.0 - weight) * t1 / t
        sensitivity[i + 1] = weight * t2 / t
        return sensitivity

    def _exposure(self, t: float) -> float:
        i = self._locate(t)
        t1, t2 = self.pillars[i], self.pillars[i + 1]
        weight = (t - t1) / (t2 - t1)
        lower, upper = self.node_exposures[i], self.node_exposures[i + 1]
        return lower + weight * (upper - lower)


class PiecewiseConstantInterpolator(Interpolator):
    """Step function: each node value holds until the next node.

    Simple but not differentiable at the nodes; finite-difference Jacobians
    straddling a node can be inaccurate.
    """

    def interpolate(self, t: float) -> float:
        if self._is_outside(t):
            return float(self.values[0] if t <= self.pillars[0] else self.values[-1])
        return float(self.values[self._locate(t)])

    def node_sensitivity(self, t: float) -> np.ndarray:
        if self._is_outside(t):
            return self._flat_weights(t)
        sensitivity = np.zeros(self.size)
        sensitivity[self._locate(t)] = 1.0
        return sensitivity
