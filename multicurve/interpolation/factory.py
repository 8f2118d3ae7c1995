"""
Lookup of interpolation schemes by the names curve templates use.
"""
from typing import Dict, Sequence, Type

from .base import Interpolator
from .linear import (
    LinearZeroInterpolator,
    LogLinearZeroInterpolator,
    PiecewiseConstantInterpolator,
)

INTERPOLATORS: Dict[str, Type[Interpolator]] = {
    "LINEAR_ZERO": LinearZeroInterpolator,
    "LOGLINEAR_ZERO": LogLinearZeroInterpolator,
    "PIECEWISE_CONSTANT": PiecewiseConstantInterpolator,
}


def create_interpolator(
    method: str, pillars: Sequence[float], values: Sequence[float]
) -> Interpolator:
    """Build the interpolator registered as ``method`` over zero-rate nodes."""
    try:
        scheme = INTERPOLATORS[method.upper()]
    except KeyError:
        raise ValueError(
            f"Unknown interpolation method: {method}. Known methods: {sorted(INTERPOLATORS)}"
        ) from None
    return scheme(pillars, values)
