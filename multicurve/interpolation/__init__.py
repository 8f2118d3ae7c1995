"""
Zero-rate interpolation with node sensitivities.
"""

from .base import Interpolator
from .factory import (
    INTERPOLATORS,
    create_interpolator,
)
from .linear import (
    LinearZeroInterpolator,
    LogLinearZeroInterpolator,
    PiecewiseConstantInterpolator,
)

__all__ = [
    "Interpolator",
    "LinearZeroInterpolator",
    "LogLinearZeroInterpolator",
    "PiecewiseConstantInterpolator",
    "INTERPOLATORS",
    "create_interpolator",
]
