"""
Curves package: curve objects and the known-data context.

Main APIs:
---------
    - Curve: protocol instruments price against
    - InterpolatedYieldCurve: zero-rate curve whose node rates are calibrated
    - DiscountFactorCurve: curve whose node discount factors are calibrated
    - NelsonSiegelCurve: four-parameter functional curve
    - SpreadCurve: spread curve added to a base curve
    - KnownData: immutable name -> curve lookup passed to valuation
"""

from .base import BaseCurve, Curve, df_gradients
from .discount_factor import DiscountFactorCurve
from .nelson_siegel import NelsonSiegelCurve
from .provider import KnownCurve, KnownData
from .spread import SpreadCurve
from .yield_curve import InterpolatedYieldCurve

__all__ = [
    "Curve",
    "BaseCurve",
    "df_gradients",
    "InterpolatedYieldCurve",
    "DiscountFactorCurve",
    "NelsonSiegelCurve",
    "SpreadCurve",
    "KnownCurve",
    "KnownData",
]
