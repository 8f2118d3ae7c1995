"""
Valuation calculators used as the calibration objective.
"""

from .calculators import ParRateCalculator, ParSpreadCalculator, ValuationCalculator

__all__ = [
    "ValuationCalculator",
    "ParRateCalculator",
    "ParSpreadCalculator",
]
