"""Multi-curve calibration engine.

This package solves sets of interest rate curves so that calibration
instruments reprice to their market quotes, and bundles the sensitivity of
every calibrated curve parameter to every quote it depends on.

Key modules:
- calibration: Newton unit solver, block orchestration, sensitivity bundles
- curves: Curve objects and the known-data context
- instruments: Deposit, bill and swap calibration instruments
- valuation: Par-rate and par-spread calculators
- interpolation: Zero-rate interpolators with node sensitivities
- conventions: Day counts, calendars and date arithmetic
"""

from multicurve.errors import (
    ConfigurationError,
    ConvergenceFailure,
    CurveCalibrationError,
    IllegalStateError,
    NumericalWarning,
)

from .calibration import (
    CurveBlock,
    CurveBuilder,
    CurveBuildingBlock,
    CurveBuildingBlockBundle,
    CurveSetUp,
    CurveUnit,
    SolverConfig,
    build_curves,
)
from .curves import KnownData

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "build_curves",
    "CurveBuilder",
    "CurveSetUp",
    "SolverConfig",
    "CurveBlock",
    "CurveUnit",
    "CurveBuildingBlock",
    "CurveBuildingBlockBundle",
    "KnownData",
    "CurveCalibrationError",
    "ConfigurationError",
    "IllegalStateError",
    "ConvergenceFailure",
    "NumericalWarning",
]
