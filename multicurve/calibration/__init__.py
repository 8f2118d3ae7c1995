"""
Calibration package - solver, orchestration and sensitivity bundling.

Main APIs:
---------
    - build_curves: One-call calibration returning (known data, bundle)
    - CurveBuilder: Same, with per-unit diagnostics
    - CurveSetUp: Fluent configuration of a block of units
    - CurveBuildingBlockBundle: Quote sensitivities of every calibrated curve
"""

from multicurve.errors import (
    ConfigurationError,
    ConvergenceFailure,
    CurveCalibrationError,
    IllegalStateError,
    NumericalWarning,
)

from .builder import CurveBuilder, build_curves
from .building_block import CurveBuildingBlock, CurveBuildingBlockBundle
from .bundler import SensitivityBundler, dependency_order
from .config import SolverConfig
from .curve_setup import CurveSetUp
from .jacobian import ResidualSystem
from .results import CalibrationResult, UnitDiagnostics, UnitSolution
from .solver import UnitSolver
from .templates import (
    CurveTemplate,
    DiscountFactorCurveTemplate,
    InterpolatedCurveTemplate,
    NelsonSiegelTemplate,
    NodeTimeRule,
    SpreadCurveTemplate,
)
from .units import CurveBlock, CurveDefinition, CurveUnit, make_unit

__all__ = [
    # Entry points
    "build_curves",
    "CurveBuilder",
    "CurveSetUp",
    "SolverConfig",
    # Request structure
    "CurveBlock",
    "CurveDefinition",
    "CurveUnit",
    "make_unit",
    "CurveTemplate",
    "InterpolatedCurveTemplate",
    "DiscountFactorCurveTemplate",
    "NelsonSiegelTemplate",
    "SpreadCurveTemplate",
    "NodeTimeRule",
    # Engine components
    "UnitSolver",
    "ResidualSystem",
    "SensitivityBundler",
    "dependency_order",
    # Results
    "CurveBuildingBlock",
    "CurveBuildingBlockBundle",
    "CalibrationResult",
    "UnitDiagnostics",
    "UnitSolution",
    # Errors
    "CurveCalibrationError",
    "ConfigurationError",
    "IllegalStateError",
    "ConvergenceFailure",
    "NumericalWarning",
]
