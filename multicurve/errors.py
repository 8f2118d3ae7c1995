"""Exception and warning types raised during curve calibration."""

from __future__ import annotations


class CurveCalibrationError(Exception):
    """Base class for every error raised by the calibration engine."""

    pass


class ConfigurationError(CurveCalibrationError, ValueError):
    """Raised when a calibration request is inconsistent before any solve runs.

    Typical causes are a unit whose instrument count differs from its
    parameter count, duplicate curve names in known data, or an instrument
    referencing a curve nobody supplies.
    """

    pass


class IllegalStateError(ConfigurationError):
    """Raised when :class:`CurveSetUp` methods are called out of order."""

    pass


class ConvergenceFailure(CurveCalibrationError, RuntimeError):
    """Raised when the Newton solve of a unit cannot produce a root.

    Args:
        message: Human readable description of the failure
        curve_names: Names of the curves in the failing unit
        iterations: Number of Newton steps taken before giving up
        residual_norm: Max-norm of the residual vector at the last iterate
    """

    def __init__(
        self,
        message: str,
        curve_names: tuple[str, ...] = (),
        iterations: int = 0,
        residual_norm: float = float("nan"),
    ):
        super().__init__(message)
        self.curve_names = tuple(curve_names)
        self.iterations = iterations
        self.residual_norm = residual_norm


class NumericalWarning(UserWarning):
    """Non-fatal numerical condition, e.g. an ill-conditioned Jacobian."""

    pass
