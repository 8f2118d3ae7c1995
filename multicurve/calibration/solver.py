"""Multi-dimensional Newton solver for one curve unit."""

from __future__ import annotations

import logging
import warnings
from typing import Optional

import numpy as np

from multicurve.curves.provider import KnownData
from multicurve.errors import ConvergenceFailure, NumericalWarning
from multicurve.valuation.calculators import ValuationCalculator

from .config import SolverConfig
from .jacobian import ResidualSystem
from .results import UnitSolution
from .units import CurveUnit

logger = logging.getLogger(__name__)

# Condition numbers at or above this are treated as singular
SINGULAR_CONDITION = 1.0 / np.finfo(float).eps


class UnitSolver:
    """Solves ``residual(parameters) = 0`` for all curves of a unit jointly.

    Each iteration rebuilds the curves from the current parameters,
    recomputes the full Jacobian and takes the step ``J * delta = -r`` from a
    direct linear solve. Iteration stops when ``max|r|`` drops below
    ``absolute_tolerance`` or ``max|delta|`` below ``step_tolerance``.

    Args:
        calculator: Valuation service defining the residuals
        sensitivity_calculator: Source of analytic gradients (defaults to
            ``calculator``); ``None`` gradients mean finite differences
        config: Tolerances and iteration limit

    Raises:
        ConfigurationError: From :meth:`CurveUnit.validate`, before iterating
        ConvergenceFailure: Iteration limit exceeded, singular or
            ill-conditioned Jacobian, or non-finite residuals
    """

    def __init__(
        self,
        calculator: ValuationCalculator,
        sensitivity_calculator: Optional[ValuationCalculator] = None,
        config: Optional[SolverConfig] = None,
    ):
        self.calculator = calculator
        self.sensitivity_calculator = sensitivity_calculator
        self.config = config or SolverConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def system(self, unit: CurveUnit, known_data: KnownData) -> ResidualSystem:
        return ResidualSystem(
            unit, known_data, self.calculator, self.sensitivity_calculator, self.config
        )

    def solve(self, unit: CurveUnit, known_data: KnownData) -> UnitSolution:
        unit.validate(known_data)
        config = self.config
        names = unit.names
        system = self.system(unit, known_data)

        parameters = unit.initial_vector()
        logger.log(
            config.log_level,
            "Solving unit %s: %d instruments, %d parameters",
            list(names), unit.n_instruments, unit.n_parameters,
        )

        iterations = 0
        while True:
            residuals = system.residuals(parameters)
            residual_norm = self._norm(residuals, names, iterations)
            if residual_norm < config.absolute_tolerance:
                break
            if iterations >= config.max_iterations:
                self._fail(
                    f"Unit {list(names)} did not converge in {config.max_iterations} "
                    f"iterations (max residual {residual_norm:.3e})",
                    names, iterations, residual_norm,
                )

            jacobian = system.jacobian(parameters)
            step = self._newton_step(jacobian, residuals, names, iterations, residual_norm)
            parameters = parameters + step
            iterations += 1
            step_norm = float(np.max(np.abs(step)))
            logger.debug(
                "Unit %s iteration %d: max residual %.3e, max step %.3e",
                list(names), iterations, residual_norm, step_norm,
            )
            if step_norm < config.step_tolerance:
                residuals = system.residuals(parameters)
                residual_norm = self._norm(residuals, names, iterations)
                break

        jacobian = system.jacobian(parameters)
        condition_number = self._check_condition(jacobian, names, iterations, residual_norm)
        if condition_number > config.condition_warning:
            message = (
                f"Unit {list(names)} converged with an ill-conditioned Jacobian "
                f"(condition number {condition_number:.3e})"
            )
            logger.warning(message)
            warnings.warn(message, NumericalWarning, stacklevel=2)
        if residual_norm >= config.absolute_tolerance:
            logger.warning(
                "Unit %s stopped on step size with max residual %.3e above tolerance %.1e",
                list(names), residual_norm, config.absolute_tolerance,
            )

        logger.log(
            config.log_level,
            "Unit %s converged in %d iterations (max residual %.3e)",
            list(names), iterations, residual_norm,
        )
        return UnitSolution(
            curve_names=names,
            entries=system.known_entries(parameters),
            vector=parameters,
            jacobian=jacobian,
            residuals=residuals,
            iterations=iterations,
            residual_norm=residual_norm,
            condition_number=condition_number,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _newton_step(self, jacobian, residuals, names, iterations, residual_norm) -> np.ndarray:
        self._check_condition(jacobian, names, iterations, residual_norm)
        try:
            step = np.linalg.solve(jacobian, -residuals)
        except np.linalg.LinAlgError as exc:
            self._fail(
                f"Unit {list(names)}: linear solve failed at iteration {iterations}: {exc}",
                names, iterations, residual_norm, cause=exc,
            )
        if not np.all(np.isfinite(step)):
            self._fail(
                f"Unit {list(names)}: non-finite Newton step at iteration {iterations}",
                names, iterations, residual_norm,
            )
        return step

    def _check_condition(self, jacobian, names, iterations, residual_norm) -> float:
        if not np.all(np.isfinite(jacobian)):
            self._fail(
                f"Unit {list(names)}: non-finite Jacobian at iteration {iterations}",
                names, iterations, residual_norm,
            )
        condition_number = float(np.linalg.cond(jacobian))
        if not np.isfinite(condition_number) or condition_number >= SINGULAR_CONDITION:
            self._fail(
                f"Unit {list(names)}: singular Jacobian at iteration {iterations} "
                f"(condition number {condition_number:.3e})",
                names, iterations, residual_norm,
            )
        return condition_number

    def _norm(self, residuals: np.ndarray, names, iterations: int) -> float:
        if not np.all(np.isfinite(residuals)):
            self._fail(
                f"Unit {list(names)}: non-finite residuals at iteration {iterations}",
                names, iterations, float("nan"),
            )
        return float(np.max(np.abs(residuals)))

    def _fail(self, message, names, iterations, residual_norm, cause=None):
        logger.error(message)
        raise ConvergenceFailure(message, names, iterations, residual_norm) from cause
