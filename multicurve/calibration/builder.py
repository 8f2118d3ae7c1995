"""Block/unit orchestration: the calibration entry point."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from multicurve.curves.provider import KnownCurve, KnownData
from multicurve.errors import ConfigurationError
from multicurve.valuation.calculators import ParSpreadCalculator, ValuationCalculator

from .building_block import CurveBuildingBlockBundle
from .bundler import SensitivityBundler, dependency_order
from .config import SolverConfig
from .results import CalibrationResult, UnitDiagnostics
from .solver import UnitSolver
from .units import CurveBlock, CurveUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _BlockOutput:
    curves: Dict[str, KnownCurve]
    bundle: CurveBuildingBlockBundle
    diagnostics: Tuple[UnitDiagnostics, ...]


class CurveBuilder:
    """Calibrates blocks of curve units and bundles their quote sensitivities.

    Each block is solved from its own copy of the external known data: unit
    ``k`` of a block sees the external curves plus the curves of units
    ``0..k-1`` of that block, never a sibling block's curves. Independent
    blocks may run on a thread pool when ``config.max_workers`` is above 1,
    or ``None`` for the pool default; results are always merged in block
    order so output does not depend on scheduling.
    Any failure aborts the whole build.
    """

    def __init__(
        self,
        calculator: Optional[ValuationCalculator] = None,
        sensitivity_calculator: Optional[ValuationCalculator] = None,
        config: Optional[SolverConfig] = None,
    ):
        self.calculator = calculator or ParSpreadCalculator()
        self.sensitivity_calculator = sensitivity_calculator
        self.config = config or SolverConfig()

        self.solver = UnitSolver(self.calculator, self.sensitivity_calculator, self.config)
        self.bundler = SensitivityBundler(self.calculator)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def build(
        self,
        blocks: Sequence[CurveBlock],
        known_data: Optional[KnownData] = None,
        known_bundle: Optional[CurveBuildingBlockBundle] = None,
    ) -> CalibrationResult:
        known_data = known_data if known_data is not None else KnownData()
        known_bundle = known_bundle if known_bundle is not None else CurveBuildingBlockBundle()
        blocks = list(blocks)
        self._check_request(blocks, known_data, known_bundle)

        logger.log(
            self.config.log_level,
            "Calibrating %d block(s) over %d known curve(s)",
            len(blocks), len(known_data),
        )
        workers = self.config.max_workers
        if (workers is None or workers > 1) and len(blocks) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                outputs = list(
                    executor.map(
                        lambda args: self._solve_block(*args, known_data, known_bundle),
                        enumerate(blocks),
                    )
                )
        else:
            outputs = [
                self._solve_block(index, block, known_data, known_bundle)
                for index, block in enumerate(blocks)
            ]

        final_data = known_data
        final_bundle = known_bundle.copy()
        diagnostics: List[UnitDiagnostics] = []
        for output in outputs:
            final_data = final_data.with_curves(output.curves)
            for name, (block, matrix) in output.bundle.items():
                if name in output.curves:
                    final_bundle.add(name, block, matrix)
            diagnostics.extend(output.diagnostics)

        return CalibrationResult(final_data, final_bundle, tuple(diagnostics))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _solve_block(
        self,
        block_index: int,
        block: CurveBlock,
        known_data: KnownData,
        known_bundle: CurveBuildingBlockBundle,
    ) -> _BlockOutput:
        block_data = known_data
        bundle = known_bundle
        solved: List[str] = []
        curves: Dict[str, KnownCurve] = {}
        diagnostics: List[UnitDiagnostics] = []

        for unit_index, unit in enumerate(block.units):
            solution = self.solver.solve(unit, block_data)
            system = self.solver.system(unit, block_data)
            dependencies = dependency_order(unit, solved, bundle, block_data)
            bundle = self.bundler.extend(bundle, unit, solution, system, dependencies)

            block_data = block_data.with_curves(solution.entries)
            curves.update(solution.entries)
            solved.extend(unit.names)
            diagnostics.append(
                UnitDiagnostics(
                    block=block_index,
                    unit=unit_index,
                    curve_names=unit.names,
                    n_parameters=unit.n_parameters,
                    iterations=solution.iterations,
                    residual_norm=solution.residual_norm,
                    condition_number=solution.condition_number,
                )
            )

        return _BlockOutput(curves, bundle, tuple(diagnostics))

    def _check_request(
        self,
        blocks: Sequence[CurveBlock],
        known_data: KnownData,
        known_bundle: CurveBuildingBlockBundle,
    ) -> None:
        """Fail fast on naming, shape and dependency errors before any unit is solved."""
        seen: Dict[str, int] = {}
        for index, block in enumerate(blocks):
            for name in block.names:
                if name in seen:
                    raise ConfigurationError(
                        f"Curve {name!r} is calibrated in block {seen[name]} and block {index}"
                    )
                if name in known_data or name in known_bundle:
                    raise ConfigurationError(
                        f"Curve {name!r} is calibrated but already supplied as known data"
                    )
                seen[name] = index

            available = set(known_data.curve_names)
            for unit in block.units:
                unit.validate(available)
                self._check_known_dependencies(unit, known_data, known_bundle)
                available.update(unit.names)

    def _check_known_dependencies(
        self,
        unit: CurveUnit,
        known_data: KnownData,
        known_bundle: CurveBuildingBlockBundle,
    ) -> None:
        """Known curves the unit chains through must match their bundle entries."""
        gradient_source = self.sensitivity_calculator or self.calculator
        bumped = not gradient_source.provides_gradients
        for name in unit.referenced_curves(known_data):
            if name not in known_bundle or name not in known_data:
                continue
            rows = known_bundle.matrix(name).shape[0]
            size = _parameter_count(known_data.entry(name))
            if size is not None and size != rows:
                raise ConfigurationError(
                    f"Curve {name!r} has {size} parameters but its building block "
                    f"entry has {rows} rows"
                )
            if bumped and known_data.template(name) is None:
                raise ConfigurationError(
                    f"Curve {name!r} has no template; cannot bump it for finite differences"
                )


def _parameter_count(entry: KnownCurve) -> Optional[int]:
    if entry.parameters is not None:
        return len(entry.parameters)
    if entry.template is not None:
        return entry.template.n_parameters
    return getattr(entry.curve, "n_parameters", None)


def build_curves(
    blocks: Sequence[CurveBlock],
    known_data: Optional[KnownData],
    calculator: Optional[ValuationCalculator] = None,
    sensitivity_calculator: Optional[ValuationCalculator] = None,
    config: Optional[SolverConfig] = None,
    known_bundle: Optional[CurveBuildingBlockBundle] = None,
) -> Tuple[KnownData, CurveBuildingBlockBundle]:
    """Calibrate ``blocks`` and return the final known data and bundle.

    Args:
        blocks: Independent calibration blocks
        known_data: Externally supplied curves (and fixings)
        calculator: Valuation service defining the residuals
            (default :class:`ParSpreadCalculator`)
        sensitivity_calculator: Source of analytic gradients (default
            ``calculator``)
        config: Solver configuration
        known_bundle: Quote sensitivities of externally supplied curves

    Returns:
        Tuple of (known data with every calibrated curve, building block bundle)

    Raises:
        ConfigurationError: Inconsistent request, detected before solving
        ConvergenceFailure: A unit failed to converge; nothing is returned
    """
    result = CurveBuilder(calculator, sensitivity_calculator, config).build(
        blocks, known_data, known_bundle
    )
    return result.known_data, result.bundle
