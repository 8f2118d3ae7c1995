"""Quote sensitivities of calibrated curves via the implicit function theorem.

At a converged unit ``r(p, q) = 0``, so ``dp/dq = -J^-1 * dr/dq`` with
``J = dr/dp``. ``dr/dq`` holds the direct sensitivity of each residual to its
own quote, plus, for every curve ``D`` the unit depends on,
``(dr/dp_D) * (dp_D/dq)`` with the second factor read from ``D``'s bundle
entry. The product is laid out on a building block made of the
dependencies' blocks followed by the unit's own quotes.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from multicurve.curves.provider import KnownData
from multicurve.errors import ConvergenceFailure
from multicurve.valuation.calculators import ValuationCalculator

from .building_block import CurveBuildingBlock, CurveBuildingBlockBundle
from .jacobian import ResidualSystem
from .results import UnitSolution
from .units import CurveUnit

logger = logging.getLogger(__name__)


class SensitivityBundler:
    """Extends a :class:`CurveBuildingBlockBundle` with a solved unit."""

    def __init__(self, calculator: ValuationCalculator):
        self.calculator = calculator

    def building_block(
        self,
        unit: CurveUnit,
        bundle: CurveBuildingBlockBundle,
        dependencies: Sequence[str],
    ) -> CurveBuildingBlock:
        """Columns for ``unit``: every dependency's block, then own quotes."""
        block = CurveBuildingBlock()
        for name in dependencies:
            block = block.merge(bundle.building_block(name))
        for definition in unit.curves:
            block = block.add(definition.name, definition.n_instruments)
        return block

    def quote_jacobian(
        self,
        unit: CurveUnit,
        system: ResidualSystem,
        solution: UnitSolution,
        bundle: CurveBuildingBlockBundle,
        dependencies: Sequence[str],
        block: CurveBuildingBlock,
    ) -> np.ndarray:
        """Total derivative ``dr/dq`` on the columns of ``block``."""
        d_quotes = np.zeros((unit.n_instruments, block.total))

        row = 0
        for definition in unit.curves:
            start = block.start(definition.name)
            for k, instrument in enumerate(definition.instruments):
                d_quotes[row, start + k] = self.calculator.quote_sensitivity(instrument)
                row += 1

        sizes = {name: bundle.matrix(name).shape[0] for name in dependencies}
        partials = system.dependency_jacobian(solution.vector, sizes)
        for name, d_params in partials.items():
            dep_block, dep_matrix = bundle.get_block(name)
            chained = d_params @ dep_matrix
            for curve in dep_block:
                d_quotes[:, block.columns(curve)] += chained[:, dep_block.columns(curve)]
        return d_quotes

    def extend(
        self,
        bundle: CurveBuildingBlockBundle,
        unit: CurveUnit,
        solution: UnitSolution,
        system: ResidualSystem,
        dependencies: Sequence[str],
    ) -> CurveBuildingBlockBundle:
        """New bundle holding ``bundle``'s entries plus one per curve of ``unit``.

        Args:
            bundle: Entries of every curve solved so far (not modified)
            unit: The unit just solved
            solution: Converged solution of ``unit``
            system: Residual system used for the solve, for dependency partials
            dependencies: Curves with bundle entries the unit may depend on,
                in column order

        Raises:
            ConvergenceFailure: If the converged Jacobian cannot be inverted
        """
        block = self.building_block(unit, bundle, dependencies)
        d_quotes = self.quote_jacobian(unit, system, solution, bundle, dependencies, block)

        try:
            sensitivities = -np.linalg.solve(solution.jacobian, d_quotes)
        except np.linalg.LinAlgError as exc:
            message = f"Unit {list(unit.names)}: converged Jacobian is singular"
            logger.error(message)
            raise ConvergenceFailure(
                message, unit.names, solution.iterations, solution.residual_norm
            ) from exc

        extended = bundle.copy()
        for name, rows in unit.parameter_slices().items():
            extended.add(name, block, sensitivities[rows, :])
        logger.debug(
            "Bundled %s on %d columns %s", list(unit.names), block.total, list(block.names)
        )
        return extended


def dependency_order(
    unit: CurveUnit,
    solved_in_block: Sequence[str],
    bundle: CurveBuildingBlockBundle,
    known_data: Optional[KnownData] = None,
) -> Tuple[str, ...]:
    """Dependencies of ``unit`` whose quote sensitivities must be chained.

    These are the curves the unit reads that already have bundle entries
    (e.g. externally supplied with a known bundle), followed by every curve
    solved earlier in the same block, in solve order. With ``known_data``
    the curves read include the base curves of known spread curves.
    """
    own = set(unit.names)
    ordered: Dict[str, None] = {}
    for name in unit.referenced_curves(known_data):
        if name not in own and name in bundle and name not in solved_in_block:
            ordered.setdefault(name, None)
    for name in solved_in_block:
        ordered.setdefault(name, None)
    return tuple(ordered)
