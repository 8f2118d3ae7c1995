"""Result dataclasses for the curve calibration stack."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Dict, Tuple

import numpy as np
import pandas as pd

from multicurve.curves.base import Curve
from multicurve.curves.provider import KnownCurve, KnownData

if TYPE_CHECKING:
    from .building_block import CurveBuildingBlockBundle


@dataclass(frozen=True, eq=False)
class UnitSolution:
    """Converged state of one unit, as returned by :class:`UnitSolver`."""

    curve_names: Tuple[str, ...]
    entries: Dict[str, KnownCurve]
    vector: np.ndarray
    jacobian: np.ndarray
    residuals: np.ndarray
    iterations: int
    residual_norm: float
    condition_number: float

    @property
    def curves(self) -> Dict[str, Curve]:
        return {name: entry.curve for name, entry in self.entries.items()}

    @property
    def parameters(self) -> Dict[str, np.ndarray]:
        return {name: entry.parameters for name, entry in self.entries.items()}


@dataclass(frozen=True)
class UnitDiagnostics:
    """Convergence record of a single unit."""

    block: int
    unit: int
    curve_names: Tuple[str, ...]
    n_parameters: int
    iterations: int
    residual_norm: float
    condition_number: float


@dataclass(frozen=True)
class CalibrationResult:
    """Aggregate output returned by :class:`CurveBuilder`."""

    known_data: KnownData
    bundle: "CurveBuildingBlockBundle"
    diagnostics: Tuple[UnitDiagnostics, ...]

    def __iter__(self):
        yield self.known_data
        yield self.bundle

    def curve(self, name: str) -> Curve:
        return self.known_data.get_curve(name)

    def summary(self) -> pd.DataFrame:
        """One row per solved unit with its convergence statistics."""
        rows = []
        for record in self.diagnostics:
            row = asdict(record)
            row["curve_names"] = ", ".join(record.curve_names)
            rows.append(row)
        columns = [
            "block", "unit", "curve_names", "n_parameters",
            "iterations", "residual_norm", "condition_number",
        ]
        return pd.DataFrame(rows, columns=columns)
