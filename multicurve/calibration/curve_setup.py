"""Fluent configuration of a single-block calibration.

Example::

    result = (
        CurveSetUp()
        .building("EUR-OIS")
        .using("EUR-OIS", InterpolatedCurveTemplate("EUR-OIS", curve_date))
        .add_nodes("EUR-OIS", ois_deposits)
        .then_building("EUR-6M")
        .using("EUR-6M", InterpolatedCurveTemplate("EUR-6M", curve_date))
        .add_nodes("EUR-6M", swaps_6m)
        .build()
    )
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from multicurve.curves.base import Curve
from multicurve.curves.provider import KnownCurve, KnownData
from multicurve.errors import IllegalStateError
from multicurve.instruments.base import CalibrationInstrument
from multicurve.valuation.calculators import ValuationCalculator

from .builder import CurveBuilder
from .building_block import CurveBuildingBlockBundle
from .config import SolverConfig
from .results import CalibrationResult
from .templates import CurveTemplate, SpreadCurveTemplate
from .units import CurveBlock, CurveDefinition, CurveUnit


class CurveSetUp:
    """Step-by-step builder for one block of curve units.

    ``building`` opens the first unit and ``then_building`` appends units
    solved after it. Nodes are ordered by node time when the block is
    assembled, so they may be added in any order.
    """

    def __init__(self):
        self._units: List[List[str]] = []
        self._templates: Dict[str, CurveTemplate] = {}
        self._spread_bases: Dict[str, str] = {}
        self._nodes: Dict[str, List[CalibrationInstrument]] = {}
        self._known: Dict[str, KnownCurve] = {}
        self._known_bundle: Optional[CurveBuildingBlockBundle] = None
        self._fixings: Dict[str, Any] = {}
        self._config: Optional[SolverConfig] = None
        self._calculator: Optional[ValuationCalculator] = None

    # ------------------------------------------------------------------
    # Curve structure
    # ------------------------------------------------------------------
    def building(self, *curve_names: str) -> "CurveSetUp":
        if self._units:
            raise IllegalStateError("building() was already called; use then_building()")
        return self._add_unit(curve_names)

    def then_building(self, *curve_names: str) -> "CurveSetUp":
        if not self._units:
            raise IllegalStateError("then_building() called before building()")
        return self._add_unit(curve_names)

    def using(self, curve_name: str, template: CurveTemplate) -> "CurveSetUp":
        self._require_configured(curve_name)
        if curve_name in self._templates:
            raise IllegalStateError(f"Template for curve {curve_name!r} already set")
        if template.name != curve_name:
            raise IllegalStateError(
                f"Template {template.name!r} cannot be used for curve {curve_name!r}"
            )
        self._templates[curve_name] = template
        return self

    def as_spread_over(self, curve_name: str, base_curve: str) -> "CurveSetUp":
        """Calibrate ``curve_name`` as a spread over ``base_curve``.

        The base may be a known curve or a curve of an earlier unit, or an
        earlier curve of the same unit.
        """
        self._require_configured(curve_name)
        if curve_name in self._spread_bases:
            raise IllegalStateError(f"Curve {curve_name!r} is already a spread curve")
        if base_curve == curve_name:
            raise IllegalStateError(f"Curve {curve_name!r} cannot be a spread over itself")
        self._spread_bases[curve_name] = base_curve
        return self

    def add_node(self, curve_name: str, instrument: CalibrationInstrument) -> "CurveSetUp":
        self._require_configured(curve_name)
        self._nodes[curve_name].append(instrument)
        return self

    def add_nodes(
        self, curve_name: str, instruments: Iterable[CalibrationInstrument]
    ) -> "CurveSetUp":
        for instrument in instruments:
            self.add_node(curve_name, instrument)
        return self

    def remove_nodes(self, curve_name: str) -> "CurveSetUp":
        self._require_configured(curve_name)
        self._nodes[curve_name] = []
        return self

    def remove_curve(self, curve_name: str) -> "CurveSetUp":
        self._require_configured(curve_name)
        for unit in self._units:
            if curve_name in unit:
                unit.remove(curve_name)
        self._units = [unit for unit in self._units if unit]
        self._templates.pop(curve_name, None)
        self._spread_bases.pop(curve_name, None)
        del self._nodes[curve_name]
        return self

    # ------------------------------------------------------------------
    # Market data and settings
    # ------------------------------------------------------------------
    def using_known_curve(
        self,
        curve_name: str,
        curve: Curve,
        template: Optional[CurveTemplate] = None,
        parameters: Optional[np.ndarray] = None,
    ) -> "CurveSetUp":
        if curve_name in self._nodes:
            raise IllegalStateError(f"Curve {curve_name!r} is calibrated, not known")
        if curve_name in self._known:
            raise IllegalStateError(f"Known curve {curve_name!r} already supplied")
        self._known[curve_name] = KnownCurve(curve, template, parameters)
        return self

    def with_known_bundle(self, bundle: CurveBuildingBlockBundle) -> "CurveSetUp":
        self._known_bundle = bundle
        return self

    def with_fixings(self, fixings: Mapping[str, Any]) -> "CurveSetUp":
        self._fixings = dict(fixings)
        return self

    def with_config(self, config: SolverConfig) -> "CurveSetUp":
        self._config = config
        return self

    def with_calculator(self, calculator: ValuationCalculator) -> "CurveSetUp":
        self._calculator = calculator
        return self

    def replace_market_quote(self, curve_name: str, index: int, quote: float) -> "CurveSetUp":
        """Copy of this set-up with quote ``index`` of ``curve_name`` replaced.

        ``index`` counts nodes in node-time order, the same order as the
        curve's columns in its building block.
        """
        self._require_configured(curve_name)
        nodes = self._ordered_nodes(curve_name)
        if not 0 <= index < len(nodes):
            raise IndexError(f"Curve {curve_name!r} has {len(nodes)} nodes, no index {index}")
        nodes[index] = nodes[index].with_quote(quote)
        copied = self.copy()
        copied._nodes[curve_name] = nodes
        return copied

    def copy(self) -> "CurveSetUp":
        copied = CurveSetUp()
        copied._units = [list(unit) for unit in self._units]
        copied._templates = dict(self._templates)
        copied._spread_bases = dict(self._spread_bases)
        copied._nodes = {name: list(nodes) for name, nodes in self._nodes.items()}
        copied._known = dict(self._known)
        copied._known_bundle = self._known_bundle
        copied._fixings = dict(self._fixings)
        copied._config = self._config
        copied._calculator = self._calculator
        return copied

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    def get_blocks(self) -> List[CurveBlock]:
        units = []
        for names in self._units:
            definitions = []
            for name in names:
                if name not in self._templates:
                    raise IllegalStateError(f"No template set for curve {name!r}")
                nodes = self._ordered_nodes(name)
                if not nodes:
                    raise IllegalStateError(f"No nodes added for curve {name!r}")
                template = self._templates[name]
                if name in self._spread_bases:
                    template = SpreadCurveTemplate(template, self._spread_bases[name])
                template = template.bind(nodes)
                definitions.append(CurveDefinition(name, template, tuple(nodes)))
            units.append(CurveUnit(tuple(definitions)))
        if not units:
            raise IllegalStateError("Nothing to build; call building() first")
        return [CurveBlock(tuple(units))]

    def get_known_data(self) -> KnownData:
        return KnownData(self._known, self._fixings)

    def build(self, calculator: Optional[ValuationCalculator] = None) -> CalibrationResult:
        builder = CurveBuilder(calculator or self._calculator, config=self._config)
        return builder.build(self.get_blocks(), self.get_known_data(), self._known_bundle)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _add_unit(self, curve_names) -> "CurveSetUp":
        if not curve_names:
            raise IllegalStateError("A unit needs at least one curve name")
        for name in curve_names:
            if name in self._nodes or name in self._known:
                raise IllegalStateError(f"Curve {name!r} is already configured")
        if len(set(curve_names)) != len(curve_names):
            raise IllegalStateError(f"Curve names repeated in one unit: {curve_names}")
        self._units.append(list(curve_names))
        for name in curve_names:
            self._nodes[name] = []
        return self

    def _require_configured(self, curve_name: str) -> None:
        if curve_name not in self._nodes:
            raise IllegalStateError(
                f"Curve {curve_name!r} is not part of this set-up; call building() first"
            )

    def _ordered_nodes(self, curve_name: str) -> List[CalibrationInstrument]:
        return sorted(self._nodes[curve_name], key=lambda instrument: instrument.node_time)
