"""Residual vector and its derivatives for one curve unit."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

import numpy as np

from multicurve.curves.base import Curve
from multicurve.curves.provider import KnownCurve, KnownData
from multicurve.errors import ConfigurationError
from multicurve.valuation.calculators import ValuationCalculator

from .config import SolverConfig
from .units import CurveUnit

logger = logging.getLogger(__name__)


class ResidualSystem:
    """Residuals ``value - target`` of a unit's instruments as a function of
    the unit's parameter vector, evaluated against known data.

    Derivatives come from the sensitivity calculator when it returns an
    analytic gradient, and from central finite differences otherwise.
    """

    def __init__(
        self,
        unit: CurveUnit,
        known_data: KnownData,
        calculator: ValuationCalculator,
        sensitivity_calculator: Optional[ValuationCalculator] = None,
        config: Optional[SolverConfig] = None,
    ):
        self.unit = unit
        self.known_data = known_data
        self.calculator = calculator
        self.sensitivity_calculator = sensitivity_calculator or calculator
        self.config = config or SolverConfig()

        self.instruments = unit.instruments
        self.slices = unit.parameter_slices()
        self.size = unit.n_parameters

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def curves(self, parameters: np.ndarray) -> Dict[str, Curve]:
        return self._curves_against(parameters, self.known_data)

    def known_entries(self, parameters: np.ndarray) -> Dict[str, KnownCurve]:
        """Solved curves packaged for known data, with template and parameters."""
        curves = self.curves(parameters)
        return {
            definition.name: KnownCurve(
                curve=curves[definition.name],
                template=definition.template,
                parameters=parameters[self.slices[definition.name]],
            )
            for definition in self.unit.curves
        }

    def provider(self, parameters: np.ndarray) -> KnownData:
        return self.known_data.with_curves(self.curves(parameters))

    def residuals(self, parameters: np.ndarray) -> np.ndarray:
        return self._residuals_against(self.provider(parameters))

    def jacobian(self, parameters: np.ndarray) -> np.ndarray:
        """Square matrix ``d residual / d unit parameters``."""
        provider = self.provider(parameters)
        gradients = self._analytic_gradients(provider)
        if gradients is not None:
            return self._assemble(gradients, self.slices, self.size)

        logger.debug("Finite-difference Jacobian for unit %s", list(self.unit.names))
        jacobian = np.zeros((len(self.instruments), self.size))
        for k in range(self.size):
            h = self._bump_size(parameters[k])
            up = parameters.copy()
            up[k] += h
            down = parameters.copy()
            down[k] -= h
            jacobian[:, k] = (self.residuals(up) - self.residuals(down)) / (2.0 * h)
        return jacobian

    def dependency_jacobian(
        self, parameters: np.ndarray, sizes: Mapping[str, int]
    ) -> Dict[str, np.ndarray]:
        """``d residual / d parameters`` of known dependency curves.

        ``sizes`` maps each dependency to its parameter count. Only
        dependencies the residuals actually read, directly or through the
        base curves of spread curves, are evaluated; the rest have exactly
        zero sensitivity and are omitted.
        """
        referenced = set(self.unit.referenced_curves(self.known_data))
        names = [name for name in sizes if name in referenced]
        if not names:
            return {}

        provider = self.provider(parameters)
        gradients = self._analytic_gradients(provider)
        result: Dict[str, np.ndarray] = {}
        for name in names:
            if gradients is not None:
                size = sizes[name]
                result[name] = self._assemble(gradients, {name: slice(0, size)}, size)
            else:
                result[name] = self._bumped_dependency(parameters, name)
            if result[name].shape[1] != sizes[name]:
                raise ConfigurationError(
                    f"Curve {name!r} has {result[name].shape[1]} parameters but its "
                    f"building block entry has {sizes[name]} rows"
                )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _residuals_against(self, provider: KnownData) -> np.ndarray:
        return np.array(
            [self.calculator.residual(instrument, provider) for instrument in self.instruments],
            dtype=float,
        )

    def _analytic_gradients(self, provider: KnownData):
        gradients = []
        for instrument in self.instruments:
            gradient = self.sensitivity_calculator.sensitivity(instrument, provider)
            if gradient is None:
                return None
            gradients.append(gradient)
        return gradients

    def _assemble(self, gradients, slices: Dict[str, slice], size: int) -> np.ndarray:
        matrix = np.zeros((len(gradients), size))
        for row, gradient in enumerate(gradients):
            for name, columns in slices.items():
                if name not in gradient:
                    continue
                vector = np.asarray(gradient[name], dtype=float)
                if vector.shape != (columns.stop - columns.start,):
                    raise ConfigurationError(
                        f"Instrument {self.instruments[row].name!r} returned a gradient "
                        f"of length {vector.size} for curve {name!r}, expected "
                        f"{columns.stop - columns.start}"
                    )
                matrix[row, columns] = vector
        return matrix

    def _dependency_parameters(self, name: str) -> np.ndarray:
        entry = self.known_data.entry(name)
        if entry.parameters is not None:
            return entry.parameters
        if entry.template is not None:
            return entry.template.from_curve(entry.curve)
        raise ConfigurationError(
            f"Curve {name!r} carries quote sensitivities but no template or parameters"
        )

    def _curves_against(self, parameters: np.ndarray, known_data: KnownData) -> Dict[str, Curve]:
        """Build the unit's curves in order; later ones may be built on earlier ones."""
        built: Dict[str, Curve] = {}
        for definition in self.unit.curves:
            context = known_data
            if definition.template.dependencies and built:
                context = known_data.with_curves(built)
            built[definition.name] = definition.template.to_curve(
                parameters[self.slices[definition.name]], context
            )
        return built

    def _replace_known(self, name: str, curve: Curve) -> KnownData:
        """Known data with ``name`` replaced by ``curve``.

        Known curves built on top of ``name`` are rebuilt from their stored
        parameters, so the replacement reaches the unit through them too.
        """
        replaced = {name}
        entries: Dict[str, KnownCurve] = {}
        for other, entry in self.known_data.items():
            template = entry.template
            if other == name:
                entries[other] = KnownCurve(curve, template)
            elif (
                template is not None
                and entry.parameters is not None
                and replaced.intersection(template.dependencies)
            ):
                rebuilt = template.to_curve(entry.parameters, KnownData(entries))
                entries[other] = KnownCurve(rebuilt, template, entry.parameters)
                replaced.add(other)
            else:
                entries[other] = entry
        return KnownData(entries, self.known_data.fixings)

    def _bumped_dependency(self, parameters: np.ndarray, name: str) -> np.ndarray:
        template = self.known_data.template(name)
        if template is None:
            raise ConfigurationError(
                f"Curve {name!r} has no template; cannot bump it for finite differences"
            )
        base = np.asarray(self._dependency_parameters(name), dtype=float)
        others = KnownData({n: e for n, e in self.known_data.items() if n != name})

        def residuals_with(dependency_parameters: np.ndarray) -> np.ndarray:
            known = self._replace_known(name, template.to_curve(dependency_parameters, others))
            own_curves = self._curves_against(parameters, known)
            return self._residuals_against(known.with_curves(own_curves))

        jacobian = np.zeros((len(self.instruments), len(base)))
        for k in range(len(base)):
            h = self._bump_size(base[k])
            up = base.copy()
            up[k] += h
            down = base.copy()
            down[k] -= h
            jacobian[:, k] = (residuals_with(up) - residuals_with(down)) / (2.0 * h)
        return jacobian

    def _bump_size(self, value: float) -> float:
        return self.config.finite_difference_bump * max(abs(value), 1.0)
