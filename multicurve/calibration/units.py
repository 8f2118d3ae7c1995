"""Calibration request structure: curve definitions, units and blocks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Container, Dict, List, Optional, Sequence, Tuple

import numpy as np

from multicurve.errors import ConfigurationError
from multicurve.instruments.base import CalibrationInstrument

from .templates import CurveTemplate

if TYPE_CHECKING:
    from multicurve.curves.provider import KnownData


@dataclass(frozen=True, eq=False)
class CurveDefinition:
    """One curve to calibrate: its template, instruments and starting point."""

    name: str
    template: CurveTemplate
    instruments: Tuple[CalibrationInstrument, ...]
    initial_guess: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "instruments", tuple(self.instruments))
        if self.template.name != self.name:
            raise ConfigurationError(
                f"Template {self.template.name!r} attached to curve {self.name!r}"
            )
        if self.initial_guess is not None:
            guess = np.array(self.initial_guess, dtype=float)
            guess.setflags(write=False)
            object.__setattr__(self, "initial_guess", guess)

    @property
    def n_parameters(self) -> int:
        return self.template.n_parameters

    @property
    def n_instruments(self) -> int:
        return len(self.instruments)

    def start_vector(self) -> np.ndarray:
        if self.initial_guess is not None:
            return np.array(self.initial_guess, dtype=float)
        return np.asarray(self.template.initial_guess(self.instruments), dtype=float)


@dataclass(frozen=True)
class CurveUnit:
    """Curves solved jointly as one square nonlinear system."""

    curves: Tuple[CurveDefinition, ...]

    def __post_init__(self):
        object.__setattr__(self, "curves", tuple(self.curves))
        if not self.curves:
            raise ConfigurationError("A curve unit needs at least one curve")

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(definition.name for definition in self.curves)

    @property
    def instruments(self) -> Tuple[CalibrationInstrument, ...]:
        return tuple(i for definition in self.curves for i in definition.instruments)

    @property
    def n_parameters(self) -> int:
        return sum(definition.n_parameters for definition in self.curves)

    @property
    def n_instruments(self) -> int:
        return sum(definition.n_instruments for definition in self.curves)

    def parameter_slices(self) -> Dict[str, slice]:
        """Position of each curve's parameters in the unit vector."""
        slices: Dict[str, slice] = {}
        start = 0
        for definition in self.curves:
            slices[definition.name] = slice(start, start + definition.n_parameters)
            start += definition.n_parameters
        return slices

    def referenced_curves(self, known_data: Optional["KnownData"] = None) -> List[str]:
        """Curves the unit's residuals read, in first-seen order.

        These are the curves the instruments reference plus the base curves
        of the unit's templates. With ``known_data`` the list is closed over
        the template dependencies of known curves, so a curve built on top
        of another known curve brings that curve in as well.
        """
        seen: Dict[str, None] = {}
        for instrument in self.instruments:
            for name in instrument.curve_names:
                seen.setdefault(name, None)
        for definition in self.curves:
            for name in definition.template.dependencies:
                seen.setdefault(name, None)

        pending = list(seen)
        while known_data is not None and pending:
            name = pending.pop(0)
            if name not in known_data:
                continue
            template = known_data.template(name)
            if template is None:
                continue
            for base in template.dependencies:
                if base not in seen:
                    seen[base] = None
                    pending.append(base)
        return list(seen)

    def initial_vector(self) -> np.ndarray:
        return np.concatenate([definition.start_vector() for definition in self.curves])

    def validate(self, known_data: Container[str]) -> None:
        """Check the unit is a well-posed square system against ``known_data``.

        ``known_data`` is anything supporting ``in`` on curve names, usually
        a :class:`KnownData`.

        Raises:
            ConfigurationError: On duplicate or already-known curve names,
                non-square systems, a wrongly sized initial guess, or an
                instrument referencing a curve nobody supplies, or a curve
                built on another curve solved later in the unit
        """
        names = self.names
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Curve names repeated within a unit: {duplicates}")

        clashes = [name for name in names if name in known_data]
        if clashes:
            raise ConfigurationError(
                f"Curves {clashes} are calibrated but already present in known data"
            )

        if self.n_instruments != self.n_parameters:
            raise ConfigurationError(
                f"Unit {list(names)} has {self.n_instruments} instruments but "
                f"{self.n_parameters} parameters"
            )

        for definition in self.curves:
            guess = definition.start_vector()
            if guess.shape != (definition.n_parameters,):
                raise ConfigurationError(
                    f"Curve {definition.name!r}: initial guess has {guess.size} entries, "
                    f"expected {definition.n_parameters}"
                )

        unresolved = [
            name for name in self.referenced_curves()
            if name not in names and name not in known_data
        ]
        if unresolved:
            raise ConfigurationError(
                f"Unit {list(names)} references unknown curves {unresolved}"
            )

        for position, definition in enumerate(self.curves):
            later = [name for name in definition.template.dependencies if name in names[position:]]
            if later:
                raise ConfigurationError(
                    f"Curve {definition.name!r} is built on {later}, which must come "
                    f"earlier in the unit"
                )


@dataclass(frozen=True)
class CurveBlock:
    """Units solved in order; unit k sees the curves of units 0..k-1."""

    units: Tuple[CurveUnit, ...]

    def __post_init__(self):
        object.__setattr__(self, "units", tuple(self.units))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for unit in self.units for name in unit.names)


def make_unit(
    *definitions: Tuple[str, CurveTemplate, Sequence[CalibrationInstrument]]
) -> CurveUnit:
    """Build a unit from ``(name, template, instruments)`` triples.

    Unbound templates are bound to their instruments.
    """
    return CurveUnit(
        tuple(
            CurveDefinition(name, template.bind(instruments), tuple(instruments))
            for name, template, instruments in definitions
        )
    )
