"""Immutable curve lookup context shared by calibration and valuation."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional, Tuple, Union

import numpy as np

from multicurve.errors import ConfigurationError

from .base import Curve

if TYPE_CHECKING:
    from multicurve.calibration.templates import CurveTemplate


@dataclass(frozen=True, eq=False)
class KnownCurve:
    """A curve plus, optionally, the template and parameters that produced it.

    The template and parameters let finite-difference sensitivities bump a
    dependency curve; curves supplied without them are treated as fixed.
    """

    curve: Curve
    template: Optional["CurveTemplate"] = None
    parameters: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.parameters is not None:
            params = np.array(self.parameters, dtype=float)
            params.setflags(write=False)
            object.__setattr__(self, "parameters", params)


class KnownData:
    """Ordered, immutable mapping of curve name to :class:`KnownCurve`.

    Every ``with_*``/``merge`` call returns a new instance, so one value can
    be handed to several concurrent block solves. Opaque fixings travel with
    the curves for instruments that need historical data.
    """

    def __init__(
        self,
        curves: Optional[Mapping[str, Union[KnownCurve, Curve]]] = None,
        fixings: Optional[Mapping[str, Any]] = None,
    ):
        entries: Dict[str, KnownCurve] = {}
        for name, value in (curves or {}).items():
            entries[name] = value if isinstance(value, KnownCurve) else KnownCurve(value)
        self._entries = MappingProxyType(entries)
        self._fixings = MappingProxyType(dict(fixings or {}))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def lookup(self, name: str) -> Optional[Curve]:
        """Curve registered under ``name``, or ``None`` when not found."""
        entry = self._entries.get(name)
        return entry.curve if entry is not None else None

    def get_curve(self, name: str) -> Curve:
        entry = self._entries.get(name)
        if entry is None:
            raise ConfigurationError(
                f"Curve {name!r} not found in known data. Available: {list(self._entries)}"
            )
        return entry.curve

    def entry(self, name: str) -> KnownCurve:
        if name not in self._entries:
            raise ConfigurationError(f"Curve {name!r} not found in known data")
        return self._entries[name]

    def template(self, name: str) -> Optional["CurveTemplate"]:
        return self.entry(name).template

    def parameters(self, name: str) -> Optional[np.ndarray]:
        return self.entry(name).parameters

    @property
    def curve_names(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    @property
    def fixings(self) -> Mapping[str, Any]:
        return self._fixings

    def items(self):
        return self._entries.items()

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Persistent updates
    # ------------------------------------------------------------------
    def with_curves(self, additions: Mapping[str, Union[KnownCurve, Curve]]) -> "KnownData":
        """New instance extended with ``additions``; duplicate names fail fast."""
        duplicates = [name for name in additions if name in self._entries]
        if duplicates:
            raise ConfigurationError(
                f"Duplicate curve names in known data: {duplicates}"
            )
        merged: Dict[str, Union[KnownCurve, Curve]] = dict(self._entries)
        merged.update(additions)
        return KnownData(merged, self._fixings)

    def merge(self, other: "KnownData") -> "KnownData":
        """Union of two contexts; curve names must not overlap."""
        merged = self.with_curves(dict(other.items()))
        if not other.fixings:
            return merged
        fixings = dict(self._fixings)
        fixings.update(other.fixings)
        return KnownData(dict(merged.items()), fixings)

    def with_fixings(self, fixings: Mapping[str, Any]) -> "KnownData":
        return KnownData(dict(self._entries), fixings)

    def __repr__(self) -> str:
        return f"KnownData(curves={list(self._entries)}, fixings={list(self._fixings)})"
