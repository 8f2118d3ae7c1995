"""Common interface for calibration instruments."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Mapping, Tuple

import numpy as np

from multicurve.conventions.daycount import ACT_365F
from multicurve.curves.provider import KnownData

# Time axis on which curve nodes are placed
NODE_TIME_DAY_COUNT = ACT_365F


@dataclass(frozen=True)
class AccrualPeriod:
    """Single accrual period of a leg."""

    accrual_start: date
    accrual_end: date
    year_fraction: float


@dataclass(frozen=True)
class CalibrationInstrument(ABC):
    """Immutable instrument whose quote constrains one or more curves.

    Subclasses implement a par rate and its gradient with respect to the
    parameters of every curve they reference. The gradient is keyed by curve
    name (see :func:`~multicurve.curves.base.df_gradients`); curves that
    cannot report ``df_sensitivity`` are left out and treated as fixed.
    """

    name: str
    reference_date: date
    quote: float

    @property
    @abstractmethod
    def curve_names(self) -> Tuple[str, ...]:
        """Names of the curves needed to value this instrument."""

    @property
    @abstractmethod
    def maturity_date(self) -> date:
        """Last date the instrument depends on."""

    @property
    def node_time(self) -> float:
        """Time at which this instrument places a curve node."""
        return NODE_TIME_DAY_COUNT.year_fraction(self.reference_date, self.maturity_date)

    @property
    def last_fixing_end_date(self) -> date:
        """End of the last rate fixing period; the maturity when nothing fixes."""
        return self.maturity_date

    @property
    def last_fixing_end_time(self) -> float:
        return NODE_TIME_DAY_COUNT.year_fraction(self.reference_date, self.last_fixing_end_date)

    def with_quote(self, quote: float) -> "CalibrationInstrument":
        return replace(self, quote=quote)

    @abstractmethod
    def par_rate(self, provider: KnownData) -> float:
        """Model rate in the same convention as :attr:`quote`."""

    @abstractmethod
    def par_rate_sensitivity(self, provider: KnownData) -> Dict[str, np.ndarray]:
        """Gradient of :meth:`par_rate` per referenced curve."""


def accumulate(
    result: Dict[str, np.ndarray], gradients: Mapping[str, np.ndarray], scale: float = 1.0
) -> None:
    """Add ``scale * gradients`` into ``result``, curve by curve."""
    for name, gradient in gradients.items():
        if name in result:
            result[name] = result[name] + scale * gradient
        else:
            result[name] = scale * gradient
