"""Valuation calculators injected into curve calibration.

A calculator turns an instrument and a curve context into the scalar the
solver drives to its target, and optionally the analytic gradient of that
scalar per curve. Swapping the calculator changes the calibration
convention (par rate vs. par spread) without touching the solver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np

from multicurve.curves.provider import KnownData
from multicurve.instruments.base import CalibrationInstrument


class ValuationCalculator(ABC):
    """Instrument valuation service used by the unit solver."""

    @abstractmethod
    def value(self, instrument: CalibrationInstrument, provider: KnownData) -> float:
        """Model value of ``instrument`` against ``provider``."""

    def target(self, instrument: CalibrationInstrument) -> float:
        """Value the instrument must reprice to."""
        return instrument.quote

    def residual(self, instrument: CalibrationInstrument, provider: KnownData) -> float:
        return self.value(instrument, provider) - self.target(instrument)

    def sensitivity(
        self, instrument: CalibrationInstrument, provider: KnownData
    ) -> Optional[Dict[str, np.ndarray]]:
        """Gradient of :meth:`value` per curve name, or ``None`` for bumping."""
        return None

    @property
    def provides_gradients(self) -> bool:
        """Whether :meth:`sensitivity` returns analytic gradients."""
        return type(self).sensitivity is not ValuationCalculator.sensitivity

    def quote_sensitivity(self, instrument: CalibrationInstrument) -> float:
        """Derivative of the residual with respect to the instrument's quote."""
        return -1.0


class ParRateCalculator(ValuationCalculator):
    """Calibrates model par rates to the quoted rates.

    Args:
        analytic: Use the instruments' analytic gradients. When False the
            solver falls back to finite differences.
    """

    def __init__(self, analytic: bool = True):
        self.analytic = analytic

    def value(self, instrument: CalibrationInstrument, provider: KnownData) -> float:
        return instrument.par_rate(provider)

    def sensitivity(self, instrument, provider):
        if not self.analytic:
            return None
        return instrument.par_rate_sensitivity(provider)

    @property
    def provides_gradients(self) -> bool:
        return self.analytic

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(analytic={self.analytic})"


class ParSpreadCalculator(ParRateCalculator):
    """Calibrates the par spread ``par_rate - quote`` to zero."""

    def value(self, instrument: CalibrationInstrument, provider: KnownData) -> float:
        return instrument.par_rate(provider) - instrument.quote

    def target(self, instrument: CalibrationInstrument) -> float:
        return 0.0
