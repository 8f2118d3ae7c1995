"""Curve templates: the map between a parameter vector and a curve object."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import numpy as np

from multicurve.curves.base import Curve
from multicurve.curves.discount_factor import DISCOUNT_FACTOR_METHODS, DiscountFactorCurve
from multicurve.curves.nelson_siegel import NelsonSiegelCurve
from multicurve.curves.spread import SpreadCurve
from multicurve.curves.yield_curve import InterpolatedYieldCurve
from multicurve.errors import ConfigurationError
from multicurve.instruments.base import CalibrationInstrument
from multicurve.interpolation import INTERPOLATORS

if TYPE_CHECKING:
    from multicurve.curves.provider import KnownData


class NodeTimeRule(Enum):
    """Which instrument time places a curve node."""

    MATURITY = "MATURITY"
    LAST_FIXING_END = "LAST_FIXING_END"

    def time_of(self, instrument: CalibrationInstrument) -> float:
        if self is NodeTimeRule.LAST_FIXING_END:
            return instrument.last_fixing_end_time
        return instrument.node_time


class CurveTemplate(ABC):
    """Immutable parameterization of one named curve.

    :meth:`to_curve` must be a pure function of the parameter vector and of
    the curves listed in :attr:`dependencies`; the solver calls it at every
    Newton step and for every finite-difference bump.
    """

    def __init__(self, name: str):
        self.name = name

    @property
    @abstractmethod
    def n_parameters(self) -> int:
        pass

    @property
    def dependencies(self) -> Tuple[str, ...]:
        """Curves that ``to_curve`` reads from known data."""
        return ()

    def bind(self, instruments: Sequence[CalibrationInstrument]) -> "CurveTemplate":
        """Template specialised to the instruments it will be calibrated to."""
        return self

    @abstractmethod
    def initial_guess(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        pass

    @abstractmethod
    def to_curve(
        self, parameters: np.ndarray, known_data: Optional["KnownData"] = None
    ) -> Curve:
        pass

    @abstractmethod
    def from_curve(self, curve: Curve) -> np.ndarray:
        pass


class InterpolatedCurveTemplate(CurveTemplate):
    """Zero-rate curve with one node per calibration instrument.

    Without explicit ``node_times`` the template is unbound; :meth:`bind`
    places the nodes at the instruments' times chosen by ``node_time_rule``.
    The initial guess is the instrument quotes, or ``initial_rate`` when
    given. With ``compounding_periods`` the node values are yields
    compounded that many times a year instead of continuous zero rates.
    """

    def __init__(
        self,
        name: str,
        reference_date: date,
        interpolation_method: str = "LOGLINEAR_ZERO",
        node_times: Optional[Sequence[float]] = None,
        initial_rate: Optional[float] = None,
        time_day_count: str = "ACT/365F",
        node_time_rule: NodeTimeRule = NodeTimeRule.MATURITY,
        compounding_periods: Optional[int] = None,
    ):
        super().__init__(name)
        method = interpolation_method.upper()
        if method not in self._methods():
            raise ConfigurationError(
                f"Curve {name!r}: unknown interpolation method {interpolation_method!r}"
            )
        if compounding_periods is not None and compounding_periods < 1:
            raise ConfigurationError(
                f"Curve {name!r}: needs at least one compounding period a year, "
                f"got {compounding_periods}"
            )
        self.reference_date = reference_date
        self.interpolation_method = method
        self.initial_rate = initial_rate
        self.time_day_count = time_day_count
        self.node_time_rule = node_time_rule
        self.compounding_periods = compounding_periods
        self._node_times = None if node_times is None else self._check_nodes(node_times)

    @property
    def node_times(self) -> Optional[np.ndarray]:
        return None if self._node_times is None else self._node_times.copy()

    @property
    def n_parameters(self) -> int:
        return len(self._bound_nodes())

    def bind(self, instruments: Sequence[CalibrationInstrument]) -> "InterpolatedCurveTemplate":
        if self._node_times is not None:
            return self
        bound = copy.copy(self)
        bound._node_times = self._check_nodes(
            sorted(self.node_time_rule.time_of(instrument) for instrument in instruments)
        )
        return bound

    def initial_guess(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        n = self.n_parameters
        if self.initial_rate is not None:
            return np.full(n, float(self.initial_rate))
        rates = self._ordered_quotes(instruments)
        if len(rates) == n:
            return rates
        return np.full(n, float(np.mean(rates)) if len(rates) else 0.0)

    def to_curve(self, parameters, known_data=None) -> InterpolatedYieldCurve:
        return InterpolatedYieldCurve(
            reference_date=self.reference_date,
            node_times=self._node_times,
            zero_rates=parameters,
            interpolation_method=self.interpolation_method,
            name=self.name,
            time_day_count=self.time_day_count,
            compounding_periods=self.compounding_periods,
        )

    def from_curve(self, curve: Curve) -> np.ndarray:
        """Node values of ``curve`` in this template's rate convention."""
        times = self._bound_nodes()
        if (
            isinstance(curve, InterpolatedYieldCurve)
            and curve.compounding_periods == self.compounding_periods
            and np.array_equal(curve.node_times, times)
        ):
            return curve.parameters
        zeros = np.array([curve.zero(t) for t in times])
        n = self.compounding_periods
        return zeros if n is None else n * np.expm1(zeros / n)

    def _bound_nodes(self) -> np.ndarray:
        if self._node_times is None:
            raise ConfigurationError(
                f"Curve {self.name!r}: template has no node times; bind it to instruments first"
            )
        return self._node_times

    def _methods(self):
        return INTERPOLATORS

    def _ordered_quotes(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        ordered = sorted(instruments, key=self.node_time_rule.time_of)
        return np.array([instrument.quote for instrument in ordered], dtype=float)

    def _check_nodes(self, node_times: Sequence[float]) -> np.ndarray:
        times = np.asarray(node_times, dtype=float)
        if times.ndim != 1 or len(times) == 0:
            raise ConfigurationError(f"Curve {self.name!r}: needs at least one node")
        if len(np.unique(times)) != len(times):
            raise ConfigurationError(
                f"Curve {self.name!r}: two instruments share a node time {times.tolist()}"
            )
        if np.any(np.diff(times) <= 0.0):
            raise ConfigurationError(
                f"Curve {self.name!r}: node times must be increasing {times.tolist()}"
            )
        return times

    def __repr__(self) -> str:
        nodes = "unbound" if self._node_times is None else len(self._node_times)
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"interpolation={self.interpolation_method!r}, nodes={nodes})"
        )


class DiscountFactorCurveTemplate(InterpolatedCurveTemplate):
    """Curve interpolated on discount factors, which are its parameters.

    The initial guess turns the quotes into discount factors at the node
    times as if they were continuously compounded zero rates.
    """

    def __init__(
        self,
        name: str,
        reference_date: date,
        interpolation_method: str = "LOGLINEAR_DF",
        node_times: Optional[Sequence[float]] = None,
        initial_rate: Optional[float] = None,
        time_day_count: str = "ACT/365F",
        node_time_rule: NodeTimeRule = NodeTimeRule.MATURITY,
    ):
        super().__init__(
            name,
            reference_date,
            interpolation_method,
            node_times,
            initial_rate,
            time_day_count,
            node_time_rule,
        )

    def initial_guess(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        rates = super().initial_guess(instruments)
        return np.exp(-rates * self._node_times)

    def to_curve(self, parameters, known_data=None) -> DiscountFactorCurve:
        return DiscountFactorCurve(
            reference_date=self.reference_date,
            node_times=self._node_times,
            discount_factors=parameters,
            interpolation_method=self.interpolation_method,
            name=self.name,
            time_day_count=self.time_day_count,
        )

    def from_curve(self, curve: Curve) -> np.ndarray:
        return np.array([curve.df(t) for t in self._bound_nodes()])

    def _methods(self):
        return DISCOUNT_FACTOR_METHODS


class NelsonSiegelTemplate(CurveTemplate):
    """Four-parameter Nelson-Siegel curve, calibrated to four instruments.

    The initial guess puts the level at the longest quote, the slope at the
    shortest minus the longest, no curvature and ``initial_tau``.
    """

    def __init__(
        self,
        name: str,
        reference_date: date,
        initial_tau: float = 1.0,
        time_day_count: str = "ACT/365F",
    ):
        super().__init__(name)
        if not initial_tau > 0:
            raise ConfigurationError(f"Curve {name!r}: initial tau must be positive")
        self.reference_date = reference_date
        self.initial_tau = initial_tau
        self.time_day_count = time_day_count

    @property
    def n_parameters(self) -> int:
        return NelsonSiegelCurve.N_PARAMETERS

    def initial_guess(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        ordered = sorted(instruments, key=lambda instrument: instrument.node_time)
        if not ordered:
            return np.array([0.0, 0.0, 0.0, self.initial_tau])
        short, long = ordered[0].quote, ordered[-1].quote
        return np.array([long, short - long, 0.0, self.initial_tau])

    def to_curve(self, parameters, known_data=None) -> NelsonSiegelCurve:
        return NelsonSiegelCurve(
            self.reference_date, parameters, name=self.name, time_day_count=self.time_day_count
        )

    def from_curve(self, curve: Curve) -> np.ndarray:
        if not isinstance(curve, NelsonSiegelCurve):
            raise ConfigurationError(
                f"Curve {self.name!r}: cannot read Nelson-Siegel parameters from {curve!r}"
            )
        return curve.parameters

    def __repr__(self) -> str:
        return f"NelsonSiegelTemplate(name={self.name!r})"


class SpreadCurveTemplate(CurveTemplate):
    """Curve calibrated as a spread over ``base_curve``.

    ``spread`` parameterizes the spread zero rates; the base curve is read
    from known data on every :meth:`to_curve`, so the unit depends on it
    like on any curve its instruments reference. The spread starts at zero
    (unit discount factors) unless the spread template carries an
    ``initial_rate``.
    """

    def __init__(self, spread: CurveTemplate, base_curve: str):
        super().__init__(spread.name)
        if isinstance(spread, NelsonSiegelTemplate):
            raise ConfigurationError(
                f"Curve {spread.name!r}: a functional curve cannot be a spread over another"
            )
        if base_curve == spread.name:
            raise ConfigurationError(f"Curve {spread.name!r} cannot be a spread over itself")
        self.spread = spread
        self.base_curve = base_curve

    @property
    def n_parameters(self) -> int:
        return self.spread.n_parameters

    @property
    def dependencies(self) -> Tuple[str, ...]:
        return (self.base_curve,) + tuple(
            name for name in self.spread.dependencies if name != self.base_curve
        )

    def bind(self, instruments: Sequence[CalibrationInstrument]) -> "SpreadCurveTemplate":
        bound = self.spread.bind(instruments)
        if bound is self.spread:
            return self
        return SpreadCurveTemplate(bound, self.base_curve)

    def initial_guess(self, instruments: Sequence[CalibrationInstrument]) -> np.ndarray:
        initial_rate = getattr(self.spread, "initial_rate", None)
        if initial_rate is not None:
            return np.asarray(self.spread.initial_guess(instruments), dtype=float)
        if isinstance(self.spread, DiscountFactorCurveTemplate):
            return np.ones(self.n_parameters)
        return np.zeros(self.n_parameters)

    def to_curve(self, parameters, known_data=None) -> SpreadCurve:
        if known_data is None or self.base_curve not in known_data:
            raise ConfigurationError(
                f"Curve {self.name!r}: base curve {self.base_curve!r} is not available"
            )
        return SpreadCurve(
            base=known_data.get_curve(self.base_curve),
            base_name=self.base_curve,
            spread=self.spread.to_curve(parameters, known_data),
            name=self.name,
        )

    def from_curve(self, curve: Curve) -> np.ndarray:
        if not isinstance(curve, SpreadCurve):
            raise ConfigurationError(
                f"Curve {self.name!r}: cannot read spread parameters from {curve!r}"
            )
        return self.spread.from_curve(curve.spread)

    def __repr__(self) -> str:
        return f"SpreadCurveTemplate(spread={self.spread!r}, base={self.base_curve!r})"
