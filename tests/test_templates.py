from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

import numpy as np
import pytest
from conftest import (
    CURVE_DATE,
    DISCOUNT,
    EURIBOR6M,
    OIS,
    OIS_RATES,
    discount_deposits,
    euribor_instruments,
    template,
)

from multicurve.calibration import (
    CurveDefinition,
    CurveUnit,
    DiscountFactorCurveTemplate,
    InterpolatedCurveTemplate,
    NelsonSiegelTemplate,
    NodeTimeRule,
    ResidualSystem,
    SpreadCurveTemplate,
    UnitSolver,
    make_unit,
)
from multicurve.curves import (
    DiscountFactorCurve,
    InterpolatedYieldCurve,
    KnownData,
    NelsonSiegelCurve,
    SpreadCurve,
)
from multicurve.errors import ConfigurationError
from multicurve.instruments import DepositInstrument
from multicurve.valuation import ParRateCalculator


def assert_reprices(unit, provider, tolerance=1e-12):
    for instrument in unit.instruments:
        assert instrument.par_rate(provider) == pytest.approx(instrument.quote, abs=tolerance)


@dataclass(frozen=True)
class FixingDeposit(DepositInstrument):
    """Deposit whose rate fixing period ends before its maturity."""

    fixing_end: Optional[date] = None

    @property
    def last_fixing_end_date(self) -> date:
        return self.fixing_end or self.end_date


class TestPeriodicYields:
    def test_semi_annual_yields_reprice(self, tight_config, calculator):
        curve_template = InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, compounding_periods=2)
        unit = make_unit((DISCOUNT, curve_template, discount_deposits(OIS_RATES)))
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())

        provider = KnownData(solution.curves)
        assert_reprices(unit, provider)
        curve = provider.get_curve(DISCOUNT)
        assert curve.compounding_periods == 2
        # Periodic yields sit above the continuous zero rates they imply
        zeros = np.array([curve.zero(t) for t in curve.node_times])
        assert np.all(solution.vector > zeros)

    def test_from_curve_converts_convention(self):
        times = [0.5, 1.0, 2.0]
        continuous = InterpolatedYieldCurve(CURVE_DATE, times, [0.03, 0.03, 0.03])
        annual = InterpolatedCurveTemplate(
            DISCOUNT, CURVE_DATE, node_times=times, compounding_periods=1
        )
        np.testing.assert_allclose(annual.from_curve(continuous), np.expm1(0.03))

    def test_rejects_zero_periods(self):
        with pytest.raises(ConfigurationError, match="compounding period"):
            InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, compounding_periods=0)


class TestDiscountFactorTemplate:
    def test_initial_guess_from_quotes(self):
        unit = make_unit(
            (DISCOUNT, DiscountFactorCurveTemplate(DISCOUNT, CURVE_DATE), discount_deposits())
        )
        definition = unit.curves[0]
        np.testing.assert_allclose(
            definition.start_vector(), np.exp(-0.04 * definition.template.node_times)
        )

    @pytest.mark.parametrize("method", ["LINEAR_DF", "LOGLINEAR_DF"])
    def test_calibrated_discount_factors_reprice(self, method, tight_config, calculator):
        curve_template = DiscountFactorCurveTemplate(DISCOUNT, CURVE_DATE, method)
        unit = make_unit((DISCOUNT, curve_template, discount_deposits(OIS_RATES)))
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())

        provider = KnownData(solution.curves)
        assert_reprices(unit, provider)
        curve = provider.get_curve(DISCOUNT)
        assert isinstance(curve, DiscountFactorCurve)
        assert np.all((solution.vector > 0.0) & (solution.vector < 1.0))
        bound = unit.curves[0].template
        np.testing.assert_allclose(bound.from_curve(curve), solution.vector, atol=1e-15)

    def test_rejects_zero_rate_method(self):
        with pytest.raises(ConfigurationError, match="unknown interpolation method"):
            DiscountFactorCurveTemplate(DISCOUNT, CURVE_DATE, "LINEAR_ZERO")


class TestNelsonSiegelTemplate:
    TRUTH = np.array([0.03, -0.01, 0.02, 1.5])
    TENORS = ["6M", "2Y", "5Y", "10Y"]

    def instruments(self):
        truth = KnownData({DISCOUNT: NelsonSiegelCurve(CURVE_DATE, self.TRUTH, name=DISCOUNT)})
        deposits = discount_deposits({tenor: 0.0 for tenor in self.TENORS})
        return [deposit.with_quote(deposit.par_rate(truth)) for deposit in deposits]

    def test_recovers_generating_parameters(self, tight_config, calculator):
        definition = CurveDefinition(
            DISCOUNT,
            NelsonSiegelTemplate(DISCOUNT, CURVE_DATE),
            tuple(self.instruments()),
            initial_guess=[0.031, -0.011, 0.018, 1.4],
        )
        unit = CurveUnit((definition,))
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())

        assert_reprices(unit, KnownData(solution.curves))
        np.testing.assert_allclose(solution.vector, self.TRUTH, atol=1e-6)

    def test_default_initial_guess(self):
        instruments = self.instruments()
        guess = NelsonSiegelTemplate(DISCOUNT, CURVE_DATE, initial_tau=2.0).initial_guess(
            instruments
        )
        short, long = instruments[0].quote, instruments[-1].quote
        np.testing.assert_allclose(guess, [long, short - long, 0.0, 2.0])

    def test_needs_four_instruments(self, calculator):
        unit = make_unit(
            (DISCOUNT, NelsonSiegelTemplate(DISCOUNT, CURVE_DATE), self.instruments()[:3])
        )
        with pytest.raises(ConfigurationError, match="3 instruments but 4 parameters"):
            UnitSolver(calculator).solve(unit, KnownData())

    def test_cannot_be_a_spread(self):
        with pytest.raises(ConfigurationError, match="functional curve"):
            SpreadCurveTemplate(NelsonSiegelTemplate(EURIBOR6M, CURVE_DATE), OIS)


class TestSpreadTemplate:
    def test_dependencies_and_initial_guess(self):
        spread = SpreadCurveTemplate(template(EURIBOR6M), OIS).bind(euribor_instruments())
        assert spread.name == EURIBOR6M
        assert spread.dependencies == (OIS,)
        np.testing.assert_array_equal(spread.initial_guess(euribor_instruments()), np.zeros(7))

        factors = SpreadCurveTemplate(DiscountFactorCurveTemplate(EURIBOR6M, CURVE_DATE), OIS)
        bound = factors.bind(euribor_instruments())
        np.testing.assert_array_equal(bound.initial_guess(euribor_instruments()), np.ones(7))

    def test_spread_over_itself(self):
        with pytest.raises(ConfigurationError, match="over itself"):
            SpreadCurveTemplate(template(OIS), OIS)

    def test_base_must_be_available(self):
        spread = SpreadCurveTemplate(template(EURIBOR6M), OIS).bind(euribor_instruments())
        with pytest.raises(ConfigurationError, match="is not available"):
            spread.to_curve(np.zeros(7), KnownData())

    def test_base_must_come_earlier_in_the_unit(self):
        unit = make_unit(
            (EURIBOR6M, SpreadCurveTemplate(template(EURIBOR6M), OIS), euribor_instruments()),
            (OIS, template(OIS), discount_deposits(OIS_RATES, OIS)),
        )
        with pytest.raises(ConfigurationError, match="must come earlier"):
            unit.validate(KnownData())

    def test_joint_unit_with_base_first(self, tight_config, calculator):
        unit = make_unit(
            (OIS, template(OIS), discount_deposits(OIS_RATES, OIS)),
            (EURIBOR6M, SpreadCurveTemplate(template(EURIBOR6M), OIS), euribor_instruments()),
        )
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())
        provider = KnownData(solution.curves)
        assert_reprices(unit, provider)

        forward = provider.get_curve(EURIBOR6M)
        assert isinstance(forward, SpreadCurve)
        assert forward.base is provider.get_curve(OIS)

        analytic = ResidualSystem(unit, KnownData(), calculator).jacobian(solution.vector)
        bumped = ResidualSystem(unit, KnownData(), ParRateCalculator(analytic=False)).jacobian(
            solution.vector
        )
        np.testing.assert_allclose(bumped, analytic, atol=1e-6)
        # The 6M deposit reads only the spread curve, and sees the discount nodes through its base
        assert np.any(analytic[12, :12] != 0.0)


class TestNodeTimeRule:
    def fixing_deposits(self):
        deposits = discount_deposits({"6M": 0.03, "1Y": 0.031, "2Y": 0.032})
        return [
            FixingDeposit(
                name=deposit.name,
                reference_date=deposit.reference_date,
                quote=deposit.quote,
                curve_name=deposit.curve_name,
                start_date=deposit.start_date,
                end_date=deposit.end_date,
                day_count=deposit.day_count,
                fixing_end=deposit.end_date - timedelta(days=30),
            )
            for deposit in deposits
        ]

    def test_maturity_is_default(self):
        deposits = self.fixing_deposits()
        bound = template(DISCOUNT).bind(deposits)
        np.testing.assert_allclose(bound.node_times, [d.node_time for d in deposits])

    def test_last_fixing_end(self):
        deposits = self.fixing_deposits()
        rule = NodeTimeRule.LAST_FIXING_END
        bound = InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, node_time_rule=rule).bind(deposits)
        expected = [d.last_fixing_end_time for d in deposits]
        np.testing.assert_allclose(bound.node_times, expected)
        assert all(t < d.node_time for t, d in zip(expected, deposits))

    def test_last_fixing_end_calibration_reprices(self, tight_config, calculator):
        rule = NodeTimeRule.LAST_FIXING_END
        curve_template = InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, node_time_rule=rule)
        unit = make_unit((DISCOUNT, curve_template, self.fixing_deposits()))
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())
        assert_reprices(unit, KnownData(solution.curves))
