import numpy as np
import pytest
from conftest import (
    CURVE_DATE,
    DISCOUNT,
    DISCOUNT_TENORS,
    EURIBOR6M,
    OIS,
    discount_deposits,
    euribor_instruments,
    template,
)

from multicurve.calibration import (
    InterpolatedCurveTemplate,
    SolverConfig,
    UnitSolver,
    make_unit,
)
from multicurve.curves import InterpolatedYieldCurve, KnownData
from multicurve.errors import ConfigurationError, ConvergenceFailure, NumericalWarning
from multicurve.valuation import ParRateCalculator


class CountingCalculator(ParRateCalculator):
    def __init__(self, analytic=True):
        super().__init__(analytic)
        self.calls = 0

    def value(self, instrument, provider):
        self.calls += 1
        return super().value(instrument, provider)


class NanCalculator(ParRateCalculator):
    def value(self, instrument, provider):
        return float("nan")


def discount_unit(method="LOGLINEAR_ZERO"):
    return make_unit((DISCOUNT, template(DISCOUNT, method), discount_deposits()))


class TestUnitSolver:
    @pytest.mark.parametrize("method", ["LOGLINEAR_ZERO", "LINEAR_ZERO", "PIECEWISE_CONSTANT"])
    def test_reprices_every_instrument(self, method, tight_config, calculator):
        unit = discount_unit(method)
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())

        assert solution.curve_names == (DISCOUNT,)
        assert solution.vector.shape == (len(DISCOUNT_TENORS),)
        assert solution.jacobian.shape == (len(DISCOUNT_TENORS), len(DISCOUNT_TENORS))
        assert solution.residual_norm < 1e-12
        assert 0 < solution.iterations < 20

        provider = KnownData(solution.curves)
        for instrument in unit.instruments:
            assert instrument.par_rate(provider) == pytest.approx(instrument.quote, abs=1e-12)

    def test_solution_entries_carry_template_and_parameters(self, tight_config, calculator):
        unit = discount_unit()
        solution = UnitSolver(calculator, config=tight_config).solve(unit, KnownData())
        entry = solution.entries[DISCOUNT]
        assert entry.template is unit.curves[0].template
        np.testing.assert_array_equal(entry.parameters, solution.vector)
        np.testing.assert_array_equal(entry.curve.parameters, solution.vector)

    def test_wrong_instrument_count_fails_before_valuation(self):
        instruments = discount_deposits()[:5]
        node_times = sorted(i.node_time for i in instruments)[:4]
        curve_template = InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, node_times=node_times)
        unit = make_unit((DISCOUNT, curve_template, instruments))

        calculator = CountingCalculator()
        with pytest.raises(ConfigurationError, match="5 instruments but 4 parameters"):
            UnitSolver(calculator).solve(unit, KnownData())
        assert calculator.calls == 0

    def test_unresolved_curve(self, calculator):
        unit = make_unit((EURIBOR6M, template(EURIBOR6M), euribor_instruments()))
        with pytest.raises(ConfigurationError, match="references unknown curves"):
            UnitSolver(calculator).solve(unit, KnownData())

    def test_curve_already_known(self, calculator):
        known = KnownData({DISCOUNT: InterpolatedYieldCurve.flat(CURVE_DATE, 0.04)})
        with pytest.raises(ConfigurationError, match="already present"):
            UnitSolver(calculator).solve(discount_unit(), known)

    def test_singular_jacobian(self, calculator):
        # Both instruments mature before the first node; the second node is unconstrained
        instruments = discount_deposits()[:2]
        curve_template = InterpolatedCurveTemplate(DISCOUNT, CURVE_DATE, node_times=[1.0, 2.0])
        unit = make_unit((DISCOUNT, curve_template, instruments))
        with pytest.raises(ConvergenceFailure, match="singular") as excinfo:
            UnitSolver(calculator).solve(unit, KnownData())
        assert excinfo.value.curve_names == (DISCOUNT,)
        assert excinfo.value.iterations == 0

    def test_iteration_limit(self, calculator):
        config = SolverConfig(absolute_tolerance=1e-14, step_tolerance=1e-16, max_iterations=1)
        with pytest.raises(ConvergenceFailure, match="did not converge") as excinfo:
            UnitSolver(calculator, config=config).solve(discount_unit(), KnownData())
        assert excinfo.value.iterations == 1
        assert excinfo.value.residual_norm > 1e-14

    def test_non_finite_residuals(self):
        with pytest.raises(ConvergenceFailure, match="non-finite"):
            UnitSolver(NanCalculator()).solve(discount_unit(), KnownData())

    def test_ill_conditioned_warning(self, calculator):
        config = SolverConfig(condition_warning=1.0)
        with pytest.warns(NumericalWarning, match="ill-conditioned"):
            solution = UnitSolver(calculator, config=config).solve(discount_unit(), KnownData())
        assert solution.condition_number > 1.0

    def test_finite_difference_jacobian_matches_analytic(self, calculator):
        ois = InterpolatedYieldCurve(CURVE_DATE, [0.5, 2.0, 10.0], [0.038, 0.033, 0.028], name=OIS)
        known = KnownData({OIS: ois})
        unit = make_unit((EURIBOR6M, template(EURIBOR6M), euribor_instruments()))
        parameters = unit.initial_vector()

        analytic = UnitSolver(calculator).system(unit, known).jacobian(parameters)
        bumped = UnitSolver(ParRateCalculator(analytic=False)).system(unit, known).jacobian(
            parameters
        )
        np.testing.assert_allclose(bumped, analytic, atol=1e-7)

    def test_finite_difference_solve(self, tight_config):
        unit = discount_unit()
        analytic = UnitSolver(ParRateCalculator(), config=tight_config).solve(unit, KnownData())
        bumped = UnitSolver(ParRateCalculator(analytic=False), config=tight_config).solve(
            unit, KnownData()
        )
        np.testing.assert_allclose(bumped.vector, analytic.vector, atol=1e-10)
