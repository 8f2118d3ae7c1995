from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
import pytest
from conftest import (
    CURVE_DATE,
    DISCOUNT,
    EURIBOR6M,
    GOVERNMENT,
    OIS,
    OIS_RATES,
    discount_deposits,
    euribor_instruments,
    government_instruments,
    template,
)

from multicurve import build_curves
from multicurve.calibration import builder as builder_module
from multicurve.calibration import (
    CurveBlock,
    CurveBuilder,
    CurveBuildingBlock,
    CurveBuildingBlockBundle,
    SolverConfig,
    make_unit,
)
from multicurve.curves import InterpolatedYieldCurve, KnownData
from multicurve.errors import ConfigurationError
from multicurve.valuation import ParRateCalculator, ParSpreadCalculator


class CountingCalculator(ParRateCalculator):
    def __init__(self, analytic=True):
        super().__init__(analytic)
        self.calls = 0

    def value(self, instrument, provider):
        self.calls += 1
        return super().value(instrument, provider)


def ois_block():
    return CurveBlock((make_unit((OIS, template(OIS), discount_deposits(OIS_RATES, OIS))),))


def euribor_block():
    return CurveBlock((make_unit((EURIBOR6M, template(EURIBOR6M), euribor_instruments())),))


class TestDiscountGovernmentBlock:
    @pytest.fixture
    def result(self, discount_government_block, calculator, tight_config):
        return CurveBuilder(calculator, config=tight_config).build(
            [discount_government_block], KnownData()
        )

    def test_building_blocks(self, result):
        bundle = result.bundle
        assert bundle.names == (DISCOUNT, GOVERNMENT)

        discount_block, discount_matrix = bundle.get_block(DISCOUNT)
        assert discount_block.layout() == [(DISCOUNT, 12)]
        assert discount_matrix.shape == (12, 12)

        government_block, government_matrix = bundle.get_block(GOVERNMENT)
        assert government_block.layout() == [(DISCOUNT, 12), (GOVERNMENT, 4)]
        assert government_matrix.shape == (4, 16)

    def test_independent_curve_has_zero_cross_block(self, result):
        cross = result.bundle.sensitivity(GOVERNMENT, DISCOUNT)
        assert cross.shape == (4, 12)
        assert np.all(cross == 0.0)
        assert np.any(result.bundle.sensitivity(GOVERNMENT, GOVERNMENT) != 0.0)

    def test_spot_starting_deposits_give_diagonal_sensitivities(self, result):
        matrix = result.bundle.matrix(DISCOUNT)
        off_diagonal = matrix - np.diag(np.diag(matrix))
        np.testing.assert_allclose(off_diagonal, 0.0, atol=1e-15)
        assert np.all(np.diag(matrix) > 0.0)

    def test_all_instruments_reprice(self, result):
        data = result.known_data
        assert data.curve_names == (DISCOUNT, GOVERNMENT)
        for instrument in discount_deposits() + government_instruments():
            assert instrument.par_rate(data) == pytest.approx(instrument.quote, abs=1e-12)

    def test_diagnostics(self, result):
        summary = result.summary()
        assert isinstance(summary, pd.DataFrame)
        assert list(summary["curve_names"]) == [DISCOUNT, GOVERNMENT]
        assert list(summary["n_parameters"]) == [12, 4]
        assert (summary["residual_norm"] < 1e-12).all()
        assert result.diagnostics[1].unit == 1

    def test_result_unpacks(self, result):
        data, bundle = result
        assert data is result.known_data
        assert bundle is result.bundle
        assert result.curve(GOVERNMENT).name == GOVERNMENT


class TestOrchestration:
    def test_build_is_deterministic(self, ois_euribor_block, calculator):
        first_data, first_bundle = build_curves([ois_euribor_block], KnownData(), calculator)
        second_data, second_bundle = build_curves([ois_euribor_block], KnownData(), calculator)
        for name in (OIS, EURIBOR6M):
            np.testing.assert_array_equal(first_bundle.matrix(name), second_bundle.matrix(name))
            np.testing.assert_array_equal(
                first_data.parameters(name), second_data.parameters(name)
            )

    def test_par_rate_and_par_spread_agree(self, ois_euribor_block, tight_config):
        rate_data, rate_bundle = build_curves(
            [ois_euribor_block], KnownData(), ParRateCalculator(), config=tight_config
        )
        spread_data, spread_bundle = build_curves(
            [ois_euribor_block], KnownData(), ParSpreadCalculator(), config=tight_config
        )
        for name in (OIS, EURIBOR6M):
            np.testing.assert_allclose(
                rate_data.parameters(name), spread_data.parameters(name), atol=1e-12
            )
            np.testing.assert_allclose(
                rate_bundle.matrix(name), spread_bundle.matrix(name), atol=1e-10
            )

    def test_default_calculator_is_par_spread(self):
        assert isinstance(CurveBuilder().calculator, ParSpreadCalculator)

    def test_parallel_blocks_match_sequential(
        self, discount_government_block, ois_euribor_block, calculator
    ):
        blocks = [discount_government_block, ois_euribor_block]
        sequential = CurveBuilder(calculator, config=SolverConfig(max_workers=1)).build(blocks)
        parallel = CurveBuilder(calculator, config=SolverConfig(max_workers=2)).build(blocks)

        assert parallel.known_data.curve_names == (DISCOUNT, GOVERNMENT, OIS, EURIBOR6M)
        assert parallel.bundle.names == sequential.bundle.names
        for name in sequential.bundle:
            assert parallel.bundle.building_block(name) == sequential.bundle.building_block(name)
            np.testing.assert_array_equal(
                parallel.bundle.matrix(name), sequential.bundle.matrix(name)
            )
        assert [d.block for d in parallel.diagnostics] == [0, 0, 1, 1]

    def test_blocks_do_not_see_each_other(self):
        counting = CountingCalculator()
        with pytest.raises(ConfigurationError, match="references unknown curves"):
            CurveBuilder(counting).build([ois_block(), euribor_block()])
        assert counting.calls == 0

    def test_sibling_block_curves_get_no_columns(self, calculator):
        # The block containing GOVERNMENT gets no DISCOUNT columns from a sibling
        government = CurveBlock(
            (make_unit((GOVERNMENT, template(GOVERNMENT), government_instruments())),)
        )
        discount = CurveBlock((make_unit((DISCOUNT, template(DISCOUNT), discount_deposits())),))
        _, bundle = build_curves([discount, government], KnownData(), calculator)
        assert bundle.building_block(GOVERNMENT).layout() == [(GOVERNMENT, 4)]
        assert bundle.sensitivity(GOVERNMENT, DISCOUNT) is None

    def test_same_curve_in_two_blocks(self, calculator):
        with pytest.raises(ConfigurationError, match="block 0 and block 1"):
            build_curves([ois_block(), ois_block()], KnownData(), calculator)

    def test_calibrated_curve_already_known(self, calculator):
        known = KnownData({OIS: InterpolatedYieldCurve.flat(CURVE_DATE, 0.03)})
        with pytest.raises(ConfigurationError, match="already"):
            build_curves([ois_block()], known, calculator)

    def test_validation_precedes_solving(self, discount_government_block):
        # The second block is broken; the first must not be solved either
        counting = CountingCalculator()
        with pytest.raises(ConfigurationError):
            CurveBuilder(counting).build([discount_government_block, euribor_block()])
        assert counting.calls == 0


class TestKnownDataChaining:
    def test_chained_build_matches_single_call(self, ois_euribor_block, calculator, tight_config):
        _, joint_bundle = build_curves(
            [ois_euribor_block], KnownData(), calculator, config=tight_config
        )

        ois_data, ois_bundle = build_curves(
            [ois_block()], KnownData(), calculator, config=tight_config
        )
        chained_data, chained_bundle = build_curves(
            [euribor_block()], ois_data, calculator, config=tight_config, known_bundle=ois_bundle
        )

        assert chained_data.curve_names == (OIS, EURIBOR6M)
        assert chained_bundle.names == (OIS, EURIBOR6M)
        assert chained_bundle.building_block(EURIBOR6M) == joint_bundle.building_block(EURIBOR6M)
        np.testing.assert_allclose(
            chained_bundle.matrix(EURIBOR6M), joint_bundle.matrix(EURIBOR6M), atol=1e-12
        )

    def test_known_curve_without_bundle_is_fixed(self, calculator):
        ois = InterpolatedYieldCurve(CURVE_DATE, [0.5, 2.0, 10.0], [0.038, 0.033, 0.028], name=OIS)
        _, bundle = build_curves([euribor_block()], KnownData({OIS: ois}), calculator)
        assert bundle.building_block(EURIBOR6M).layout() == [(EURIBOR6M, 7)]
        assert bundle.sensitivity(EURIBOR6M, OIS) is None

    def test_known_bundle_rows_checked_before_solving(self):
        ois = InterpolatedYieldCurve(CURVE_DATE, [0.5, 2.0, 10.0], [0.038, 0.033, 0.028], name=OIS)
        short_entry = CurveBuildingBlockBundle()
        short_entry.add(OIS, CurveBuildingBlock([(OIS, 2)]), np.eye(2))

        counting = CountingCalculator()
        with pytest.raises(ConfigurationError, match="3 parameters but its building block"):
            CurveBuilder(counting).build([euribor_block()], KnownData({OIS: ois}), short_entry)
        assert counting.calls == 0

    def test_finite_differences_need_known_template_before_solving(self):
        ois = InterpolatedYieldCurve(CURVE_DATE, [0.5, 2.0, 10.0], [0.038, 0.033, 0.028], name=OIS)
        bundle = CurveBuildingBlockBundle()
        bundle.add(OIS, CurveBuildingBlock([(OIS, 3)]), np.eye(3))

        counting = CountingCalculator(analytic=False)
        with pytest.raises(ConfigurationError, match="has no template"):
            CurveBuilder(counting).build([euribor_block()], KnownData({OIS: ois}), bundle)
        assert counting.calls == 0

    def test_analytic_gradients_chain_known_curve_without_template(self, calculator):
        ois = InterpolatedYieldCurve(CURVE_DATE, [0.5, 2.0, 10.0], [0.038, 0.033, 0.028], name=OIS)
        bundle = CurveBuildingBlockBundle()
        bundle.add(OIS, CurveBuildingBlock([(OIS, 3)]), np.eye(3))

        _, result = build_curves(
            [euribor_block()], KnownData({OIS: ois}), calculator, known_bundle=bundle
        )
        assert result.building_block(EURIBOR6M).layout() == [(OIS, 3), (EURIBOR6M, 7)]
        assert np.any(result.sensitivity(EURIBOR6M, OIS) != 0.0)


class TestThreadPool:
    @pytest.fixture
    def pools(self, monkeypatch):
        created = []

        class RecordingExecutor(ThreadPoolExecutor):
            def __init__(self, max_workers=None):
                created.append(max_workers)
                super().__init__(max_workers=max_workers)

        monkeypatch.setattr(builder_module, "ThreadPoolExecutor", RecordingExecutor)
        return created

    def test_unbounded_workers_use_the_pool_default(
        self, pools, discount_government_block, ois_euribor_block, calculator
    ):
        blocks = [discount_government_block, ois_euribor_block]
        pooled = CurveBuilder(calculator, config=SolverConfig(max_workers=None)).build(blocks)
        sequential = CurveBuilder(calculator, config=SolverConfig(max_workers=1)).build(blocks)

        assert pools == [None]
        assert pooled.bundle.names == sequential.bundle.names
        for name in sequential.bundle:
            np.testing.assert_array_equal(
                pooled.bundle.matrix(name), sequential.bundle.matrix(name)
            )

    def test_single_worker_stays_sequential(
        self, pools, discount_government_block, ois_euribor_block, calculator
    ):
        CurveBuilder(calculator, config=SolverConfig(max_workers=1)).build(
            [discount_government_block, ois_euribor_block]
        )
        assert pools == []
