"""Shared market set-ups for the calibration tests."""

from datetime import date

import pytest

from multicurve.calibration import (
    CurveBlock,
    InterpolatedCurveTemplate,
    SolverConfig,
    make_unit,
)
from multicurve.instruments import (
    OVERNIGHT_DEPOSIT,
    BillInstrument,
    DepositConvention,
    DepositInstrument,
    SwapInstrument,
)
from multicurve.conventions import ACT_360, BusinessDayAdjustment
from multicurve.valuation import ParRateCalculator

CURVE_DATE = date(2024, 1, 2)

DISCOUNT = "EUR-DSC"
GOVERNMENT = "EUR-GOVT"
OIS = "EUR-OIS"
EURIBOR6M = "EUR-EURIBOR-6M"

DISCOUNT_TENORS = ["ON", "1W", "1M", "2M", "3M", "6M", "9M", "1Y", "2Y", "3Y", "5Y", "10Y"]
BILL_TENORS = ["3M", "6M", "1Y"]
BILL_YIELDS = [0.0015, 0.0020, 0.0015]

OIS_RATES = {
    "ON": 0.0390, "1W": 0.0391, "1M": 0.0392, "2M": 0.0393, "3M": 0.0392,
    "6M": 0.0385, "9M": 0.0375, "1Y": 0.0365, "2Y": 0.0330, "3Y": 0.0310,
    "5Y": 0.0290, "10Y": 0.0280,
}
EURIBOR6M_SWAPS = {
    "1Y": 0.0385, "2Y": 0.0352, "3Y": 0.0331, "5Y": 0.0311, "7Y": 0.0305, "10Y": 0.0302,
}

SPOT_DEPOSIT = DepositConvention(
    day_count=ACT_360,
    settlement_lag_days=0,
    business_day_adjustment=BusinessDayAdjustment.MODIFIED_FOLLOWING,
)


def discount_deposits(rates=None, curve_name=DISCOUNT):
    rates = rates or {tenor: 0.04 for tenor in DISCOUNT_TENORS}
    return [
        DepositInstrument.from_tenor(CURVE_DATE, tenor, rate, curve_name, SPOT_DEPOSIT)
        for tenor, rate in rates.items()
    ]


def government_instruments():
    overnight = DepositInstrument.from_tenor(
        CURVE_DATE, "ON", 0.0010, GOVERNMENT, OVERNIGHT_DEPOSIT
    )
    bills = [
        BillInstrument.from_tenor(CURVE_DATE, tenor, rate, GOVERNMENT)
        for tenor, rate in zip(BILL_TENORS, BILL_YIELDS)
    ]
    return [overnight] + bills


def euribor_instruments(rates=None):
    rates = rates or EURIBOR6M_SWAPS
    deposit = DepositInstrument.from_tenor(CURVE_DATE, "6M", 0.0392, EURIBOR6M)
    swaps = [
        SwapInstrument.from_tenor(CURVE_DATE, tenor, rate, OIS, EURIBOR6M)
        for tenor, rate in rates.items()
    ]
    return [deposit] + swaps


def template(name, method="LOGLINEAR_ZERO"):
    return InterpolatedCurveTemplate(name, CURVE_DATE, interpolation_method=method)


@pytest.fixture
def tight_config():
    return SolverConfig(absolute_tolerance=1e-12, step_tolerance=1e-14)


@pytest.fixture
def calculator():
    return ParRateCalculator()


@pytest.fixture
def discount_government_block():
    """One block: 12 discount deposits, then an ON deposit and three bills."""
    return CurveBlock(
        (
            make_unit((DISCOUNT, template(DISCOUNT), discount_deposits())),
            make_unit((GOVERNMENT, template(GOVERNMENT), government_instruments())),
        )
    )


@pytest.fixture
def ois_euribor_block():
    """OIS from deposits, then a 6M forward curve from swaps discounted on OIS."""
    return CurveBlock(
        (
            make_unit((OIS, template(OIS), discount_deposits(OIS_RATES, OIS))),
            make_unit((EURIBOR6M, template(EURIBOR6M), euribor_instruments())),
        )
    )
