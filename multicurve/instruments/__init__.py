"""
Calibration instruments: deposits, bills and swaps.
"""

from .base import AccrualPeriod, CalibrationInstrument
from .bill import EUR_BILL, BillConvention, BillInstrument
from .deposit import EUR_DEPOSIT, OVERNIGHT_DEPOSIT, DepositConvention, DepositInstrument
from .swap import EUR_SWAP_3M, EUR_SWAP_6M, SwapConvention, SwapInstrument

__all__ = [
    # Interface
    "CalibrationInstrument",
    "AccrualPeriod",
    # Deposits
    "DepositInstrument",
    "DepositConvention",
    "EUR_DEPOSIT",
    "OVERNIGHT_DEPOSIT",
    # Bills
    "BillInstrument",
    "BillConvention",
    "EUR_BILL",
    # Swaps
    "SwapInstrument",
    "SwapConvention",
    "EUR_SWAP_3M",
    "EUR_SWAP_6M",
]
