"""Schema exports for the balance report."""

from .balance import BalanceLine, BalanceReport, BalanceRequest, CurrencyTotal
from .operations import (
    Candle,
    CandleInterval,
    Instrument,
    MoneyAmount,
    Operation,
    OperationStatus,
    OperationType,
    PortfolioPosition,
)

__all__ = [
    "BalanceLine",
    "BalanceReport",
    "BalanceRequest",
    "Candle",
    "CandleInterval",
    "CurrencyTotal",
    "Instrument",
    "MoneyAmount",
    "Operation",
    "OperationStatus",
    "OperationType",
    "PortfolioPosition",
]
