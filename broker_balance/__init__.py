"""Per-instrument and per-currency balance report for a brokerage account."""

from .schemas.balance import BalanceLine, BalanceReport, BalanceRequest, CurrencyTotal
from .services.balance import get_portfolio_balance

__all__ = [
    "BalanceLine",
    "BalanceReport",
    "BalanceRequest",
    "CurrencyTotal",
    "get_portfolio_balance",
]
