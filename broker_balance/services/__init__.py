"""Balance computation services."""

from .balance import (
    AggregationTimeoutError,
    aggregate_balance_lines,
    build_balance_line,
    get_portfolio_balance,
    roll_up_totals,
    round_money,
)
from .operations import MATCH_ALL, OperationCriteria, filter_operations, group_by_instrument
from .pricing import PriceUnavailableError, resolve_current_price

__all__ = [
    "AggregationTimeoutError",
    "MATCH_ALL",
    "OperationCriteria",
    "PriceUnavailableError",
    "aggregate_balance_lines",
    "build_balance_line",
    "filter_operations",
    "get_portfolio_balance",
    "group_by_instrument",
    "resolve_current_price",
    "roll_up_totals",
    "round_money",
]
