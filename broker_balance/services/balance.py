"""Balance report computation.

Each instrument's operations are reconciled against its current price in a
separate task; the resulting lines are rolled up per currency together with
account-level adjustments (service commission and tax refunds).
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Iterable, Mapping, Sequence

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from broker_balance.config import BalanceSettings, get_settings
from broker_balance.schemas.balance import (
    BalanceLine,
    BalanceReport,
    BalanceRequest,
    CurrencyTotal,
)
from broker_balance.schemas.operations import Operation, OperationType
from broker_balance.services.operations import (
    BrokerClient,
    OperationCriteria,
    fetch_operations,
    filter_operations,
    group_by_instrument,
)
from broker_balance.services.pricing import (
    DEFAULT_CANDLE_WINDOWS,
    CandleWindow,
    resolve_current_price,
)

logger = logging.getLogger(__name__)

TRADE_TYPES = (OperationType.BUY.value, OperationType.BUY_CARD.value, OperationType.SELL.value)


class AggregationTimeoutError(TimeoutError):
    """Raised when balance lines are not collected before the deadline."""


def round_money(value: float) -> float:
    """Round to cents, halves away from zero."""

    rounded = math.floor(abs(value) * 100 + 0.5) / 100
    return math.copysign(rounded, value) + 0.0


async def build_balance_line(
    client: BrokerClient,
    figi: str,
    operations: Sequence[Operation],
    *,
    settings: BalanceSettings | None = None,
    windows: Sequence[CandleWindow] = DEFAULT_CANDLE_WINDOWS,
) -> BalanceLine:
    """Reconcile one instrument's operations with its current market value."""

    settings = settings or get_settings()
    figi_operations = filter_operations(operations, OperationCriteria(figis=[figi]))

    current_price = await resolve_current_price(
        client,
        figi,
        windows=windows,
        timeout=settings.candles_timeout_seconds,
    )
    instrument = await client.search_by_figi(figi, timeout=settings.instrument_timeout_seconds)

    operation_amount = 0.0
    commission_amount = 0.0
    quantity = 0
    for operation in filter_operations(figi_operations, OperationCriteria(operation_types=TRADE_TYPES)):
        sign = -1 if operation.operation_type == OperationType.SELL.value else 1
        if operation.commission is not None:
            commission_amount += abs(operation.commission.value)
        operation_amount += sign * abs(operation.payment)
        quantity += sign * operation.quantity

    if quantity < 0:
        logger.warning(
            "Net quantity for %s is %d; operation history is incomplete, reporting 0",
            figi,
            quantity,
        )
        quantity = 0

    dividends = filter_operations(
        figi_operations, OperationCriteria(operation_types=[OperationType.DIVIDEND.value])
    )
    dividend_taxes = filter_operations(
        figi_operations, OperationCriteria(operation_types=[OperationType.TAX_DIVIDEND.value])
    )
    dividend_amount = sum(abs(operation.payment) for operation in dividends)
    dividend_tax_amount = sum(abs(operation.payment) for operation in dividend_taxes)

    portfolio_amount = round_money(quantity * current_price)
    operation_amount = round_money(operation_amount)
    commission_amount = round_money(commission_amount)
    dividend_amount = round_money(dividend_amount)
    dividend_tax_amount = round_money(dividend_tax_amount)

    return BalanceLine(
        figi=instrument.figi or figi,
        ticker=instrument.ticker,
        name=instrument.name,
        currency=instrument.currency,
        current_price=current_price,
        operation_amount=operation_amount,
        broker_commission_amount=commission_amount,
        portfolio_quantity=quantity,
        portfolio_amount=portfolio_amount,
        dividend_amount=dividend_amount,
        dividend_tax_amount=dividend_tax_amount,
        balance_amount=round_money(
            portfolio_amount
            + dividend_amount
            - dividend_tax_amount
            - operation_amount
            - commission_amount
        ),
    )


async def _traced_build(
    client: BrokerClient,
    figi: str,
    operations: Sequence[Operation],
    settings: BalanceSettings,
    tracer: trace.Tracer,
) -> BalanceLine:
    with tracer.start_as_current_span(
        "balance_line",
        attributes={"figi": figi, "operations": len(operations)},
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            line = await build_balance_line(client, figi, operations, settings=settings)
        except asyncio.CancelledError:
            span.set_attribute("abandoned", True)
            raise
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}"))
            raise
        span.set_attributes(
            {
                "ticker": line.ticker,
                "currency": line.currency,
                "portfolio_quantity": line.portfolio_quantity,
                "balance_amount": line.balance_amount,
            }
        )
        return line


async def aggregate_balance_lines(
    client: BrokerClient,
    grouped: Mapping[str, Sequence[Operation]],
    *,
    settings: BalanceSettings | None = None,
    timeout: float | None = None,
    tracer: trace.Tracer | None = None,
) -> list[BalanceLine]:
    """Build every instrument's line concurrently, in completion order.

    The first failure or the expiry of the shared deadline aborts the whole
    aggregation. Unfinished tasks are cancelled and abandoned without waiting
    for them, and nothing partial is returned.
    """

    settings = settings or get_settings()
    tracer = tracer or trace.get_tracer(__name__)
    budget = timeout if timeout is not None else settings.aggregation_timeout_seconds
    loop = asyncio.get_running_loop()
    deadline = loop.time() + budget

    pending = {
        asyncio.create_task(
            _traced_build(client, figi, operations, settings, tracer), name=f"balance-{figi}"
        )
        for figi, operations in grouped.items()
    }
    logger.info("Computing balance for %d instruments", len(pending))

    lines: list[BalanceLine] = []
    try:
        while pending:
            remaining = deadline - loop.time()
            done: set[asyncio.Task[BalanceLine]] = set()
            if remaining > 0:
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
            if not done:
                raise AggregationTimeoutError(
                    f"Timeout error: {len(pending)} instruments not reported within {budget}s"
                )
            errors = [task.exception() for task in done]
            for error in errors:
                if error is not None:
                    raise error
            lines.extend(task.result() for task in done)
    finally:
        for task in pending:
            task.cancel()
    return lines


def roll_up_totals(
    lines: Iterable[BalanceLine],
    operations: Iterable[Operation],
    currencies: Iterable[str],
) -> dict[str, CurrencyTotal]:
    totals = {currency: CurrencyTotal() for currency in currencies}

    def total_for(currency: str) -> CurrencyTotal:
        if currency not in totals:
            logger.info("Adding totals for unseeded currency %s", currency)
            totals[currency] = CurrencyTotal()
        return totals[currency]

    for line in lines:
        total = total_for(line.currency)
        total.balance_amount += line.balance_amount
        total.portfolio_amount += line.portfolio_amount

    operations = list(operations)
    service_commissions = filter_operations(
        operations, OperationCriteria(operation_types=[OperationType.SERVICE_COMMISSION.value])
    )
    for operation in service_commissions:
        total = total_for(operation.currency)
        total.service_commission_amount += abs(operation.payment)
        total.balance_amount -= abs(operation.payment)

    tax_backs = filter_operations(
        operations, OperationCriteria(operation_types=[OperationType.TAX_BACK.value])
    )
    for operation in tax_backs:
        total = total_for(operation.currency)
        total.tax_back += abs(operation.payment)
        total.balance_amount += abs(operation.payment)

    for total in totals.values():
        total.balance_amount = round_money(total.balance_amount)
        total.service_commission_amount = round_money(total.service_commission_amount)
        total.tax_back = round_money(total.tax_back)
        total.portfolio_amount = round_money(total.portfolio_amount)
    return totals


async def get_portfolio_balance(
    client: BrokerClient,
    request: BalanceRequest,
    *,
    settings: BalanceSettings | None = None,
    tracer: trace.Tracer | None = None,
) -> BalanceReport:
    """Fetch operations and produce the balance report for ``request``."""

    settings = settings or get_settings()
    operations = await fetch_operations(client, request, settings=settings)
    grouped = group_by_instrument(operations)
    lines = await aggregate_balance_lines(client, grouped, settings=settings, tracer=tracer)
    totals = roll_up_totals(lines, operations, settings.seed_currencies)
    logger.info("Balance report ready: %d instruments, %d currencies", len(lines), len(totals))
    return BalanceReport(items=lines, totals=totals)


__all__ = [
    "AggregationTimeoutError",
    "aggregate_balance_lines",
    "build_balance_line",
    "get_portfolio_balance",
    "roll_up_totals",
    "round_money",
]
