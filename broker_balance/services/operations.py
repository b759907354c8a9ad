"""Operation selection and grouping helpers.

Filtering and grouping are pure functions over already fetched operations.
``fetch_operations`` is the only helper here that talks to the broker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol, Sequence

from broker_balance.config import BalanceSettings, get_settings
from broker_balance.schemas.balance import BalanceRequest
from broker_balance.schemas.operations import (
    Candle,
    Instrument,
    Operation,
    OperationStatus,
    PortfolioPosition,
)

logger = logging.getLogger(__name__)


class BrokerClient(Protocol):
    """Broker capabilities the balance pipeline depends on."""

    async def operations(
        self,
        period_from: datetime,
        period_to: datetime,
        figi: str | None = None,
        account_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Operation]:
        ...

    async def portfolio(
        self,
        account_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[PortfolioPosition]:
        ...

    async def candles(
        self,
        period_from: datetime,
        period_to: datetime,
        interval: str,
        figi: str,
        *,
        timeout: float | None = None,
    ) -> list[Candle]:
        ...

    async def search_by_figi(self, figi: str, *, timeout: float | None = None) -> Instrument:
        ...


@dataclass(frozen=True)
class OperationCriteria:
    """Conjunction of operation filters; an empty field matches everything."""

    figis: Sequence[str] = ()
    status: str | None = None
    operation_types: Sequence[str] = ()
    exclude_figis: Sequence[str] = ()

    def matches(self, operation: Operation) -> bool:
        if self.figis and operation.figi not in self.figis:
            return False
        if self.status and operation.status != self.status:
            return False
        if self.operation_types and operation.operation_type not in self.operation_types:
            return False
        if self.exclude_figis and operation.figi in self.exclude_figis:
            return False
        return True


MATCH_ALL = OperationCriteria()


def filter_operations(
    operations: Iterable[Operation],
    criteria: OperationCriteria | None,
) -> list[Operation]:
    """Return operations matching ``criteria`` in their original order.

    A missing criteria selects nothing; pass ``MATCH_ALL`` to keep everything.
    """

    if criteria is None:
        return []
    return [operation for operation in operations if criteria.matches(operation)]


def group_by_instrument(operations: Iterable[Operation]) -> dict[str, list[Operation]]:
    grouped: dict[str, list[Operation]] = {}
    for operation in operations:
        if not operation.figi:
            continue
        grouped.setdefault(operation.figi, []).append(operation)
    return grouped


async def fetch_operations(
    client: BrokerClient,
    request: BalanceRequest,
    *,
    settings: BalanceSettings | None = None,
) -> list[Operation]:
    """Fetch completed operations for the requested period and scope."""

    settings = settings or get_settings()
    operations = await client.operations(
        request.period_from,
        request.period_to,
        request.figi,
        settings.invest_account_id,
        timeout=settings.operations_timeout_seconds,
    )
    logger.info(
        "Fetched %d operations between %s and %s",
        len(operations),
        request.period_from.isoformat(),
        request.period_to.isoformat(),
    )

    figis: list[str] = []
    if request.for_portfolio:
        positions = await client.portfolio(
            settings.invest_account_id,
            timeout=settings.portfolio_timeout_seconds,
        )
        # Keep account-level operations (empty figi) alongside held instruments.
        figis = [""] + [position.figi for position in positions]
        logger.info("Restricting report to %d portfolio positions", len(positions))

    criteria = OperationCriteria(
        figis=figis,
        status=OperationStatus.DONE.value,
        exclude_figis=list(request.exclude_figis),
    )
    return filter_operations(operations, criteria)


__all__ = [
    "BrokerClient",
    "MATCH_ALL",
    "OperationCriteria",
    "fetch_operations",
    "filter_operations",
    "group_by_instrument",
]
