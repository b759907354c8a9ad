from __future__ import annotations

from datetime import datetime, timezone

import pytest

from broker_balance.schemas.balance import BalanceLine, BalanceRequest
from broker_balance.schemas.operations import PortfolioPosition
from broker_balance.services.operations import (
    MATCH_ALL,
    OperationCriteria,
    fetch_operations,
    filter_operations,
    group_by_instrument,
)
from conftest import make_operation


def _operations():
    return [
        make_operation("Buy", figi="AAA", payment=-100, quantity=1, op_id="1"),
        make_operation("ServiceCommission", payment=-3, op_id="2"),
        make_operation("Sell", figi="BBB", payment=50, quantity=1, op_id="3"),
        make_operation("Dividend", figi="AAA", payment=7, op_id="4"),
        make_operation("Buy", figi="CCC", payment=-10, quantity=1, status="Decline", op_id="5"),
        make_operation("TaxBack", payment=2, op_id="6"),
    ]


def _ids(operations):
    return [operation.id for operation in operations]


def test_missing_criteria_selects_nothing():
    assert filter_operations(_operations(), None) == []


def test_match_all_keeps_order():
    operations = _operations()
    assert filter_operations(operations, MATCH_ALL) == operations


def test_criteria_fields_are_combined():
    criteria = OperationCriteria(
        figis=["AAA", "BBB", "CCC"],
        status="Done",
        operation_types=["Buy", "Sell"],
    )
    assert _ids(filter_operations(_operations(), criteria)) == ["1", "3"]


def test_exclusion_drops_instrument():
    criteria = OperationCriteria(exclude_figis=["AAA"])
    assert _ids(filter_operations(_operations(), criteria)) == ["2", "3", "5", "6"]


def test_filter_result_is_subsequence():
    operations = _operations()
    selected = filter_operations(operations, OperationCriteria(operation_types=["Dividend", "Buy"]))
    positions = [operations.index(operation) for operation in selected]
    assert positions == sorted(positions)
    assert _ids(selected) == ["1", "4", "5"]


def test_group_by_instrument_skips_account_level_operations():
    grouped = group_by_instrument(_operations())
    assert set(grouped) == {"AAA", "BBB", "CCC"}
    assert _ids(grouped["AAA"]) == ["1", "4"]
    assert sum(len(group) for group in grouped.values()) == 4


class StubOperationsClient:
    def __init__(self, operations, positions=()):
        self._operations = operations
        self._positions = list(positions)
        self.calls: list[tuple] = []

    async def operations(self, period_from, period_to, figi=None, account_id=None, *, timeout=None):
        self.calls.append(("operations", figi, account_id, timeout))
        return self._operations

    async def portfolio(self, account_id=None, *, timeout=None):
        self.calls.append(("portfolio", account_id, timeout))
        return self._positions


def _request(**kwargs) -> BalanceRequest:
    return BalanceRequest(
        period_from=datetime(2024, 1, 1, tzinfo=timezone.utc),
        period_to=datetime(2024, 12, 31, tzinfo=timezone.utc),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fetch_keeps_done_operations_and_applies_exclusions(settings):
    client = StubOperationsClient(_operations())
    operations = await fetch_operations(client, _request(exclude_figis=["BBB"]), settings=settings)
    assert _ids(operations) == ["1", "2", "4", "6"]
    assert client.calls == [("operations", None, "acc-1", 20.0)]


@pytest.mark.asyncio
async def test_fetch_for_portfolio_keeps_account_level_operations(settings):
    client = StubOperationsClient(
        _operations(),
        positions=[PortfolioPosition(figi="BBB", ticker="BBB", balance=1, lots=1)],
    )
    operations = await fetch_operations(client, _request(for_portfolio=True), settings=settings)
    assert _ids(operations) == ["2", "3", "6"]
    assert client.calls[1] == ("portfolio", "acc-1", 20.0)


def test_request_rejects_inverted_period():
    with pytest.raises(ValueError):
        BalanceRequest(
            period_from=datetime(2024, 2, 1, tzinfo=timezone.utc),
            period_to=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )


def test_balance_line_schema_carries_valid_example():
    example = BalanceLine.model_json_schema()["example"]
    assert example["ticker"] == "AAPL"
    assert BalanceLine.model_validate(example).balance_amount == 195.0
