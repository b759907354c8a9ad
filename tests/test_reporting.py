from __future__ import annotations

import json

from broker_balance.reporting import COLUMNS, render_report, report_frame, report_to_json, totals_frame
from broker_balance.schemas.balance import BalanceLine, BalanceReport, CurrencyTotal


def _report() -> BalanceReport:
    return BalanceReport(
        items=[
            BalanceLine(
                figi="BBG000B9XRY4",
                ticker="AAPL",
                name="Apple",
                currency="USD",
                current_price=120.0,
                operation_amount=1000.0,
                broker_commission_amount=5.0,
                portfolio_quantity=10,
                portfolio_amount=1200.0,
                dividend_amount=10.0,
                dividend_tax_amount=1.3,
                balance_amount=203.7,
            )
        ],
        totals={
            "USD": CurrencyTotal(balance_amount=203.7, portfolio_amount=1200.0, tax_back=2.0),
            "RUB": CurrencyTotal(balance_amount=-290.0, service_commission_amount=290.0),
        },
    )


def test_report_frame_shows_net_dividends():
    frame = report_frame(_report())
    assert list(frame.columns) == COLUMNS
    row = frame.iloc[0]
    assert row["Ticker"] == "AAPL"
    assert row["Dividend"] == 8.7


def test_totals_frame_is_sorted_by_currency():
    frame = totals_frame(_report())
    assert list(frame["Currency"]) == ["RUB", "USD"]
    assert list(frame["Name"]) == ["Total", "Total"]
    assert frame.iloc[0]["Service commission"] == 290.0


def test_render_report_contains_lines_and_totals():
    text = render_report(_report())
    assert "AAPL" in text
    assert "Total" in text
    assert "203.70" in text
    assert "-290.00" in text


def test_report_to_json_round_trips_fields():
    payload = json.loads(report_to_json(_report()))
    assert payload["items"][0]["balance_amount"] == 203.7
    assert payload["totals"]["RUB"]["service_commission_amount"] == 290.0
