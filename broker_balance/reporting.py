"""Tabular rendering of balance reports."""

from __future__ import annotations

import pandas as pd

from broker_balance.schemas.balance import BalanceReport
from broker_balance.services.balance import round_money

COLUMNS = [
    "FIGI",
    "Ticker",
    "Name",
    "Currency",
    "Balance",
    "Commission",
    "Portfolio",
    "Dividend",
    "Service commission",
    "Tax back",
]


def report_frame(report: BalanceReport) -> pd.DataFrame:
    """One row per instrument; dividends are shown net of withheld tax."""

    rows = [
        {
            "FIGI": line.figi,
            "Ticker": line.ticker,
            "Name": line.name,
            "Currency": line.currency,
            "Balance": line.balance_amount,
            "Commission": line.broker_commission_amount,
            "Portfolio": line.portfolio_amount,
            "Dividend": round_money(line.dividend_amount - line.dividend_tax_amount),
            "Service commission": None,
            "Tax back": None,
        }
        for line in report.items
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def totals_frame(report: BalanceReport) -> pd.DataFrame:
    rows = [
        {
            "FIGI": "",
            "Ticker": "",
            "Name": "Total",
            "Currency": currency,
            "Balance": total.balance_amount,
            "Commission": None,
            "Portfolio": total.portfolio_amount,
            "Dividend": None,
            "Service commission": total.service_commission_amount,
            "Tax back": total.tax_back,
        }
        for currency, total in sorted(report.totals.items())
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def render_report(report: BalanceReport) -> str:
    frame = pd.concat([report_frame(report), totals_frame(report)], ignore_index=True)
    return frame.to_string(index=False, na_rep="", float_format=lambda value: f"{value:.2f}")


def report_to_json(report: BalanceReport) -> str:
    return report.model_dump_json(indent=2)


__all__ = ["COLUMNS", "render_report", "report_frame", "report_to_json", "totals_frame"]
