"""Pydantic schemas for balance requests and reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BalanceRequest(BaseModel):
    period_from: datetime
    period_to: datetime
    figi: str | None = Field(default=None, description="Restrict the report to one instrument")
    for_portfolio: bool = Field(
        default=False,
        description="Only report instruments currently held in the portfolio",
    )
    exclude_figis: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_period(self) -> "BalanceRequest":
        if self.period_to < self.period_from:
            raise ValueError("period_to must not precede period_from")
        return self


class BalanceLine(BaseModel):
    """Reconciled balance of a single instrument."""

    figi: str
    ticker: str
    name: str
    currency: str
    current_price: float = 0.0
    operation_amount: float = 0.0
    broker_commission_amount: float = 0.0
    portfolio_quantity: int = 0
    portfolio_amount: float = 0.0
    dividend_amount: float = 0.0
    dividend_tax_amount: float = 0.0
    balance_amount: float = 0.0

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "figi": "BBG000B9XRY4",
                "ticker": "AAPL",
                "name": "Apple",
                "currency": "USD",
                "current_price": 120.0,
                "operation_amount": 1000.0,
                "broker_commission_amount": 5.0,
                "portfolio_quantity": 10,
                "portfolio_amount": 1200.0,
                "dividend_amount": 0.0,
                "dividend_tax_amount": 0.0,
                "balance_amount": 195.0,
            }
        }
    )


class CurrencyTotal(BaseModel):
    balance_amount: float = 0.0
    service_commission_amount: float = 0.0
    tax_back: float = 0.0
    portfolio_amount: float = 0.0


class BalanceReport(BaseModel):
    items: list[BalanceLine] = Field(default_factory=list)
    totals: dict[str, CurrencyTotal] = Field(default_factory=dict)


__all__ = [
    "BalanceLine",
    "BalanceReport",
    "BalanceRequest",
    "CurrencyTotal",
]
