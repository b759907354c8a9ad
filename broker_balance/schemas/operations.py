"""Pydantic schemas for payloads returned by the Invest OpenAPI."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OperationType(str, Enum):
    BUY = "Buy"
    BUY_CARD = "BuyCard"
    SELL = "Sell"
    BROKER_COMMISSION = "BrokerCommission"
    EXCHANGE_COMMISSION = "ExchangeCommission"
    SERVICE_COMMISSION = "ServiceCommission"
    MARGIN_COMMISSION = "MarginCommission"
    OTHER_COMMISSION = "OtherCommission"
    PAY_IN = "PayIn"
    PAY_OUT = "PayOut"
    TAX = "Tax"
    TAX_LUCRE = "TaxLucre"
    TAX_DIVIDEND = "TaxDividend"
    TAX_COUPON = "TaxCoupon"
    TAX_BACK = "TaxBack"
    REPAYMENT = "Repayment"
    PART_REPAYMENT = "PartRepayment"
    COUPON = "Coupon"
    DIVIDEND = "Dividend"
    SECURITY_IN = "SecurityIn"
    SECURITY_OUT = "SecurityOut"


class OperationStatus(str, Enum):
    DONE = "Done"
    DECLINE = "Decline"
    PROGRESS = "Progress"


class CandleInterval(str, Enum):
    MIN_1 = "1min"
    MIN_5 = "5min"
    MIN_15 = "15min"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class _BrokerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class MoneyAmount(_BrokerModel):
    currency: str
    value: float


class Operation(_BrokerModel):
    """A single ledger event against the brokerage account."""

    id: str
    status: str
    operation_type: str = Field(..., alias="operationType")
    currency: str
    payment: float = 0.0
    commission: MoneyAmount | None = None
    quantity: int = 0
    price: float | None = None
    figi: str = ""
    instrument_type: str | None = Field(default=None, alias="instrumentType")
    date: datetime

    @field_validator("figi", mode="before")
    @classmethod
    def _blank_figi(cls, value: str | None) -> str:
        # Account-level operations come without an instrument.
        return value or ""


class Candle(_BrokerModel):
    figi: str
    interval: str
    time: datetime
    open: float = Field(..., alias="o")
    close: float = Field(..., alias="c")
    high: float = Field(..., alias="h")
    low: float = Field(..., alias="l")
    volume: float = Field(default=0.0, alias="v")


class Instrument(_BrokerModel):
    figi: str
    ticker: str
    name: str
    currency: str
    isin: str | None = None
    lot: int = 1
    type: str | None = None


class PortfolioPosition(_BrokerModel):
    figi: str
    ticker: str | None = None
    name: str | None = None
    balance: float = 0.0
    lots: int = 0
    instrument_type: str | None = Field(default=None, alias="instrumentType")


__all__ = [
    "Candle",
    "CandleInterval",
    "Instrument",
    "MoneyAmount",
    "Operation",
    "OperationStatus",
    "OperationType",
    "PortfolioPosition",
]
