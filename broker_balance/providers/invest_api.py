"""Async client for the Tinkoff Invest OpenAPI (REST v1)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from broker_balance.config import BalanceSettings, get_settings
from broker_balance.schemas.operations import (
    Candle,
    Instrument,
    Operation,
    PortfolioPosition,
)

logger = logging.getLogger(__name__)


class InvestApiError(RuntimeError):
    """Raised when the Invest OpenAPI call fails or returns an error payload."""


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class InvestApiClient:
    """Thin wrapper over one shared ``httpx.AsyncClient``.

    The underlying client is safe for concurrent requests, so one instance can
    serve every per-instrument task of a balance computation.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        settings: BalanceSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._token = token if token is not None else self._settings.invest_api_token
        self._base_url = (base_url or self._settings.invest_api_url).rstrip("/")
        self._client = client or httpx.AsyncClient()

    async def __aenter__(self) -> "InvestApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any], timeout: float) -> Any:
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._client.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise InvestApiError(f"Invest API request {path} timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            raise InvestApiError(f"Failed to reach Invest API: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Invest API error %s for %s", response.status_code, path)
            detail: Any
            try:
                payload = response.json()
            except ValueError:
                detail = response.text
            else:
                detail = payload.get("payload", payload) if isinstance(payload, dict) else payload
            raise InvestApiError(f"Invest API error {response.status_code}: {detail}")

        try:
            body = response.json()
        except ValueError as exc:
            raise InvestApiError("Invest API returned invalid JSON payload") from exc

        if not isinstance(body, dict) or body.get("status") != "Ok":
            detail = body.get("payload", body) if isinstance(body, dict) else body
            raise InvestApiError(f"Invest API request {path} failed: {detail}")
        return body.get("payload") or {}

    async def operations(
        self,
        period_from: datetime,
        period_to: datetime,
        figi: str | None = None,
        account_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Operation]:
        params: dict[str, Any] = {"from": _format_time(period_from), "to": _format_time(period_to)}
        if figi:
            params["figi"] = figi
        account = account_id or self._settings.invest_account_id
        if account:
            params["brokerAccountId"] = account
        payload = await self._get(
            "/operations",
            params,
            timeout or self._settings.operations_timeout_seconds,
        )
        return [Operation.model_validate(item) for item in payload.get("operations", [])]

    async def portfolio(
        self,
        account_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[PortfolioPosition]:
        params: dict[str, Any] = {}
        account = account_id or self._settings.invest_account_id
        if account:
            params["brokerAccountId"] = account
        payload = await self._get(
            "/portfolio",
            params,
            timeout or self._settings.portfolio_timeout_seconds,
        )
        return [PortfolioPosition.model_validate(item) for item in payload.get("positions", [])]

    async def candles(
        self,
        period_from: datetime,
        period_to: datetime,
        interval: str,
        figi: str,
        *,
        timeout: float | None = None,
    ) -> list[Candle]:
        params = {
            "figi": figi,
            "from": _format_time(period_from),
            "to": _format_time(period_to),
            "interval": str(getattr(interval, "value", interval)),
        }
        payload = await self._get(
            "/market/candles",
            params,
            timeout or self._settings.candles_timeout_seconds,
        )
        return [Candle.model_validate(item) for item in payload.get("candles", [])]

    async def search_by_figi(self, figi: str, *, timeout: float | None = None) -> Instrument:
        payload = await self._get(
            "/market/search/by-figi",
            {"figi": figi},
            timeout or self._settings.instrument_timeout_seconds,
        )
        if not payload:
            raise InvestApiError(f"Instrument {figi} not found")
        return Instrument.model_validate(payload)


def build_client(settings: BalanceSettings | None = None, *, sandbox: bool = False) -> InvestApiClient:
    """Create a client pointed at the production or sandbox API."""

    settings = settings or get_settings()
    base_url = settings.invest_sandbox_url if sandbox else settings.invest_api_url
    return InvestApiClient(base_url=base_url, settings=settings)


__all__ = ["InvestApiClient", "InvestApiError", "build_client"]
