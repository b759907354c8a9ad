"""Application configuration and environment helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api-invest.tinkoff.ru/openapi"
DEFAULT_SANDBOX_URL = "https://api-invest.tinkoff.ru/openapi/sandbox"
DEFAULT_SEED_CURRENCIES = ("RUB", "USD", "EUR")


class BalanceSettings(BaseSettings):
    """Configuration options for the balance report."""

    app_name: str = Field(default="Broker Balance Report")

    invest_api_token: str = Field(default="", description="OpenAPI bearer token.")
    invest_api_url: str = Field(default=DEFAULT_API_URL)
    invest_sandbox_url: str = Field(default=DEFAULT_SANDBOX_URL)
    invest_account_id: str | None = Field(
        default=None,
        description="Broker account id; the default account is used when empty.",
    )

    operations_timeout_seconds: float = Field(default=20.0, gt=0)
    portfolio_timeout_seconds: float = Field(default=20.0, gt=0)
    candles_timeout_seconds: float = Field(default=10.0, gt=0)
    instrument_timeout_seconds: float = Field(default=5.0, gt=0)
    aggregation_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Deadline for collecting every per-instrument balance line.",
    )

    seed_currencies: tuple[str, ...] = Field(
        default=DEFAULT_SEED_CURRENCIES,
        description="Currencies always present in the totals, even without activity.",
    )

    log_level: str = Field(default="INFO")

    telemetry_enabled: bool = Field(default=False)
    telemetry_service_name: str = Field(default="broker-balance")
    telemetry_otlp_endpoint: str | None = Field(default=None)
    telemetry_otlp_insecure: bool = Field(default=True)
    telemetry_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    def dict_for_logging(self) -> dict[str, Any]:
        """Return a sanitized dict for logging purposes."""

        hidden = {"invest_api_token"}
        return {k: ("***" if k in hidden else v) for k, v in self.model_dump().items()}


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> BalanceSettings:
    """Return cached application settings with optional overrides."""

    if overrides:
        return BalanceSettings(**overrides)
    return BalanceSettings()


__all__ = [
    "BalanceSettings",
    "DEFAULT_API_URL",
    "DEFAULT_SANDBOX_URL",
    "DEFAULT_SEED_CURRENCIES",
    "get_settings",
]
