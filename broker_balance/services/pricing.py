"""Current price lookup from recent candles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

from broker_balance.schemas.operations import Candle, CandleInterval
from broker_balance.services.operations import BrokerClient

logger = logging.getLogger(__name__)


class PriceUnavailableError(RuntimeError):
    """Raised when no candle window yields a usable close price."""


@dataclass(frozen=True)
class CandleWindow:
    interval: str
    lookback: timedelta
    truncate: timedelta

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        """Return ``(from, to)`` with ``to`` truncated to the window's step."""

        step = self.truncate.total_seconds()
        epoch = datetime(1970, 1, 1, tzinfo=now.tzinfo)
        elapsed = (now - epoch).total_seconds()
        period_to = epoch + timedelta(seconds=elapsed - elapsed % step)
        return period_to - self.lookback, period_to


# Finest first: illiquid instruments fall through to the wider windows.
DEFAULT_CANDLE_WINDOWS: tuple[CandleWindow, ...] = (
    CandleWindow(CandleInterval.MIN_1.value, timedelta(minutes=60), timedelta(minutes=1)),
    CandleWindow(CandleInterval.HOUR.value, timedelta(hours=24), timedelta(hours=1)),
    CandleWindow(CandleInterval.DAY.value, timedelta(days=7), timedelta(hours=1)),
)


def latest_candle(candles: Sequence[Candle]) -> Candle | None:
    ordered = sorted(candles, key=lambda candle: candle.time, reverse=True)
    return ordered[0] if ordered else None


async def resolve_current_price(
    client: BrokerClient,
    figi: str,
    *,
    windows: Sequence[CandleWindow] = DEFAULT_CANDLE_WINDOWS,
    now: datetime | None = None,
    timeout: float | None = None,
) -> float:
    """Return the latest non-zero close price for ``figi``.

    Windows are tried in order and only an empty or zero-priced result moves on
    to the next one; a failed fetch propagates immediately.
    """

    now = now or datetime.now(timezone.utc)
    tried: list[str] = []
    for window in windows:
        period_from, period_to = window.bounds(now)
        tried.append(f"{window.interval} {period_from.isoformat()}..{period_to.isoformat()}")
        candles = await client.candles(
            period_from,
            period_to,
            window.interval,
            figi,
            timeout=timeout,
        )
        candle = latest_candle(candles)
        if candle is not None and candle.close != 0.0:
            return candle.close
        logger.debug("No usable %s candles for %s, widening window", window.interval, figi)

    raise PriceUnavailableError(
        f"Current price cannot be determined for FIGI {figi}; "
        f"no candles available for {', '.join(tried)}"
    )


__all__ = [
    "CandleWindow",
    "DEFAULT_CANDLE_WINDOWS",
    "PriceUnavailableError",
    "latest_candle",
    "resolve_current_price",
]
