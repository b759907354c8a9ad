"""CLI wrapper for the balance report."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone

from opentelemetry import trace

from broker_balance.config import BalanceSettings, get_settings
from broker_balance.core.logging import setup_logging
from broker_balance.core.telemetry import report_tracer, setup_telemetry, shutdown_telemetry
from broker_balance.providers.invest_api import build_client
from broker_balance.reporting import render_report, report_to_json
from broker_balance.schemas.balance import BalanceRequest
from broker_balance.services.balance import get_portfolio_balance

logger = logging.getLogger("broker_balance.cli")

DEFAULT_LOOKBACK_DAYS = 365


def _parse_datetime(raw: str) -> datetime:
    # fromisoformat only accepts a trailing "Z" from Python 3.11 on.
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Balance report for a brokerage account")
    parser.add_argument("--from", dest="period_from", type=_parse_datetime, default=None)
    parser.add_argument("--to", dest="period_to", type=_parse_datetime, default=None)
    parser.add_argument("--figi", default=None, help="Only report this instrument")
    parser.add_argument(
        "--portfolio",
        action="store_true",
        help="Only report instruments currently held in the portfolio",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="FIGI",
        help="Instrument to leave out; may be repeated",
    )
    parser.add_argument("--format", choices=("table", "json"), default="table")
    parser.add_argument("--sandbox", action="store_true", help="Use the sandbox API")
    return parser


def build_request(args: argparse.Namespace) -> BalanceRequest:
    period_to = args.period_to or datetime.now(timezone.utc)
    period_from = args.period_from or period_to - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    return BalanceRequest(
        period_from=period_from,
        period_to=period_to,
        figi=args.figi,
        for_portfolio=args.portfolio,
        exclude_figis=args.exclude,
    )


async def _run(args: argparse.Namespace, settings: BalanceSettings, tracer: trace.Tracer) -> str:
    request = build_request(args)
    async with build_client(settings, sandbox=args.sandbox) as client:
        report = await get_portfolio_balance(client, request, settings=settings, tracer=tracer)
    if args.format == "json":
        return report_to_json(report)
    return render_report(report)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)
    provider = setup_telemetry(settings)
    logger.debug("Settings: %s", settings.dict_for_logging())
    try:
        output = asyncio.run(_run(args, settings, report_tracer(provider)))
    except Exception:
        logger.exception("Balance report failed")
        return 1
    finally:
        shutdown_telemetry(provider)
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
