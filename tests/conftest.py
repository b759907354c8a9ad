import asyncio
import inspect
import pathlib
import sys
from datetime import datetime, timezone

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from broker_balance.config import BalanceSettings  # noqa: E402
from broker_balance.schemas.operations import Candle, MoneyAmount, Operation  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        funcargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            loop.run_until_complete(test_function(**funcargs))
        finally:
            # Abandoned tasks are torn down the way asyncio.run does it.
            leftovers = asyncio.all_tasks(loop)
            for task in leftovers:
                task.cancel()
            if leftovers:
                loop.run_until_complete(asyncio.gather(*leftovers, return_exceptions=True))
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture
def settings() -> BalanceSettings:
    return BalanceSettings(
        invest_api_token="test-token",
        invest_api_url="https://invest.test/openapi",
        invest_account_id="acc-1",
    )


def make_operation(
    operation_type: str,
    *,
    figi: str = "",
    payment: float = 0.0,
    commission: float | None = None,
    quantity: int = 0,
    currency: str = "USD",
    status: str = "Done",
    op_id: str = "op",
) -> Operation:
    return Operation(
        id=op_id,
        status=status,
        operation_type=operation_type,
        currency=currency,
        payment=payment,
        commission=MoneyAmount(currency=currency, value=commission) if commission is not None else None,
        quantity=quantity,
        figi=figi,
        date=datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
    )


def make_candle(figi: str, close: float, time: datetime, interval: str = "1min") -> Candle:
    return Candle.model_validate(
        {"figi": figi, "interval": interval, "time": time, "o": close, "c": close, "h": close, "l": close, "v": 1}
    )
