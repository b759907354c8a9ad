from __future__ import annotations

import io
import logging

import pytest

from broker_balance.core.logging import HANDLER_NAME, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_level_from_settings_is_applied(root_logger):
    setup_logging("debug", stream=io.StringIO())
    assert root_logger.level == logging.DEBUG

    setup_logging("WARNING", stream=io.StringIO())
    assert root_logger.level == logging.WARNING


def test_repeated_setup_keeps_one_handler(root_logger):
    setup_logging("INFO", stream=io.StringIO())
    stream = io.StringIO()
    setup_logging("INFO", stream=stream)

    ours = [handler for handler in root_logger.handlers if handler.get_name() == HANDLER_NAME]
    assert len(ours) == 1

    logging.getLogger("broker_balance.services.balance").info("Computing balance for %d instruments", 3)
    assert " - broker_balance.services.balance - INFO - Computing balance for 3 instruments" in stream.getvalue()


def test_http_client_chatter_is_quieted(root_logger):
    stream = io.StringIO()
    setup_logging("DEBUG", stream=stream)
    logging.getLogger("httpx").info("HTTP Request: GET /market/candles")
    assert logging.getLogger("httpcore").level == logging.WARNING
    assert "HTTP Request" not in stream.getvalue()


def test_unknown_level_is_rejected(root_logger):
    with pytest.raises(ValueError):
        setup_logging("chatty", stream=io.StringIO())
