import logging
import sys
from typing import TextIO

HANDLER_NAME = "broker_balance"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Per-request chatter from the HTTP stack drowns out per-instrument progress.
_NOISY_LOGGERS = ("httpx", "httpcore", "opentelemetry")


def setup_logging(level: str = "INFO", *, stream: TextIO | None = None) -> logging.Handler:
    """Route report logs to stdout at ``level``.

    Calling it again replaces the handler installed earlier instead of
    stacking a second one.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
