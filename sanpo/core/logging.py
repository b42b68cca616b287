"""Logging setup with pipeline run correlation."""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from typing import Iterable, Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | run_id=%(run_id)s | %(message)s"

# Upstream HTTP clients log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai")

_current_run_id: ContextVar[str] = ContextVar("sanpo_run_id", default="-")


def set_run_id(run_id: Union[int, str]) -> Token:
    return _current_run_id.set(str(run_id))


def reset_run_id(token: Token) -> None:
    _current_run_id.reset(token)


def get_run_id() -> str:
    return _current_run_id.get()


class RunIdFilter(logging.Filter):
    """Tags each record with the pipeline run it was emitted from."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()
        return True


def configure_logging(
    service_name: str,
    level: Union[int, str] = logging.INFO,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Send every record to stdout tagged with the current run id."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RunIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(service_name)
