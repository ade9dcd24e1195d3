"""
Structured logging for the chart query core.

Every module logs through ``get_logger``; one stdout handler per logger,
level from settings.  Warehouse credentials must never reach a log line, so
the handler masks service-account key fields before formatting.
"""
from __future__ import annotations

import logging
import re
import sys

from src.core.config import get_settings

_SECRET_RE = re.compile(
    r"""(["']?(?:private_key|private_key_id|client_secret)["']?\s*[:=]\s*)(["'])(?:(?!\2).)*\2""",
    re.DOTALL,
)


class RedactSecretsFilter(logging.Filter):
    """Replace service-account key values with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _SECRET_RE.search(message):
            record.msg = _SECRET_RE.sub(r"\1\2***\2", message)
            record.args = None
        return True


def get_logger(name: str) -> logging.Logger:
    settings = get_settings()
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        fmt = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(fmt)
        handler.addFilter(RedactSecretsFilter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger
