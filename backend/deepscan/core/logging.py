"""
Structured logging for the DeepScan API process and the Celery workers.

Every line carries ``action`` and ``target`` fields so scan progress can be
grepped per request or per domain::

    2026-01-01T12:00:00+0000 | INFO     | deepscan.engine.coordinator | action=scan_start | target=https://acme.io | Deep scan started

Usage::

    from deepscan.core.logging import configure_logging, get_logger

    configure_logging()                # once per process
    logger = get_logger(__name__)
    logger.info("scan started", extra={"action": "scan_start", "target": "example.com"})
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from deepscan.config import get_settings

# ── Constants ────────────────────────────────────────────────────────────────

_LOG_FORMAT: str = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "action=%(action)s | target=%(target)s | %(message)s"
)
_DATE_FORMAT: str = "%Y-%m-%dT%H:%M:%S%z"
_ROOT_LOGGER_NAME: str = "deepscan"

# Probe traffic is high-volume; per-request lines from these only help when
# debugging the client libraries themselves.
_QUIET_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "celery",
    "httpx",
    "httpcore",
    "asyncio",
)


class StructuredFormatter(logging.Formatter):
    """Formatter that fills ``action``/``target`` with ``-`` when absent."""

    _DEFAULTS: dict[str, str] = {
        "action": "-",
        "target": "-",
    }

    def format(self, record: logging.LogRecord) -> str:
        for key, default in self._DEFAULTS.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return super().format(record)


def configure_logging(level: Optional[str] = None) -> None:
    """Attach the structured handler to the ``deepscan`` logger.

    Safe to call more than once; the API lifespan and the Celery
    ``setup_logging`` signal both call it.

    Args:
        level: Override the log level.  Defaults to ``DEBUG`` when
            ``settings.DEBUG`` is set, otherwise ``INFO``.
    """
    settings = get_settings()
    level = level or ("DEBUG" if settings.DEBUG else "INFO")

    root_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        root_logger.addHandler(handler)
    for handler in root_logger.handlers:
        handler.setLevel(level)

    for noisy_logger in _QUIET_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    root_logger.debug(
        "Logging configured at %s level",
        level,
        extra={"action": "logging_init", "target": settings.APP_NAME},
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger below ``deepscan``.

    Module names that already live in the package (``deepscan.engine.x``)
    are used as-is; anything else is nested as ``deepscan.<name>``.
    """
    if name == _ROOT_LOGGER_NAME or name.startswith(f"{_ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
