"""Loguru sink setup for the service process."""
from __future__ import annotations

import sys
from typing import Any

from loguru import logger

from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.core import SERVICE_NAME

_FORMAT = (
    "<magenta>[{extra[app_id]}]</magenta> {time:YYYY-MM-DD HH:mm:ss:SSS} "
    "<level>{level: <8}</level> -> {message} {extra}"
)


def configure_logging(settings: Settings, *, sink: Any = None) -> int:
    """Replace loguru's default handler with one stderr sink. Returns the handler id."""
    logger.remove()
    logger.configure(extra={"app_id": settings.app_id, "service_name": SERVICE_NAME})
    return logger.add(
        sink or sys.stderr,
        level=settings.log_level.upper(),
        format=_FORMAT,
        colorize=sink is None,
        backtrace=False,
    )
