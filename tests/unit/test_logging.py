from __future__ import annotations

from loguru import logger

from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.core.logging import configure_logging


def test_configure_logging_applies_level_and_app_id(monkeypatch):
    monkeypatch.setenv("SUBSCRIPTION_NAME", "orders")
    monkeypatch.setenv("APP_ID", "orders-consumer")
    monkeypatch.setenv("LOG_LEVEL", "info")
    lines: list[str] = []

    handler_id = configure_logging(Settings(), sink=lines.append)
    try:
        logger.debug("hidden")
        logger.info("Polling messages")
    finally:
        logger.remove(handler_id)

    assert len(lines) == 1
    assert lines[0].startswith("[orders-consumer] ")
    assert "-> Polling messages" in lines[0]
