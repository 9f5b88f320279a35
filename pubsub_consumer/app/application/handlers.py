"""Built-in message handlers and handler loading."""
from __future__ import annotations

import importlib
import inspect
from typing import Any

from loguru import logger

from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.domain.models import MessageHandler, ReceivedMessage


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def log_message(message: ReceivedMessage) -> None:
    """Default handler: log the delivery and let the consumer acknowledge it."""
    payload = message.message
    data = payload.data if payload else None
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    _log(
        "message_handled",
        message_id=message.message_id,
        attributes=dict(payload.attributes) if payload else {},
        data=data,
    )


def load_message_handler(path: str) -> MessageHandler:
    """Import a handler from "package.module:function"."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"message handler must look like 'module:function', got {path!r}")
    module = importlib.import_module(module_name)
    handler = getattr(module, attr, None)
    if handler is None:
        raise ValueError(f"message handler {attr!r} not found in {module_name}")
    if not inspect.iscoroutinefunction(handler):
        raise ValueError(f"message handler {path} must be an async function")
    return handler
