"""Consumer composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, store interface types,
manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from pubsub_consumer.app.application.consumer import PubSubConsumer
from pubsub_consumer.app.application.events import ERROR_EVENTS, ConsumerEvent
from pubsub_consumer.app.application.handlers import load_message_handler
from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.domain.models import ConsumerOptions, MessageHandler
from pubsub_consumer.app.infrastructure.messaging.factory import create_queue_client
from pubsub_consumer.app.ports.queue_client import QueueClient


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def resolve_subscription(settings: Settings) -> str:
    if settings.queue_backend.strip().lower() == "pubsub":
        from pubsub_consumer.app.infrastructure.messaging.pubsub.pubsub_queue_client import (
            subscription_path,
        )

        return subscription_path(settings.subscription_name, settings.gcp_project_id)
    return settings.subscription_name


def build_consumer_options(settings: Settings, handler: MessageHandler) -> ConsumerOptions:
    return ConsumerOptions(
        subscription_name=resolve_subscription(settings),
        handle_message=handler,
        batch_size=settings.batch_size,
        handle_message_timeout_ms=settings.handle_message_timeout_ms,
        polling_wait_interval_ms=settings.polling_wait_interval_ms,
        cancel_timed_out_handlers=settings.cancel_timed_out_handlers,
    )


def attach_error_logging(consumer: PubSubConsumer) -> None:
    """Log every error event; the consumer itself only reports them."""

    def on_error(event: ConsumerEvent):
        def listener(error: Exception, message: Any = None) -> None:
            message_id = getattr(message, "message_id", None)
            _log(event.value, error=str(error), message_id=message_id)

        return listener

    for event in ERROR_EVENTS:
        consumer.add_handler(event, on_error(event))


class ConsumerDependencies:
    """Holds wired consumer dependencies and their lifecycle."""

    def __init__(
        self,
        *,
        settings: Settings,
        handler: MessageHandler | None = None,
        queue_client: QueueClient | None = None,
    ) -> None:
        self._settings = settings
        self._handler = handler
        self._queue_client = queue_client
        self._consumer: PubSubConsumer | None = None
        self._connected = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def queue_client(self) -> QueueClient:
        if self._queue_client is None:
            raise RuntimeError("queue_client is not initialized")
        return self._queue_client

    @property
    def consumer(self) -> PubSubConsumer:
        if self._consumer is None:
            raise RuntimeError("consumer is not initialized")
        return self._consumer

    async def connect(self) -> None:
        handler = self._handler or load_message_handler(self._settings.message_handler)
        # Validate before opening any connection.
        options = build_consumer_options(self._settings, handler)
        queue_client = self._queue_client or create_queue_client(self._settings)
        consumer = PubSubConsumer.create(options, queue_client)

        await queue_client.connect()
        self._queue_client = queue_client
        attach_error_logging(consumer)
        self._consumer = consumer
        self._connected = True
        _log("dependencies_connected", backend=self._settings.queue_backend, subscription=options.subscription_name)

    async def close(self) -> None:
        if self._consumer is not None:
            self._consumer.stop()
            await self._consumer.wait_stopped()
            self._consumer = None

        if self._queue_client is not None:
            try:
                await self._queue_client.close()
            except Exception as exc:
                logger.warning("queue client close failed: {}", exc)
            self._queue_client = None

        self._connected = False


def create_consumer_dependencies(
    settings: Settings | None = None,
    *,
    handler: MessageHandler | None = None,
    queue_client: QueueClient | None = None,
) -> ConsumerDependencies:
    return ConsumerDependencies(settings=settings or Settings(), handler=handler, queue_client=queue_client)
