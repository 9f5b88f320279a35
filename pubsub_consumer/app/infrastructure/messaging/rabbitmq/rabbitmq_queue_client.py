"""
RabbitMQ queue client: pull semantics over basic.get.

Lifecycle:
  DISCONNECTED -> CONNECTING (backoff on the first connect) -> READY (channel open, queue found).
  While the robust connection is re-establishing itself the state reads RECONNECTING;
  aio_pika restores the channel and the queue, so the same queue object keeps working.
  On close: CLOSING -> CLOSED.

Ack tokens are delivery tags, which are scoped to one channel. Pulled messages
are held until acknowledged. A reconnect drops every held message (the broker
redelivers them) and acknowledging one afterwards raises AcknowledgeError.
"""
from __future__ import annotations

import asyncio
from typing import Any

import aio_pika
from aio_pika.abc import (
    AbstractIncomingMessage,
    AbstractQueue,
    AbstractRobustChannel,
    AbstractRobustConnection,
)
from aio_pika.exceptions import AMQPException
from loguru import logger

from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.core.backoff import exponential_backoff
from pubsub_consumer.app.domain.errors import AcknowledgeError, PullError
from pubsub_consumer.app.domain.models import (
    AcknowledgeRequest,
    MessageData,
    PullRequest,
    PullResponse,
    ReceivedMessage,
)
from pubsub_consumer.app.infrastructure.messaging.rabbitmq.constants import (
    GET_TIMEOUT_SECONDS,
    ClientState,
)


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def _to_received_message(ack_id: str, message: AbstractIncomingMessage) -> ReceivedMessage:
    headers = message.headers or {}
    return ReceivedMessage(
        ack_id=ack_id,
        message=MessageData(
            data=message.body,
            attributes={str(k): str(v) for k, v in headers.items()},
            message_id=message.message_id,
        ),
    )


class RabbitMQQueueClient:
    """QueueClient implementation for RabbitMQ"""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._state = ClientState.DISCONNECTED
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractRobustChannel | None = None
        self._queue: AbstractQueue | None = None
        self._held: dict[str, AbstractIncomingMessage] = {}

    @property
    def state(self) -> ClientState:
        if self._state == ClientState.READY and self._connection is not None and self._connection.is_closed:
            return ClientState.RECONNECTING
        return self._state

    @property
    def ready(self) -> bool:
        return self.state == ClientState.READY

    def _amqp_url(self) -> str:
        s = self._settings
        return f"amqp://{s.broker_user}:{s.broker_password}@{s.broker_host}:{s.broker_port}/"

    def _on_reconnected(self, *args: Any) -> None:
        dropped = len(self._held)
        self._held.clear()
        _log("rmq_reconnected", dropped_unacked=dropped)

    async def connect(self) -> None:
        self._state = ClientState.CONNECTING
        attempt = 0
        # connect_robust only recovers connections that were established once.
        async for delay in exponential_backoff(
            self._settings.initial_backoff_seconds,
            self._settings.max_backoff_seconds,
            self._settings.backoff_multiplier,
            self._settings.max_connection_attempts,
        ):
            attempt += 1
            _log("rmq_connect_attempt", attempt=attempt, delay=delay)
            try:
                self._connection = await aio_pika.connect_robust(self._amqp_url())
                break
            except (AMQPException, OSError, asyncio.TimeoutError) as e:
                logger.warning("rmq connect failed: {}", e)
                if attempt >= self._settings.max_connection_attempts:
                    _log("rmq_connect_failed", attempt=attempt)
                    self._state = ClientState.DISCONNECTED
                    raise

        self._connection.reconnect_callbacks.add(self._on_reconnected)
        self._channel = await self._connection.channel()
        self._queue = await self._channel.declare_queue(self._settings.subscription_name, passive=True)
        self._state = ClientState.READY
        _log("rmq_connected", queue=self._settings.subscription_name)

    async def pull(self, request: PullRequest) -> PullResponse:
        if self._queue is None or not self.ready:
            raise PullError(f"queue {request.subscription} is not ready (state={self.state.value})")
        batch: list[ReceivedMessage] = []
        try:
            while len(batch) < request.max_messages:
                message = await self._queue.get(no_ack=False, fail=False, timeout=GET_TIMEOUT_SECONDS)
                if message is None:
                    break
                ack_id = str(message.delivery_tag)
                self._held[ack_id] = message
                batch.append(_to_received_message(ack_id, message))
        except (AMQPException, ConnectionError, asyncio.TimeoutError) as exc:
            if not batch:
                raise PullError(f"pull failed for {request.subscription}: {exc}") from exc
            logger.warning("pull interrupted after {} message(s): {}", len(batch), exc)
        return PullResponse(received_messages=tuple(batch))

    async def acknowledge(self, request: AcknowledgeRequest) -> None:
        for ack_id in request.ack_ids:
            message = self._held.pop(ack_id, None)
            if message is None:
                raise AcknowledgeError(f"unknown or expired ack id {ack_id}")
            try:
                await message.ack()
            except (AMQPException, ConnectionError) as exc:
                raise AcknowledgeError(f"acknowledge failed for {ack_id}: {exc}") from exc

    async def close(self) -> None:
        if self._connection is None:
            self._state = ClientState.CLOSED
            return
        self._state = ClientState.CLOSING
        self._queue = None
        self._held.clear()
        try:
            await self._connection.close()
        except (AMQPException, ConnectionError) as e:
            logger.warning("connection close failed: {}", e)
        self._connection = None
        self._channel = None
        self._state = ClientState.CLOSED
        _log("queue_client_shutdown")
