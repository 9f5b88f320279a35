"""Per-message dispatch: handler under deadline, acknowledge, report.

received -> handling -> acknowledging -> processed
handling fails -> timeout_error or processing_error, never acknowledged

dispatch() never raises: every failure ends as an emitted event, so one bad
message cannot abort the other dispatches of its batch.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger as default_logger

from pubsub_consumer.app.application.events import ConsumerEvent, EventBus
from pubsub_consumer.app.core.timeout import DeadlineExceeded, TimeoutGuard
from pubsub_consumer.app.domain.errors import (
    AcknowledgeError,
    HandlerFailureError,
    HandlerTimeoutError,
)
from pubsub_consumer.app.domain.models import AcknowledgeRequest, MessageHandler, ReceivedMessage
from pubsub_consumer.app.ports.queue_client import QueueClient


class MessageDispatcher:
    def __init__(
        self,
        *,
        subscription: str,
        handle_message: MessageHandler,
        queue_client: QueueClient,
        events: EventBus,
        guard: TimeoutGuard,
        logger: Any = None,
    ) -> None:
        self._subscription = subscription
        self._handle_message = handle_message
        self._queue_client = queue_client
        self._events = events
        self._guard = guard
        self._logger = logger or default_logger

    async def dispatch(self, message: ReceivedMessage) -> None:
        self._events.emit(ConsumerEvent.MESSAGE_RECEIVED, message)

        try:
            await self.execute_handler(message)
        except HandlerTimeoutError as err:
            self._logger.error("Error processing message {}: {}", message.message_id, err)
            self._events.emit(ConsumerEvent.TIMEOUT_ERROR, err, message)
            return
        except HandlerFailureError as err:
            self._logger.error("Error processing message {}: {}", message.message_id, err)
            self._events.emit(ConsumerEvent.PROCESSING_ERROR, err, message)
            return

        await self.delete_message(message)
        self._events.emit(ConsumerEvent.MESSAGE_PROCESSED, message)

    async def execute_handler(self, message: ReceivedMessage) -> None:
        """Run the user handler under the deadline, relabelling what it raises."""
        self._logger.debug("Handling message {}", message.message_id)
        try:
            await self._guard.run(self._handle_message(message))
        except DeadlineExceeded as exc:
            raise HandlerTimeoutError(
                f"Message handler timed out after {self._guard.timeout_ms}ms: {exc}"
            ) from exc
        except asyncio.CancelledError as exc:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise HandlerFailureError(f"Unexpected message handler failure: {exc!r}") from exc
        except Exception as exc:
            raise HandlerFailureError(f"Unexpected message handler failure: {exc}") from exc

    async def delete_message(self, message: ReceivedMessage) -> None:
        """Acknowledge one message. A failure is reported as deleting_error, never retried."""
        if not message.ack_id:
            self._logger.debug("Message {} has no ack id, skipping acknowledge", message.message_id)
            return

        self._logger.debug("Deleting message {}", message.message_id)
        try:
            await self._queue_client.acknowledge(
                AcknowledgeRequest(subscription=self._subscription, ack_ids=(message.ack_id,))
            )
        except Exception as exc:
            err = exc if isinstance(exc, AcknowledgeError) else AcknowledgeError(str(exc))
            if err is not exc:
                err.__cause__ = exc
            self._logger.warning("acknowledge failed for {}: {}", message.ack_id, err)
            self._events.emit(ConsumerEvent.DELETING_ERROR, err, message)
            return

        self._logger.debug("Message {} deleted", message.ack_id)
