"""
Pull consumer: poll loop over a QueueClient.

Lifecycle:
  stopped --start()--> running --stop()--> stopped (at the next cycle boundary)

One cycle:
  pull(subscription, max_messages=batch_size)
    -> pull failed:   pulling_error(err)
    -> empty batch:   empty
    -> messages:      dispatch all concurrently, wait for every one, response_processed(response)
  then either emit stopped and exit, or wait polling_wait_interval_ms and pull again.

Concurrency:
  - The loop runs as a single asyncio task; dispatches of one batch are gathered,
    so the next pull never starts before the current batch has settled.
  - stop() only flips the running flag and wakes the inter-cycle wait. In-flight
    handlers and acknowledgements are not cancelled.
"""
from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger as default_logger

from pubsub_consumer.app.application.dispatcher import MessageDispatcher
from pubsub_consumer.app.application.events import ConsumerEvent, EventBus, Listener
from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.core.timeout import TimeoutGuard
from pubsub_consumer.app.domain.errors import ConsumerValidationError, PullError
from pubsub_consumer.app.domain.models import (
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    ConsumerOptions,
    PullRequest,
    PullResponse,
)
from pubsub_consumer.app.ports.queue_client import QueueClient


def assert_options(options: ConsumerOptions) -> None:
    if not options.subscription_name:
        raise ConsumerValidationError("Missing subscription_name in options")

    if options.handle_message is None or not callable(options.handle_message):
        raise ConsumerValidationError("Missing handle_message in options")

    if options.batch_size is not None:
        if options.batch_size > MAX_BATCH_SIZE or options.batch_size < MIN_BATCH_SIZE:
            raise ConsumerValidationError(
                f"batch_size option must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}"
            )

    if options.handle_message_timeout_ms is not None and options.handle_message_timeout_ms < 0:
        raise ConsumerValidationError("handle_message_timeout_ms option must not be negative")

    if options.polling_wait_interval_ms is not None and options.polling_wait_interval_ms < 0:
        raise ConsumerValidationError("polling_wait_interval_ms option must not be negative")


class PubSubConsumer:
    """Repeatedly pulls batches and dispatches them to the configured handler."""

    def __init__(self, options: ConsumerOptions, queue_client: QueueClient, *, logger: Any = None) -> None:
        self._options = options
        self._queue_client = queue_client
        self._logger = logger or default_logger.bind(service_name=SERVICE_NAME)
        self._events = EventBus(logger=self._logger)
        self._guard = TimeoutGuard(
            options.handle_message_timeout_ms,
            cancel_on_timeout=options.cancel_timed_out_handlers,
            logger=self._logger,
        )
        self._dispatcher = MessageDispatcher(
            subscription=options.subscription_name,
            handle_message=options.handle_message,
            queue_client=queue_client,
            events=self._events,
            guard=self._guard,
            logger=self._logger,
        )
        self._running = False
        self._wake = asyncio.Event()
        self._poll_task: asyncio.Task[None] | None = None

    @classmethod
    def create(cls, options: ConsumerOptions, queue_client: QueueClient, *, logger: Any = None) -> "PubSubConsumer":
        """Validate options and build a stopped consumer."""
        assert_options(options)
        return cls(options, queue_client, logger=logger)

    @property
    def options(self) -> ConsumerOptions:
        return self._options

    @property
    def is_running(self) -> bool:
        return self._running

    # Events

    def add_handler(self, event: ConsumerEvent | str, listener: Listener) -> None:
        self._events.add_handler(event, listener)

    def remove_handler(self, event: ConsumerEvent | str, listener: Listener | None = None) -> None:
        self._events.remove_handler(event, listener)

    def on(self, event: ConsumerEvent | str, listener: Listener) -> "PubSubConsumer":
        self._events.add_handler(event, listener)
        return self

    def once(self, event: ConsumerEvent | str, listener: Listener) -> "PubSubConsumer":
        self._events.add_handler(event, listener, once=True)
        return self

    # Lifecycle

    def start(self) -> None:
        """Begin polling. Must be called from a running event loop; no-op when already running."""
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._logger.debug("Starting consumer")
        self._running = True
        self._wake.clear()
        self._events.emit(ConsumerEvent.STARTED)
        # A loop that saw stop() but has not reached its boundary yet keeps going.
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = loop.create_task(self._poll_loop())

    def stop(self) -> None:
        self._logger.debug("Stopping consumer")
        self._running = False
        self._wake.set()

    async def wait_stopped(self) -> None:
        """Wait until the poll loop has emitted stopped and exited."""
        if self._poll_task is not None:
            await asyncio.shield(self._poll_task)

    # Poll loop

    async def _poll_loop(self) -> None:
        while True:
            try:
                while self._running:
                    await self.poll_once()
                    if not self._running:
                        break
                    await self._wait_for_next_cycle()
            finally:
                self._events.emit(ConsumerEvent.STOPPED)
            # A stopped listener may have called start() while this task was still alive.
            if not self._running:
                return
            self._wake.clear()

    async def poll_once(self) -> None:
        """Run a single pull/dispatch cycle. Never raises for queue or handler failures."""
        self._logger.debug("Polling messages")
        request = PullRequest(
            subscription=self._options.subscription_name,
            max_messages=self._options.effective_batch_size,
        )
        try:
            response = await self._pull_messages(request)
        except Exception as exc:
            err = exc if isinstance(exc, PullError) else PullError(str(exc))
            if err is not exc:
                err.__cause__ = exc
            self._logger.warning("pull failed: {}", err)
            self._events.emit(ConsumerEvent.PULLING_ERROR, err)
            return

        await self._handle_response(response)

    async def _pull_messages(self, request: PullRequest) -> PullResponse:
        response = await self._queue_client.pull(request)
        return response if response is not None else PullResponse()

    async def _handle_response(self, response: PullResponse) -> None:
        self._logger.debug("Received response with {} message(s)", len(response))
        if not response.has_messages:
            self._events.emit(ConsumerEvent.EMPTY)
            return

        results = await asyncio.gather(
            *(self._dispatcher.dispatch(message) for message in response.received_messages),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                self._logger.opt(exception=result).error("dispatch failed unexpectedly: {}", result)
        self._events.emit(ConsumerEvent.RESPONSE_PROCESSED, response)

    async def _wait_for_next_cycle(self) -> None:
        interval_ms = self._options.effective_polling_wait_interval_ms
        if interval_ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=interval_ms / 1000)
        except asyncio.TimeoutError:
            pass
