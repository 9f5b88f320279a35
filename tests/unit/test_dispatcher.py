"""Unit tests for MessageDispatcher: handler outcome, acknowledge and reported events."""
from __future__ import annotations

import asyncio

import pytest

from pubsub_consumer.app.application.dispatcher import MessageDispatcher
from pubsub_consumer.app.application.events import ConsumerEvent, EventBus
from pubsub_consumer.app.core.timeout import TimeoutGuard
from pubsub_consumer.app.domain.errors import (
    AcknowledgeError,
    HandlerFailureError,
    HandlerTimeoutError,
)
from tests.fakes import EventRecorder, FakeQueueClient, make_message, noop_handler

SUBSCRIPTION = "projects/test/subscriptions/orders"


def _dispatcher(handler, client: FakeQueueClient, *, timeout_ms: int | None = None):
    bus = EventBus()
    recorder = EventRecorder(bus)  # type: ignore[arg-type]
    dispatcher = MessageDispatcher(
        subscription=SUBSCRIPTION,
        handle_message=handler,
        queue_client=client,
        events=bus,
        guard=TimeoutGuard(timeout_ms),
    )
    return dispatcher, recorder


@pytest.mark.asyncio
async def test_successful_handler_acknowledges_then_reports_processed():
    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(noop_handler, client)
    message = make_message(ack_id="ack-1")

    await dispatcher.dispatch(message)

    assert recorder.names() == [ConsumerEvent.MESSAGE_RECEIVED, ConsumerEvent.MESSAGE_PROCESSED]
    assert recorder.args(ConsumerEvent.MESSAGE_PROCESSED) == [(message,)]
    assert len(client.ack_calls) == 1
    assert client.ack_calls[0].subscription == SUBSCRIPTION
    assert client.ack_calls[0].ack_ids == ("ack-1",)


@pytest.mark.asyncio
async def test_message_without_ack_id_skips_acknowledge():
    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(noop_handler, client)

    await dispatcher.dispatch(make_message(ack_id=None))

    assert client.ack_calls == []
    assert recorder.count(ConsumerEvent.MESSAGE_PROCESSED) == 1


@pytest.mark.asyncio
async def test_failing_handler_reports_processing_error_without_ack():
    async def handler(message) -> None:
        raise RuntimeError("Some handler error")

    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(handler, client, timeout_ms=500)
    message = make_message()

    await dispatcher.dispatch(message)

    assert client.ack_calls == []
    assert recorder.count(ConsumerEvent.MESSAGE_PROCESSED) == 0
    [(error, reported)] = recorder.args(ConsumerEvent.PROCESSING_ERROR)
    assert isinstance(error, HandlerFailureError)
    assert str(error) == "Unexpected message handler failure: Some handler error"
    assert isinstance(error.__cause__, RuntimeError)
    assert reported is message
    assert recorder.count(ConsumerEvent.TIMEOUT_ERROR) == 0


@pytest.mark.asyncio
async def test_slow_handler_reports_timeout_error_without_ack():
    release = asyncio.Event()

    async def handler(message) -> None:
        await release.wait()

    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(handler, client, timeout_ms=30)
    message = make_message()

    await dispatcher.dispatch(message)
    release.set()
    await asyncio.sleep(0.01)

    assert client.ack_calls == []
    [(error, reported)] = recorder.args(ConsumerEvent.TIMEOUT_ERROR)
    assert isinstance(error, HandlerTimeoutError)
    assert str(error) == "Message handler timed out after 30ms: Operation timed out."
    assert reported is message
    assert recorder.count(ConsumerEvent.PROCESSING_ERROR) == 0
    assert recorder.count(ConsumerEvent.MESSAGE_PROCESSED) == 0


@pytest.mark.asyncio
async def test_acknowledge_failure_reports_deleting_error():
    client = FakeQueueClient(ack_error=ConnectionError("broker gone"))
    dispatcher, recorder = _dispatcher(noop_handler, client)
    message = make_message()

    await dispatcher.dispatch(message)

    [(error, reported)] = recorder.args(ConsumerEvent.DELETING_ERROR)
    assert isinstance(error, AcknowledgeError)
    assert "broker gone" in str(error)
    assert reported is message
    assert len(client.ack_calls) == 1
    # the handler succeeded, so the message still counts as processed
    assert recorder.count(ConsumerEvent.MESSAGE_PROCESSED) == 1


@pytest.mark.asyncio
async def test_acknowledge_error_from_client_is_reported_as_is():
    original = AcknowledgeError("expired ack id")
    client = FakeQueueClient(ack_error=original)
    dispatcher, recorder = _dispatcher(noop_handler, client)

    await dispatcher.dispatch(make_message())

    [(error, _)] = recorder.args(ConsumerEvent.DELETING_ERROR)
    assert error is original


@pytest.mark.asyncio
async def test_sync_handler_is_reported_as_processing_error():
    def not_async(message) -> None:
        return None

    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(not_async, client)

    await dispatcher.dispatch(make_message())

    assert recorder.count(ConsumerEvent.PROCESSING_ERROR) == 1
    assert client.ack_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout_ms", [None, 200])
async def test_handler_cancelled_error_becomes_processing_error(timeout_ms):
    async def handler(message) -> None:
        raise asyncio.CancelledError()

    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(handler, client, timeout_ms=timeout_ms)

    await dispatcher.dispatch(make_message())

    assert recorder.names() == [ConsumerEvent.MESSAGE_RECEIVED, ConsumerEvent.PROCESSING_ERROR]
    err, _ = recorder.args(ConsumerEvent.PROCESSING_ERROR)[0]
    assert isinstance(err, HandlerFailureError)
    assert isinstance(err.__cause__, asyncio.CancelledError)
    assert client.ack_calls == []


@pytest.mark.asyncio
async def test_cancelling_the_dispatch_itself_still_propagates():
    blocker = asyncio.Event()

    async def handler(message) -> None:
        await blocker.wait()

    client = FakeQueueClient()
    dispatcher, recorder = _dispatcher(handler, client)

    task = asyncio.create_task(dispatcher.dispatch(make_message()))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert recorder.count(ConsumerEvent.PROCESSING_ERROR) == 0
    assert client.ack_calls == []
