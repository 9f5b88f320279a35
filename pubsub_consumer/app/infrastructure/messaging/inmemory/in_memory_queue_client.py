"""In-memory queue client for local mode and tests.

Pulled messages stay in flight until acknowledged. Nothing is redelivered:
unacknowledged messages remain visible through `in_flight` only.

With record=True the client also keeps every pull request and acknowledged
id, for tests. Leave it off for a long-running service.
"""
from __future__ import annotations

import asyncio
import uuid
from collections import deque
from typing import Mapping

from pubsub_consumer.app.domain.models import (
    AcknowledgeRequest,
    MessageData,
    PullRequest,
    PullResponse,
    ReceivedMessage,
)


class InMemoryQueueClient:
    def __init__(self, *, record: bool = False) -> None:
        self._record = record
        self._pending: deque[ReceivedMessage] = deque()
        self._in_flight: dict[str, ReceivedMessage] = {}
        self._lock = asyncio.Lock()
        self.acknowledged: list[str] = []
        self.pull_requests: list[PullRequest] = []

    async def connect(self) -> None:
        return

    def publish(self, data: bytes | str, attributes: Mapping[str, str] | None = None) -> str:
        """Enqueue a message and return its message id."""
        message_id = uuid.uuid4().hex
        self._pending.append(
            ReceivedMessage(
                ack_id=uuid.uuid4().hex,
                message=MessageData(data=data, attributes=attributes or {}, message_id=message_id),
            )
        )
        return message_id

    @property
    def in_flight(self) -> dict[str, ReceivedMessage]:
        return dict(self._in_flight)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def pull(self, request: PullRequest) -> PullResponse:
        async with self._lock:
            if self._record:
                self.pull_requests.append(request)
            batch: list[ReceivedMessage] = []
            while self._pending and len(batch) < request.max_messages:
                message = self._pending.popleft()
                if message.ack_id:
                    self._in_flight[message.ack_id] = message
                batch.append(message)
            return PullResponse(received_messages=tuple(batch))

    async def acknowledge(self, request: AcknowledgeRequest) -> None:
        async with self._lock:
            for ack_id in request.ack_ids:
                if self._in_flight.pop(ack_id, None) is not None and self._record:
                    self.acknowledged.append(ack_id)

    async def close(self) -> None:
        return
