"""Port: pull/acknowledge queue client. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Protocol

from pubsub_consumer.app.domain.models import AcknowledgeRequest, PullRequest, PullResponse


class QueueClient(Protocol):
    """Broker-agnostic pull subscription.

    Shared by every dispatch of a cycle, so implementations must accept
    concurrent acknowledge() calls.
    """

    async def connect(self) -> None: ...

    async def pull(self, request: PullRequest) -> PullResponse:
        """Return up to request.max_messages messages; raise PullError on failure."""
        ...

    async def acknowledge(self, request: AcknowledgeRequest) -> None:
        """Confirm processing of request.ack_ids; raise AcknowledgeError on failure."""
        ...

    async def close(self) -> None: ...
