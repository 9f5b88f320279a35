"""Google Cloud Pub/Sub implementation of QueueClient (synchronous pull API)."""
from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gapi_exceptions
from google.pubsub_v1 import SubscriberAsyncClient
from loguru import logger

from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.domain.errors import AcknowledgeError, PullError
from pubsub_consumer.app.domain.models import (
    AcknowledgeRequest,
    MessageData,
    PullRequest,
    PullResponse,
    ReceivedMessage,
)


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def subscription_path(subscription_name: str, project_id: str = "") -> str:
    """Full resource name; names already starting with projects/ are returned unchanged."""
    if subscription_name.startswith("projects/") or not project_id:
        return subscription_name
    return SubscriberAsyncClient.subscription_path(project_id, subscription_name)


def _to_received_message(raw: Any) -> ReceivedMessage:
    payload = raw.message
    return ReceivedMessage(
        ack_id=raw.ack_id or None,
        message=MessageData(
            data=payload.data,
            attributes=dict(payload.attributes),
            message_id=payload.message_id or None,
        ),
    )


class GooglePubSubQueueClient:
    """QueueClient backed by google.pubsub_v1.SubscriberAsyncClient.

    The underlying client is created on connect() so its gRPC channel binds to
    the running event loop. A pre-built client may be injected instead.
    """

    def __init__(self, client: SubscriberAsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    @property
    def ready(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is None:
            self._client = SubscriberAsyncClient()
            _log("pubsub_client_created")

    def _require_client(self) -> SubscriberAsyncClient:
        if self._client is None:
            raise RuntimeError("pubsub client not connected")
        return self._client

    async def pull(self, request: PullRequest) -> PullResponse:
        client = self._require_client()
        try:
            response = await client.pull(
                request={
                    "subscription": request.subscription,
                    "max_messages": request.max_messages,
                }
            )
        except gapi_exceptions.GoogleAPIError as exc:
            raise PullError(f"pull failed for {request.subscription}: {exc}") from exc
        return PullResponse(
            received_messages=tuple(_to_received_message(m) for m in response.received_messages)
        )

    async def acknowledge(self, request: AcknowledgeRequest) -> None:
        client = self._require_client()
        try:
            await client.acknowledge(
                request={
                    "subscription": request.subscription,
                    "ack_ids": list(request.ack_ids),
                }
            )
        except gapi_exceptions.GoogleAPIError as exc:
            raise AcknowledgeError(f"acknowledge failed for {request.subscription}: {exc}") from exc

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            try:
                await self._client.transport.close()
            except Exception as exc:
                logger.warning("pubsub transport close failed: {}", exc)
        self._client = None
