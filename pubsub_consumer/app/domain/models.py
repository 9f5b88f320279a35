"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10
DEFAULT_BATCH_SIZE = 1
DEFAULT_POLLING_WAIT_INTERVAL_MS = 0


@dataclass(frozen=True)
class MessageData:
    """Payload of a queue message."""

    data: bytes | str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)
    message_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes or {})))


@dataclass(frozen=True)
class ReceivedMessage:
    """One delivery returned by a pull. `ack_id` is the broker's ack token."""

    ack_id: str | None = None
    message: MessageData | None = None

    @property
    def message_id(self) -> str | None:
        return self.message.message_id if self.message else None


@dataclass(frozen=True)
class PullRequest:
    subscription: str
    max_messages: int


@dataclass(frozen=True)
class PullResponse:
    """Messages returned by one pull, in broker order. May be empty."""

    received_messages: tuple[ReceivedMessage, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "received_messages", tuple(self.received_messages or ()))

    def __len__(self) -> int:
        return len(self.received_messages)

    @property
    def has_messages(self) -> bool:
        return bool(self.received_messages)


@dataclass(frozen=True)
class AcknowledgeRequest:
    subscription: str
    ack_ids: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "ack_ids", tuple(self.ack_ids))


MessageHandler = Callable[[ReceivedMessage], Awaitable[None]]


@dataclass(frozen=True)
class ConsumerOptions:
    """Consumer configuration. Checked by PubSubConsumer.create, immutable afterwards.

    handle_message_timeout_ms of 0 or None disables the handler deadline.
    """

    subscription_name: str
    handle_message: MessageHandler | None
    batch_size: int | None = None
    handle_message_timeout_ms: int | None = None
    polling_wait_interval_ms: int | None = None
    cancel_timed_out_handlers: bool = False

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size or DEFAULT_BATCH_SIZE

    @property
    def effective_polling_wait_interval_ms(self) -> int:
        if self.polling_wait_interval_ms is None:
            return DEFAULT_POLLING_WAIT_INTERVAL_MS
        return self.polling_wait_interval_ms
