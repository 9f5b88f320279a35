"""Consumer events and the synchronous listener registry that delivers them.

Listeners run inline in the task that emits, in registration order, so a slow
listener delays that task. A listener that raises is logged and skipped; it
never interrupts delivery to the remaining listeners or the consumer itself.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from loguru import logger as default_logger

Listener = Callable[..., Any]


class ConsumerEvent(str, Enum):
    """Event name and the positional arguments its listeners receive."""

    STARTED = "started"  # ()
    STOPPED = "stopped"  # ()
    RESPONSE_PROCESSED = "response_processed"  # (PullResponse)
    EMPTY = "empty"  # ()
    MESSAGE_RECEIVED = "message_received"  # (ReceivedMessage)
    MESSAGE_PROCESSED = "message_processed"  # (ReceivedMessage)
    PULLING_ERROR = "pulling_error"  # (Exception)
    TIMEOUT_ERROR = "timeout_error"  # (HandlerTimeoutError, ReceivedMessage)
    PROCESSING_ERROR = "processing_error"  # (HandlerFailureError, ReceivedMessage)
    DELETING_ERROR = "deleting_error"  # (Exception, ReceivedMessage)


ERROR_EVENTS = (
    ConsumerEvent.PULLING_ERROR,
    ConsumerEvent.TIMEOUT_ERROR,
    ConsumerEvent.PROCESSING_ERROR,
    ConsumerEvent.DELETING_ERROR,
)


@dataclass(frozen=True)
class _Subscription:
    listener: Listener
    once: bool = False


class EventBus:
    """Maps each ConsumerEvent to its ordered list of listeners."""

    def __init__(self, *, logger: Any = None) -> None:
        self._logger = logger or default_logger
        self._subscriptions: dict[ConsumerEvent, list[_Subscription]] = defaultdict(list)

    def add_handler(self, event: ConsumerEvent | str, listener: Listener, *, once: bool = False) -> None:
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._subscriptions[ConsumerEvent(event)].append(_Subscription(listener, once))

    def remove_handler(self, event: ConsumerEvent | str, listener: Listener | None = None) -> None:
        """Remove one listener, or every listener of the event when none is given."""
        key = ConsumerEvent(event)
        if listener is None:
            self._subscriptions.pop(key, None)
            return
        subs = self._subscriptions.get(key, [])
        for index, sub in enumerate(subs):
            if sub.listener == listener:
                del subs[index]
                return

    def listener_count(self, event: ConsumerEvent | str) -> int:
        return len(self._subscriptions.get(ConsumerEvent(event), []))

    def emit(self, event: ConsumerEvent, *args: Any) -> bool:
        """Deliver to current listeners. Returns False when nobody was listening."""
        subs = self._subscriptions.get(event)
        if not subs:
            return False
        snapshot = list(subs)
        subs[:] = [sub for sub in subs if not sub.once]
        for sub in snapshot:
            try:
                sub.listener(*args)
            except Exception:
                self._logger.exception("listener for {} failed", event.value)
        return True
