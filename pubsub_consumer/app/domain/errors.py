"""Consumer error kinds.

Only ConsumerValidationError ever reaches the caller (from
PubSubConsumer.create). Every other kind is caught where it happens and
reported through the matching consumer event.
"""
from __future__ import annotations


class ConsumerError(Exception):
    """Base for all consumer failures."""


class ConsumerValidationError(ConsumerError, ValueError):
    """Invalid consumer options. Raised at construction time."""


class PullError(ConsumerError):
    """Pulling a batch from the queue failed. Reported as pulling_error."""


class AcknowledgeError(ConsumerError):
    """Acknowledging a message failed. Reported as deleting_error."""


class HandlerError(ConsumerError):
    """Base for failures of the user message handler."""


class HandlerTimeoutError(HandlerError):
    """The handler did not finish within handle_message_timeout_ms. Reported as timeout_error."""


class HandlerFailureError(HandlerError):
    """The handler raised. Reported as processing_error."""
