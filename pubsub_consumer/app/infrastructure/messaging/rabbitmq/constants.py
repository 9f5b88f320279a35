"""RabbitMQ queue client lifecycle states."""
from enum import Enum


class ClientState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    READY = "READY"
    RECONNECTING = "RECONNECTING"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


# Seconds a single basic.get may wait on the channel.
GET_TIMEOUT_SECONDS = 5.0
