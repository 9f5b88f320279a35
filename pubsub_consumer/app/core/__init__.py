"""Shared primitives for the consumer service."""
from __future__ import annotations

SERVICE_NAME = "pubsub-consumer"
