"""Queue client factory: selects implementation from config. Only place that imports concrete clients."""
from __future__ import annotations

from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.ports.queue_client import QueueClient


def create_queue_client(settings: Settings) -> QueueClient:
    backend = settings.queue_backend.strip().lower()

    if backend == "pubsub":
        from pubsub_consumer.app.infrastructure.messaging.pubsub.pubsub_queue_client import (
            GooglePubSubQueueClient,
        )

        return GooglePubSubQueueClient()

    if backend == "rabbitmq":
        from pubsub_consumer.app.infrastructure.messaging.rabbitmq.rabbitmq_queue_client import (
            RabbitMQQueueClient,
        )

        return RabbitMQQueueClient(settings)

    if backend == "inmemory":
        from pubsub_consumer.app.infrastructure.messaging.inmemory.in_memory_queue_client import (
            InMemoryQueueClient,
        )

        return InMemoryQueueClient()

    raise ValueError(f"Unsupported queue backend: {backend}")
