from __future__ import annotations

import pytest

from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.infrastructure.messaging.factory import create_queue_client
from pubsub_consumer.app.infrastructure.messaging.inmemory.in_memory_queue_client import (
    InMemoryQueueClient,
)
from pubsub_consumer.app.infrastructure.messaging.pubsub.pubsub_queue_client import (
    GooglePubSubQueueClient,
)
from pubsub_consumer.app.infrastructure.messaging.rabbitmq.rabbitmq_queue_client import (
    RabbitMQQueueClient,
)


@pytest.fixture()
def env(monkeypatch):
    monkeypatch.setenv("SUBSCRIPTION_NAME", "orders")
    return monkeypatch


@pytest.mark.parametrize(
    "backend, expected",
    [
        ("pubsub", GooglePubSubQueueClient),
        ("RabbitMQ", RabbitMQQueueClient),
        (" inmemory ", InMemoryQueueClient),
    ],
)
def test_factory_selects_backend(env, backend, expected):
    env.setenv("QUEUE_BACKEND", backend)

    assert isinstance(create_queue_client(Settings()), expected)


def test_factory_rejects_unknown_backend(env):
    env.setenv("QUEUE_BACKEND", "kafka")

    with pytest.raises(ValueError, match="Unsupported queue backend: kafka"):
        create_queue_client(Settings())


def test_settings_defaults(env):
    settings = Settings()

    assert settings.queue_backend == "pubsub"
    assert settings.batch_size == 1
    assert settings.handle_message_timeout_ms == 0
    assert settings.polling_wait_interval_ms == 0
    assert settings.cancel_timed_out_handlers is False
    assert settings.app_id == "pubSubConsumer"
