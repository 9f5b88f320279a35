from __future__ import annotations

import pytest

from tests.fakes import FakeQueueClient


@pytest.fixture()
def queue_client() -> FakeQueueClient:
    return FakeQueueClient()
