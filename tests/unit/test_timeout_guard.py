"""Unit tests for TimeoutGuard deadline races."""
from __future__ import annotations

import asyncio

import pytest

from pubsub_consumer.app.core.timeout import DeadlineExceeded, TimeoutGuard


async def _value_after(delay: float, value: str) -> str:
    await asyncio.sleep(delay)
    return value


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout_ms", [None, 0])
async def test_no_timeout_awaits_work_directly(timeout_ms):
    guard = TimeoutGuard(timeout_ms)

    assert await guard.run(_value_after(0.01, "done")) == "done"
    assert guard.timeout_ms == 0


@pytest.mark.asyncio
async def test_work_finishing_first_returns_its_result():
    guard = TimeoutGuard(500)

    assert await guard.run(_value_after(0, "fast")) == "fast"
    assert guard.detached == frozenset()


@pytest.mark.asyncio
async def test_work_error_is_propagated_unchanged():
    async def boom() -> None:
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await TimeoutGuard(500).run(boom())


@pytest.mark.asyncio
async def test_deadline_first_raises_and_detaches_work():
    release = asyncio.Event()
    finished: list[bool] = []

    async def slow() -> None:
        await release.wait()
        finished.append(True)

    guard = TimeoutGuard(20)
    with pytest.raises(DeadlineExceeded, match="Operation timed out."):
        await guard.run(slow())

    assert len(guard.detached) == 1
    release.set()
    await asyncio.sleep(0.01)

    assert finished == [True]
    assert guard.detached == frozenset()


@pytest.mark.asyncio
async def test_deadline_first_cancels_work_when_configured():
    started = asyncio.Event()
    cancelled: list[bool] = []

    async def slow() -> None:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    guard = TimeoutGuard(20, cancel_on_timeout=True)
    with pytest.raises(DeadlineExceeded):
        await guard.run(slow())
    await asyncio.sleep(0.01)

    assert started.is_set()
    assert cancelled == [True]
    assert guard.detached == frozenset()


@pytest.mark.asyncio
async def test_detached_failure_is_logged():
    release = asyncio.Event()
    warnings: list[str] = []

    class _Logger:
        def warning(self, fmt: str, *args) -> None:
            warnings.append(fmt.format(*args))

    async def slow_then_fail() -> None:
        await release.wait()
        raise RuntimeError("late failure")

    guard = TimeoutGuard(10, logger=_Logger())
    with pytest.raises(DeadlineExceeded):
        await guard.run(slow_then_fail())
    release.set()
    await asyncio.sleep(0.01)

    assert warnings == ["handler failed after its timeout elapsed: late failure"]
