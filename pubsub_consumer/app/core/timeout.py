"""Deadline race for a single awaitable.

The work is wrapped in a task and awaited with `asyncio.wait(timeout=...)`, so
whichever of the task and the deadline finishes first decides the outcome and
the deadline timer is released on both paths.

On timeout the task is either detached (default) or cancelled. Detached tasks
stay referenced by the guard until they finish, and an exception raised after
the deadline is logged instead of being lost.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

from loguru import logger as default_logger

T = TypeVar("T")


class DeadlineExceeded(TimeoutError):
    """Raised by TimeoutGuard when the deadline fires before the work completes."""

    def __init__(self, message: str = "Operation timed out.") -> None:
        super().__init__(message)


class TimeoutGuard:
    """Runs awaitables under an optional millisecond deadline."""

    def __init__(
        self,
        timeout_ms: int | None,
        *,
        cancel_on_timeout: bool = False,
        logger: Any = None,
    ) -> None:
        self._timeout_ms = timeout_ms or 0
        self._cancel_on_timeout = cancel_on_timeout
        self._logger = logger or default_logger
        self._detached: set[asyncio.Task[Any]] = set()

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def detached(self) -> frozenset[asyncio.Task[Any]]:
        """Timed-out tasks that are still running."""
        return frozenset(self._detached)

    async def run(self, work: Awaitable[T]) -> T:
        if not self._timeout_ms:
            return await work

        task = asyncio.ensure_future(work)
        try:
            done, _ = await asyncio.wait({task}, timeout=self._timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        if self._cancel_on_timeout:
            task.cancel()
        else:
            self._detach(task)
        raise DeadlineExceeded()

    def _detach(self, task: asyncio.Task[Any]) -> None:
        self._detached.add(task)
        task.add_done_callback(self._on_detached_done)

    def _on_detached_done(self, task: asyncio.Task[Any]) -> None:
        self._detached.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning("handler failed after its timeout elapsed: {}", exc)
