"""Deferred execution port used by the acknowledgement retrier."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@runtime_checkable
class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """Runs ``action`` once after ``delay`` seconds on the engine's event loop."""

    def call_later(
        self, delay: float, action: Callable[[], Awaitable[None]]
    ) -> ScheduledHandle: ...

    def time(self) -> float: ...


class _AsyncioHandle:
    def __init__(self) -> None:
        self.timer: asyncio.TimerHandle | None = None
        self.task: asyncio.Task[None] | None = None

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        if self.task is not None and not self.task.done():
            self.task.cancel()


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later``; holds references to spawned tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def call_later(self, delay: float, action: Callable[[], Awaitable[None]]) -> ScheduledHandle:
        loop = asyncio.get_running_loop()
        handle = _AsyncioHandle()

        def fire() -> None:
            task = loop.create_task(_run(action))
            handle.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        handle.timer = loop.call_later(delay, fire)
        return handle

    def time(self) -> float:
        return asyncio.get_running_loop().time()


async def _run(action: Callable[[], Awaitable[None]]) -> None:
    await action()


if TYPE_CHECKING:
    _scheduler_check: Scheduler = AsyncioScheduler()
