"""Scheduled room sequences driven by an injectable clock."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Clock(Protocol):
    async def sleep(self, seconds: float) -> None: ...


class AsyncioClock:
    """Wall-clock time via asyncio.sleep."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class TimerManager:
    """Run delayed callbacks as tracked background tasks.

    All waiting goes through the clock, so tests can swap in a virtual
    clock and fast-forward instead of sleeping. Tasks are tracked per room
    only for shutdown and draining; a player leaving never cancels them.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or AsyncioClock()
        self._tasks: dict[str, set[asyncio.Task[None]]] = {}  # room_id -> running tasks

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def pending_count(self) -> int:
        return sum(len(tasks) for tasks in self._tasks.values())

    def has_pending(self, room_id: str) -> bool:
        return bool(self._tasks.get(room_id))

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller on the manager's clock."""
        await self._clock.sleep(seconds)

    def schedule(
        self,
        room_id: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> asyncio.Task[None]:
        """Run callback after delay seconds in a background task."""
        task = asyncio.create_task(self._run(delay, callback))
        self._tasks.setdefault(room_id, set()).add(task)
        task.add_done_callback(lambda t, rid=room_id: self._forget(rid, t))
        return task

    def cancel_all(self) -> None:
        """Cancel every scheduled task (server shutdown)."""
        for tasks in self._tasks.values():
            for task in tasks:
                task.cancel()
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait until every scheduled task, including ones scheduled meanwhile, has finished."""
        while self._tasks:
            pending = [task for tasks in self._tasks.values() for task in tasks]
            await asyncio.gather(*pending, return_exceptions=True)

    def _forget(self, room_id: str, task: asyncio.Task[None]) -> None:
        tasks = self._tasks.get(room_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._tasks[room_id]

    async def _run(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        try:
            await self._clock.sleep(delay)
            await callback()
        except Exception:
            logger.exception("scheduled callback failed")
