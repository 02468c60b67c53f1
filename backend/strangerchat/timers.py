from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger("strangerchat.timers")

Clock = Callable[[], float]
TimerCallback = Callable[[], Awaitable[None]]


def system_clock() -> float:
    return time.time()


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...


class AsyncioTimer:
    """One-shot timer backed by a task on the running loop."""

    def __init__(self, delay: float, callback: TimerCallback):
        self._delay = delay
        self._callback = callback
        self._task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._delay)
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Timer callback failed")

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()


class AsyncioScheduler:
    def call_later(self, delay: float, callback: TimerCallback) -> AsyncioTimer:
        return AsyncioTimer(delay, callback)
