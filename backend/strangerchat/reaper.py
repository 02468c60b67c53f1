from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .core import ChatService

DEFAULT_REAPER_INTERVAL_SECONDS = 5 * 60  # 5 minutes

logger = logging.getLogger("strangerchat.reaper")


class ReaperTask:
    def __init__(self, service: ChatService, interval_seconds: float = DEFAULT_REAPER_INTERVAL_SECONDS):
        self._service = service
        self._interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self):
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                await self._service.reap()
            except Exception:
                # keep sweeping; one bad pass must not stop the reaper
                logger.exception("Room reaper sweep failed")
