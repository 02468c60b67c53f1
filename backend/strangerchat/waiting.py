from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .timers import Clock, Scheduler, TimerHandle, system_clock

DEFAULT_SEARCH_TIMEOUT_SECONDS = 30


@dataclass(eq=False)
class WaitingEntry:
    participant_id: str
    enqueued_at: float
    timer: Optional[TimerHandle] = None


TimeoutHandler = Callable[[WaitingEntry], Awaitable[None]]


class WaitingQueue:
    """Seekers without a room, kept in insertion order.

    Every entry owns a one-shot timeout. Removing an entry cancels its
    timer in the same synchronous step, so a cancelled search can never
    report a timeout afterwards.
    """

    def __init__(self, scheduler: Scheduler, clock: Clock = system_clock,
                 timeout_seconds: float = DEFAULT_SEARCH_TIMEOUT_SECONDS):
        self._entries: "OrderedDict[str, WaitingEntry]" = OrderedDict()
        self._scheduler = scheduler
        self._clock = clock
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def enqueue(self, participant_id: str, on_timeout: TimeoutHandler) -> WaitingEntry:
        self.remove(participant_id)
        entry = WaitingEntry(participant_id, enqueued_at=self._clock())
        entry.timer = self._scheduler.call_later(self._timeout_seconds, lambda: on_timeout(entry))
        self._entries[participant_id] = entry
        return entry

    def remove(self, participant_id: str) -> bool:
        entry = self._entries.pop(participant_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
        return True

    def expire(self, entry: WaitingEntry) -> bool:
        """Drop an entry whose own timer fired; False if it was already superseded."""
        if self._entries.get(entry.participant_id) is not entry:
            return False
        del self._entries[entry.participant_id]
        entry.timer = None
        return True

    def candidates(self) -> List[str]:
        return list(self._entries)

    def get(self, participant_id: str) -> Optional[WaitingEntry]:
        return self._entries.get(participant_id)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
