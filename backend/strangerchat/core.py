from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .blocks import BlockListStore
from .connections import ConnectionRegistry, Notifier
from .matching import MatchEngine
from .models import (
    MatchFoundEvent,
    PartnerInfoEvent,
    SearchTimeoutEvent,
    UserCountEvent,
)
from .rooms import DEFAULT_ROOM_MAX_AGE_SECONDS, REASON_ENDED, Room, RoomRegistry, generate_room_id
from .timers import AsyncioScheduler, Clock, Scheduler, system_clock
from .waiting import DEFAULT_SEARCH_TIMEOUT_SECONDS, WaitingEntry, WaitingQueue

logger = logging.getLogger("strangerchat.core")


@dataclass
class Report:
    reporter_id: str
    reported_id: str
    room_id: str
    reason: str
    created_at: float


class ChatService:
    """Owns every piece of shared chat state.

    Each public coroutine runs under one ``asyncio.Lock`` for its whole
    read-modify-write, including the search timeout callback. Outbound
    events go through the ``Notifier``, which must not await.
    """

    def __init__(
        self,
        notifier: Notifier,
        clock: Clock = system_clock,
        scheduler: Optional[Scheduler] = None,
        room_id_factory: Callable[[], str] = generate_room_id,
        search_timeout_seconds: float = DEFAULT_SEARCH_TIMEOUT_SECONDS,
        room_max_age_seconds: float = DEFAULT_ROOM_MAX_AGE_SECONDS,
    ):
        self._notifier = notifier
        self._clock = clock
        self._lock = asyncio.Lock()
        self.room_max_age_seconds = room_max_age_seconds

        self.blocks = BlockListStore()
        self.connections = ConnectionRegistry()
        self.queue = WaitingQueue(scheduler or AsyncioScheduler(), clock, search_timeout_seconds)
        self.rooms = RoomRegistry(self.connections, notifier, clock, room_id_factory)
        self.engine = MatchEngine(self.connections, self.queue, self.blocks, self.rooms)
        self.reports: List[Report] = []

    async def connect(self, participant_id: str) -> None:
        async with self._lock:
            self.connections.register(participant_id)
            self._broadcast_user_count()
        logger.info(f"User connected: {participant_id}")

    async def disconnect(self, participant_id: str) -> None:
        async with self._lock:
            self.queue.remove(participant_id)
            participant = self.connections.get(participant_id)
            if participant is not None and participant.room_id:
                self.rooms.leave(participant_id, participant.room_id)
            if self.connections.remove(participant_id) is None:
                return
            self._broadcast_user_count()
        logger.info(f"User disconnected: {participant_id}")

    async def find_match(self, participant_id: str, avatar: str = "", nickname: str = "") -> Optional[Room]:
        async with self._lock:
            current = self.connections.get(participant_id)
            if current is not None and current.room_id:
                self.rooms.leave(participant_id, current.room_id)

            room = self.engine.match(participant_id, avatar, nickname)
            if room is None:
                self.queue.enqueue(participant_id, self._on_search_timeout)
                logger.info(f"User added to waiting list: {participant_id}")
                return None

            seeker_id, partner_id = room.members
            self._notifier.notify(seeker_id, MatchFoundEvent(roomId=room.room_id, partnerId=partner_id))
            self._notifier.notify(partner_id, MatchFoundEvent(roomId=room.room_id, partnerId=seeker_id))
            return room

    async def cancel_search(self, participant_id: str) -> bool:
        async with self._lock:
            removed = self.queue.remove(participant_id)
        if removed:
            logger.info(f"User cancelled search: {participant_id}")
        return removed

    async def join_room(self, participant_id: str, room_id: str) -> bool:
        async with self._lock:
            partner_id = self.rooms.partner_of(room_id, participant_id)
            me = self.connections.get(participant_id)
            partner = self.connections.get(partner_id) if partner_id else None
            if me is None or partner is None:
                return False
            self._notifier.notify(participant_id, PartnerInfoEvent(
                id=partner.participant_id, avatar=partner.avatar, nickname=partner.nickname))
            self._notifier.notify(partner.participant_id, PartnerInfoEvent(
                id=me.participant_id, avatar=me.avatar, nickname=me.nickname))
            return True

    async def send_message(self, participant_id: str, room_id: str, message: str) -> bool:
        async with self._lock:
            return self.rooms.relay(room_id, participant_id, message)

    async def typing(self, participant_id: str, room_id: str, is_typing: bool) -> bool:
        async with self._lock:
            return self.rooms.set_typing(room_id, participant_id, is_typing)

    async def leave_room(self, participant_id: str, room_id: str) -> bool:
        async with self._lock:
            return self.rooms.leave(participant_id, room_id)

    async def report_user(self, participant_id: str, room_id: str, reason: str,
                          reported_id: str) -> Report:
        async with self._lock:
            report = Report(reporter_id=participant_id, reported_id=reported_id,
                            room_id=room_id, reason=reason, created_at=self._clock())
            self.reports.append(report)
            logger.warning(f"User reported: {reported_id} by: {participant_id} reason: {reason!r}")
            self._end_room_for(participant_id, room_id)
            return report

    async def block_user(self, participant_id: str, room_id: str, blocked_id: str) -> None:
        async with self._lock:
            self.blocks.block(participant_id, blocked_id)
            logger.info(f"User blocked: {blocked_id} by: {participant_id}")
            self._end_room_for(participant_id, room_id)

    async def reap(self) -> List[str]:
        async with self._lock:
            expired = self.rooms.reap(self.room_max_age_seconds)
        if expired:
            logger.info(f"Reaped {len(expired)} expired room(s)")
        return expired

    async def stats(self) -> Dict[str, int]:
        async with self._lock:
            return {
                "connected": len(self.connections),
                "waiting": len(self.queue),
                "rooms": len(self.rooms),
                "reports": len(self.reports),
            }

    async def _on_search_timeout(self, entry: WaitingEntry) -> None:
        async with self._lock:
            if not self.queue.expire(entry):
                return
            self._notifier.notify(entry.participant_id, SearchTimeoutEvent())
        logger.info(f"Search timed out: {entry.participant_id}")

    def _end_room_for(self, participant_id: str, room_id: str) -> None:
        room = self.rooms.get(room_id)
        if room is None or not room.has_member(participant_id):
            return
        self.rooms.terminate(room_id, REASON_ENDED)

    def _broadcast_user_count(self) -> None:
        self._notifier.broadcast_all(UserCountEvent(count=len(self.connections)))
