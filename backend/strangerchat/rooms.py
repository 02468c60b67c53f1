from __future__ import annotations

import itertools
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .connections import ConnectionRegistry, Notifier
from .models import (
    ChatEndedEvent,
    NewMessageEvent,
    PartnerDisconnectedEvent,
    PartnerTypingEvent,
)
from .timers import Clock, system_clock

DEFAULT_ROOM_MAX_AGE_SECONDS = 60 * 60  # 1 hour
ROOM_ID_ATTEMPTS = 8

REASON_ENDED = "Chat session ended"
REASON_EXPIRED = "Chat session expired"

logger = logging.getLogger("strangerchat.rooms")


@dataclass
class Room:
    room_id: str
    members: Tuple[str, str]
    created_at: float
    active: bool = True

    def has_member(self, participant_id: str) -> bool:
        return participant_id in self.members

    def partner_of(self, participant_id: str) -> Optional[str]:
        if participant_id not in self.members:
            return None
        a, b = self.members
        return b if participant_id == a else a


def generate_room_id() -> str:
    # ~128-bit token, URL-safe
    return secrets.token_urlsafe(16)


class RoomRegistry:
    """Active two-party rooms.

    A room only ever exists with both members; every exit path deletes it.
    """

    def __init__(
        self,
        connections: ConnectionRegistry,
        notifier: Notifier,
        clock: Clock = system_clock,
        id_factory: Callable[[], str] = generate_room_id,
    ):
        self._rooms: Dict[str, Room] = {}
        self._connections = connections
        self._notifier = notifier
        self._clock = clock
        self._id_factory = id_factory
        self._message_ids = itertools.count(1)

    def create(self, member_a: str, member_b: str) -> Room:
        if member_a == member_b:
            raise ValueError("a room needs two distinct members")
        room = Room(room_id=self._new_room_id(), members=(member_a, member_b),
                    created_at=self._clock())
        self._rooms[room.room_id] = room
        self._connections.set_room(member_a, room.room_id)
        self._connections.set_room(member_b, room.room_id)
        logger.info(f"Room created: {room.room_id}, members={member_a},{member_b}")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        room = self._rooms.get(room_id)
        if room is None or not room.active:
            return None
        return room

    def partner_of(self, room_id: str, participant_id: str) -> Optional[str]:
        room = self.get(room_id)
        return room.partner_of(participant_id) if room else None

    def relay(self, room_id: str, sender_id: str, message: str) -> bool:
        partner_id = self.partner_of(room_id, sender_id)
        if partner_id is None:
            logger.debug(f"Dropped message: room={room_id}, sender={sender_id}")
            return False
        self._notifier.notify(partner_id, NewMessageEvent(
            id=next(self._message_ids),
            content=message,
            timestamp=datetime.fromtimestamp(self._clock(), timezone.utc),
        ))
        return True

    def set_typing(self, room_id: str, sender_id: str, is_typing: bool) -> bool:
        partner_id = self.partner_of(room_id, sender_id)
        if partner_id is None:
            return False
        self._notifier.notify(partner_id, PartnerTypingEvent(isTyping=is_typing))
        return True

    def leave(self, participant_id: str, room_id: str) -> bool:
        room = self.get(room_id)
        if room is None or not room.has_member(participant_id):
            return False
        partner_id = room.partner_of(participant_id)
        self._close(room)
        if partner_id in self._connections:
            self._notifier.notify(partner_id, PartnerDisconnectedEvent())
        logger.info(f"Participant left room: room={room_id}, participant={participant_id}")
        return True

    def terminate(self, room_id: str, reason: str = REASON_ENDED) -> bool:
        room = self.get(room_id)
        if room is None:
            return False
        self._close(room)
        recipients = [pid for pid in room.members if pid in self._connections]
        self._notifier.broadcast(recipients, ChatEndedEvent(reason=reason))
        logger.info(f"Room terminated: room={room_id}, reason={reason}")
        return True

    def reap(self, max_age_seconds: float = DEFAULT_ROOM_MAX_AGE_SECONDS) -> List[str]:
        """Terminate rooms older than ``max_age_seconds``.

        Age counts from creation only; chatting does not extend a room.
        """
        now = self._clock()
        expired = [room_id for room_id, room in self._rooms.items()
                   if now - room.created_at > max_age_seconds]
        for room_id in expired:
            self.terminate(room_id, REASON_EXPIRED)
        return expired

    def _close(self, room: Room) -> None:
        room.active = False
        self._rooms.pop(room.room_id, None)
        for pid in room.members:
            participant = self._connections.get(pid)
            if participant is not None and participant.room_id == room.room_id:
                participant.room_id = None

    def _new_room_id(self) -> str:
        for _ in range(ROOM_ID_ATTEMPTS):
            room_id = self._id_factory()
            if room_id not in self._rooms:
                return room_id
            logger.warning(f"Room id collision: {room_id}")
        raise RuntimeError("could not allocate a unique room id")

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))
