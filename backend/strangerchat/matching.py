from __future__ import annotations

import logging
from typing import Optional

from .blocks import BlockListStore
from .connections import ConnectionRegistry
from .rooms import Room, RoomRegistry
from .waiting import WaitingQueue

logger = logging.getLogger("strangerchat.matching")


class MatchEngine:
    """First-fit pairing over the waiting queue.

    Not synchronised on its own: callers hold the service lock across
    ``match`` and the follow-up enqueue.
    """

    def __init__(self, connections: ConnectionRegistry, queue: WaitingQueue,
                 blocks: BlockListStore, rooms: RoomRegistry):
        self._connections = connections
        self._queue = queue
        self._blocks = blocks
        self._rooms = rooms

    def match(self, seeker_id: str, avatar: str, nickname: str) -> Optional[Room]:
        self._connections.register(seeker_id, avatar, nickname)
        self._queue.remove(seeker_id)

        partner_id = self._select_candidate(seeker_id)
        if partner_id is None:
            return None
        # the partner keeps its queue slot and timer if the room cannot be created
        room = self._rooms.create(seeker_id, partner_id)
        self._queue.remove(partner_id)
        logger.info(f"Match found: {seeker_id} with {partner_id} in room {room.room_id}")
        return room

    def _select_candidate(self, seeker_id: str) -> Optional[str]:
        for candidate_id in self._queue.candidates():
            if candidate_id not in self._connections:
                # stale entry, its owner is gone
                self._queue.remove(candidate_id)
                continue
            if self._blocks.is_mutually_excluded(seeker_id, candidate_id):
                continue
            return candidate_id
        return None
