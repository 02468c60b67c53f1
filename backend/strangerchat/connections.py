from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol

from pydantic import BaseModel


@dataclass
class Participant:
    participant_id: str
    avatar: str = ""
    nickname: str = ""
    room_id: Optional[str] = None


class ConnectionRegistry:
    def __init__(self) -> None:
        self._participants: Dict[str, Participant] = {}

    def register(self, participant_id: str, avatar: str = "", nickname: str = "") -> Participant:
        participant = Participant(participant_id, avatar=avatar, nickname=nickname)
        self._participants[participant_id] = participant
        return participant

    def get(self, participant_id: str) -> Optional[Participant]:
        return self._participants.get(participant_id)

    def set_room(self, participant_id: str, room_id: Optional[str]) -> None:
        participant = self._participants.get(participant_id)
        if participant is not None:
            participant.room_id = room_id

    def remove(self, participant_id: str) -> Optional[Participant]:
        # Callers resolve room membership first, otherwise the room is orphaned
        return self._participants.pop(participant_id, None)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)


class Notifier(Protocol):
    """Outbound side of the transport, addressed by participant id.

    Implementations must not block; delivery is fire-and-forget.
    """

    def notify(self, participant_id: str, event: BaseModel) -> None: ...

    def broadcast(self, participant_ids: Iterable[str], event: BaseModel) -> None: ...

    def broadcast_all(self, event: BaseModel) -> None: ...
