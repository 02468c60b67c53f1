from __future__ import annotations

from typing import Dict, Set


class BlockListStore:
    """Directed block relation; blocks live for the whole process."""

    def __init__(self) -> None:
        self._blocked: Dict[str, Set[str]] = {}

    def block(self, blocker_id: str, blocked_id: str) -> None:
        self._blocked.setdefault(blocker_id, set()).add(blocked_id)

    def has_blocked(self, blocker_id: str, blocked_id: str) -> bool:
        return blocked_id in self._blocked.get(blocker_id, ())

    def is_mutually_excluded(self, a: str, b: str) -> bool:
        return self.has_blocked(a, b) or self.has_blocked(b, a)

    def blocked_by(self, blocker_id: str) -> Set[str]:
        return set(self._blocked.get(blocker_id, ()))
