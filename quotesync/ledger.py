"""Open conflicts awaiting a user decision."""

import logging

from .models import Conflict

logger = logging.getLogger(__name__)


class ConflictLedger:
    """Transient, insertion-ordered set of conflicts keyed by correlation key.

    The ledger is not persisted: conflicts live only for the current
    process. Recording a second conflict for a key replaces the first,
    keeping the newest pair of versions.
    """

    def __init__(self):
        self._entries: dict[str, Conflict] = {}

    def record(self, conflict: Conflict) -> None:
        if conflict.key in self._entries:
            logger.debug(f"Replacing open conflict for {conflict.key}")
            del self._entries[conflict.key]
        self._entries[conflict.key] = conflict

    def get(self, key: str) -> Conflict | None:
        return self._entries.get(key)

    def discard(self, key: str) -> Conflict | None:
        return self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> list[Conflict]:
        return list(self._entries.values())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries.values()))
