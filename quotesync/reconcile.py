"""Merge a remote batch into the quote store.

The merge is additive: remote quotes with no local counterpart are
appended, matching quotes with different content replace the local
version (remote wins), and local-only quotes are never touched. Every
overwrite is captured in the conflict ledger so the user can revert it.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .exceptions import ConflictNotFoundError
from .models import Conflict, Disposition, Quote, QuoteSource, stamp
from .store import QuoteStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Counts and new conflicts produced by one reconciliation pass."""

    added: int = 0
    merged: int = 0
    conflicted: int = 0
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.merged)

    def as_dict(self) -> dict:
        return {
            "added": self.added,
            "merged": self.merged,
            "conflicted": self.conflicted,
        }


class ReconciliationEngine:
    """Apply remote batches and conflict decisions to a QuoteStore."""

    def __init__(self, store: QuoteStore):
        self.store = store

    def reconcile(self, batch: Iterable[Quote]) -> ReconcileResult:
        """Merge ``batch`` into the store in a single pass.

        For each remote quote, in order:
        - no local quote shares its key: append it
        - a local quote shares the key with the same text and category: no-op
        - a local quote shares the key but differs: record a conflict and
          replace the local quote with the remote one

        The store is written once, after the whole batch is applied.

        Returns:
            ReconcileResult with added/merged/conflicted counts
        """
        result = ReconcileResult()
        ledger = self.store.ledger

        index: dict[str, Quote] = {}
        for quote in self.store.records:
            index.setdefault(quote.key, quote)

        with self.store.batch():
            for remote in batch:
                local = index.get(remote.key)

                if local is None:
                    appended = self.store.append(remote)
                    index[appended.key] = appended
                    result.added += 1
                    continue

                if local.same_content(remote):
                    continue

                # Keep the user's original version if an earlier overwrite
                # of this key is still waiting for a decision.
                previous = ledger.get(remote.key)
                snapshot = previous.local if previous else local

                conflict = Conflict(key=remote.key, local=snapshot, remote=remote)
                ledger.record(conflict)
                result.conflicts.append(conflict)

                current = self.store.replace(local.id, remote)
                index[remote.key] = current
                result.merged += 1
                result.conflicted += 1

                logger.info(f"Conflict on {remote.key}: remote version applied")

            self.store.save()

        logger.info(
            f"Reconciled batch: {result.added} added, {result.merged} merged, "
            f"{result.conflicted} conflicted"
        )
        return result

    def resolve(self, key: str, disposition: Disposition | str) -> Quote | None:
        """Close an open conflict.

        KEEP_LOCAL restores the captured local version with a fresh
        timestamp and local provenance. KEEP_REMOTE leaves the data as is.

        Returns:
            The quote now stored under ``key``

        Raises:
            ConflictNotFoundError: If no open conflict has ``key``
            ValueError: If ``disposition`` is not a known value
        """
        disposition = Disposition(disposition)
        conflict = self.store.ledger.get(key)
        if conflict is None:
            raise ConflictNotFoundError(f"No open conflict for {key}")

        if disposition == Disposition.KEEP_REMOTE:
            self.store.ledger.discard(key)
            logger.info(f"Kept remote version for {key}")
            return self.store.find_by_key(key)

        restored = stamp(conflict.local, self.store.clock, source=QuoteSource.LOCAL)
        current = self.store.find_by_key(key)
        if current is not None:
            restored = self.store.replace(current.id, restored)
        else:
            restored = self.store.append(restored)

        self.store.ledger.discard(key)
        logger.info(f"Reverted {key} to the local version")
        return restored

    def resolve_all(self, disposition: Disposition | str) -> list[Quote | None]:
        """Apply one decision to every open conflict, oldest first."""
        return [
            self.resolve(conflict.key, disposition)
            for conflict in self.store.ledger.entries()
        ]
