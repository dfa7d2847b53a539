"""Sync orchestration: fetch, reconcile, push and the auto-sync timer.

Components:
- SyncEngine: runs at most one reconciliation pass (and one push-all) at a time
- AutoSyncScheduler: cancellable periodic trigger for SyncEngine.sync_now
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .client import RemoteQuoteClient
from .exceptions import SyncUnavailable
from .models import Disposition, Quote
from .reconcile import ReconcileResult, ReconciliationEngine
from .store import QuoteStore

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 30.0


@dataclass
class SyncResult:
    """Result of one sync pass."""

    reconcile: ReconcileResult = field(default_factory=ReconcileResult)
    fetched: int = 0
    error: SyncUnavailable | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def added(self) -> int:
        return self.reconcile.added

    @property
    def merged(self) -> int:
        return self.reconcile.merged

    @property
    def conflicted(self) -> int:
        return self.reconcile.conflicted


@dataclass
class PushResult:
    """Result of pushing every local-only quote."""

    pushed: list[Quote] = field(default_factory=list)
    failed: list[Quote] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.pushed) + len(self.failed)


class AutoSyncScheduler:
    """Call ``trigger`` every ``interval`` seconds until stopped.

    Stopping cancels the pending sleep. A trigger that is already running
    is shielded from the cancellation and allowed to finish.
    """

    def __init__(
        self,
        trigger: Callable[[], Awaitable[Any]],
        interval: float = DEFAULT_SYNC_INTERVAL,
    ):
        self.trigger = trigger
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._cancelled: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer. Must be called with a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Auto-sync started (every {self.interval}s)")

    def stop(self) -> None:
        """Cancel any future trigger."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            self._cancelled.add(self._task)
            self._task.add_done_callback(self._cancelled.discard)
            logger.info("Auto-sync stopped")
        self._task = None

    async def aclose(self) -> None:
        """Stop the timer and wait for cancelled loops and in-flight triggers."""
        self.stop()
        for task in list(self._cancelled):
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)

            inflight = asyncio.create_task(self.trigger())
            self._inflight.add(inflight)
            inflight.add_done_callback(self._inflight.discard)

            try:
                await asyncio.shield(inflight)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Auto-sync trigger failed: {e}")


class SyncEngine:
    """Coordinate a QuoteStore with a RemoteQuoteClient.

    Args:
        store: The open quote store.
        client: Remote client used for fetch and push.
        interval: Auto-sync period in seconds.
    """

    def __init__(
        self,
        store: QuoteStore,
        client: RemoteQuoteClient,
        interval: float = DEFAULT_SYNC_INTERVAL,
    ):
        self.store = store
        self.client = client
        self.reconciler = ReconciliationEngine(store)
        self.scheduler = AutoSyncScheduler(self.sync_now, interval)

        self._sync_in_progress = False
        self._push_in_progress = False

    async def __aenter__(self) -> "SyncEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    @property
    def push_in_progress(self) -> bool:
        return self._push_in_progress

    def start(self) -> None:
        """Resume auto-sync if the stored preference asks for it."""
        if self.store.preferences.auto_sync_enabled:
            self.scheduler.start()

    async def aclose(self) -> None:
        await self.scheduler.aclose()

    async def sync_now(self) -> SyncResult | None:
        """Fetch the remote batch and reconcile it.

        Returns:
            SyncResult, or None if another pass was already running
        """
        if self._sync_in_progress:
            logger.debug("Sync already in progress, ignoring trigger")
            return None

        self._sync_in_progress = True
        start_time = time.monotonic()
        try:
            fetch = await self.client.fetch_batch()
            if not fetch.ok:
                logger.warning(f"Sync unavailable, treating batch as empty: {fetch.error}")

            reconcile = self.reconciler.reconcile(fetch.quotes)

            if fetch.ok:
                self.store.mark_synced()

            return SyncResult(
                reconcile=reconcile,
                fetched=len(fetch.quotes),
                error=fetch.error,
                duration=time.monotonic() - start_time,
            )
        finally:
            self._sync_in_progress = False

    async def push_all(self) -> PushResult | None:
        """Push every local-only quote concurrently.

        Each quote is marked remote only after its own push succeeds, so a
        partial failure leaves the rest local for the next attempt.

        Returns:
            PushResult, or None if a push-all was already running
        """
        if self._push_in_progress:
            logger.debug("Push already in progress, ignoring trigger")
            return None

        self._push_in_progress = True
        result = PushResult()

        try:
            pending = self.store.local_only()
            # The store stays writable by other callers while pushes are in flight.
            outcomes = await asyncio.gather(
                *(self.client.push(quote) for quote in pending), return_exceptions=True
            )

            with self.store.batch():
                for quote, outcome in zip(pending, outcomes):
                    if isinstance(outcome, Exception):
                        logger.error(f"Unexpected error pushing {quote.id}: {outcome}")
                        result.failed.append(quote)
                    elif outcome is None:
                        result.failed.append(quote)
                    else:
                        updated = self.store.mark_pushed(quote.id, outcome)
                        if updated is not None:
                            result.pushed.append(updated)

            logger.info(
                f"Push complete: {len(result.pushed)} pushed, {len(result.failed)} failed"
            )
            return result
        finally:
            self._push_in_progress = False

    def set_auto_sync(self, enabled: bool) -> None:
        """Persist the preference and start or cancel the timer."""
        self.store.set_auto_sync(enabled)
        if enabled:
            self.scheduler.start()
        else:
            self.scheduler.stop()

    def resolve_conflict(self, key: str, disposition: Disposition | str) -> Quote | None:
        return self.reconciler.resolve(key, disposition)
