"""Async HTTP client for the remote quote source."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .exceptions import SyncUnavailable
from .models import MonotonicClock, Quote, QuoteSource, normalize_record, remote_id

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_URL = "https://jsonplaceholder.typicode.com/posts"


@dataclass
class FetchResult:
    """Outcome of a remote fetch.

    A failed fetch is not an exception: ``quotes`` is empty and ``error``
    carries the reason.
    """

    quotes: list[Quote] = field(default_factory=list)
    error: Optional[SyncUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RemoteQuoteClient:
    """Client for a JSON collection endpoint serving post-shaped items.

    Items look like ``{"id": 1, "title": "...", "body": "...", "userId": 1}``.
    A ``text``/``category`` pair is used instead of ``title``/``userId`` when
    the remote provides one.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_REMOTE_URL,
        timeout: float = 10,
        fetch_limit: Optional[int] = 5,
        user_id: int = 1,
        clock: Optional[MonotonicClock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Collection URL; GET lists items, POST creates one
            timeout: Request timeout in seconds
            fetch_limit: Maximum items per fetch (sent as ``_limit``), None for all
            user_id: Owner id sent with pushed records
            clock: Clock used to stamp fetched records
            transport: Optional httpx transport override
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.fetch_limit = fetch_limit
        self.user_id = user_id
        self.clock = clock or MonotonicClock()

        self.client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "RemoteQuoteClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def map_item(self, item: Any) -> Optional[Quote]:
        """Map one remote item onto a ``Quote``, or None if it is unusable."""
        if not isinstance(item, dict):
            return None

        ident = item.get("id")
        if ident is None or isinstance(ident, bool) or str(ident).strip() == "":
            return None
        ref = str(ident).strip()

        category = item.get("category")
        if not category and item.get("userId") is not None:
            category = f"User {item['userId']}"

        return normalize_record(
            {
                "id": remote_id(ref),
                "text": item.get("text") or item.get("title"),
                "category": category,
                "source": QuoteSource.REMOTE.value,
                "remoteRef": ref,
            },
            self.clock,
        )

    async def fetch_batch(self) -> FetchResult:
        """Fetch the current remote batch.

        Returns:
            FetchResult; on any failure the quotes list is empty and the
            error is set
        """
        params = {"_limit": self.fetch_limit} if self.fetch_limit else None

        try:
            response = await self.client.get(self.base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Remote fetch failed: {e}")
            return FetchResult(error=SyncUnavailable(f"Remote fetch failed: {e}"))

        if not isinstance(payload, list):
            logger.warning("Remote fetch returned a non-list payload")
            return FetchResult(
                error=SyncUnavailable(
                    f"Expected a list from remote, got {type(payload).__name__}"
                )
            )

        quotes = []
        for item in payload:
            quote = self.map_item(item)
            if quote is None:
                logger.debug(f"Skipping unusable remote item: {item!r}")
                continue
            quotes.append(quote)

        logger.info(f"Fetched {len(quotes)} remote quotes")
        return FetchResult(quotes=quotes)

    async def push(self, quote: Quote) -> Optional[str]:
        """Create ``quote`` at the remote source.

        Returns:
            The remote id as a string, or None if the push failed
        """
        try:
            response = await self.client.post(
                self.base_url,
                json={
                    "title": quote.text,
                    "body": quote.category,
                    "userId": self.user_id,
                },
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Push failed for {quote.id}: {e}")
            return None

        ident = data.get("id") if isinstance(data, dict) else None
        if ident is None:
            logger.warning(f"Push for {quote.id} returned no remote id")
            return None

        logger.info(f"Pushed {quote.id} as remote {ident}")
        return str(ident)
