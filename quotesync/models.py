"""Data model for the quote store.

Every record that enters the store, whether loaded from storage, imported
from a file or fetched from the remote source, goes through
``normalize_record`` so the rest of the package only ever sees one
canonical ``Quote`` shape.
"""

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

UNCATEGORIZED = "Uncategorized"
ALL_CATEGORIES = "all"

LOCAL_PREFIX = "local-"
REMOTE_PREFIX = "remote-"

DEFAULT_QUOTES = [
    (
        "The best way to get started is to quit talking and begin doing.",
        "Motivation",
    ),
    ("Don’t let yesterday take up too much of today.", "Wisdom"),
    (
        "It’s not whether you get knocked down, it’s whether you get up.",
        "Resilience",
    ),
    ("Success is not in what you have, but who you are.", "Success"),
]


class QuoteSource(str, Enum):
    """Where a quote originated."""

    LOCAL = "local"
    REMOTE = "remote"


class Disposition(str, Enum):
    """User decision for an open conflict."""

    KEEP_LOCAL = "local"
    KEEP_REMOTE = "remote"


class MonotonicClock:
    """Millisecond wall clock that never repeats or goes backwards."""

    def __init__(self):
        self._last = 0

    def now(self) -> int:
        stamp = int(time.time() * 1000)
        if stamp <= self._last:
            stamp = self._last + 1
        self._last = stamp
        return stamp

    def observe(self, stamp: int) -> None:
        """Make sure future stamps sort after an existing one."""
        if stamp > self._last:
            self._last = stamp


def new_local_id() -> str:
    return f"{LOCAL_PREFIX}{uuid.uuid4().hex}"


def remote_id(ref: Any) -> str:
    return f"{REMOTE_PREFIX}{ref}"


def source_from_id(record_id: str) -> QuoteSource:
    if record_id.startswith(REMOTE_PREFIX):
        return QuoteSource.REMOTE
    return QuoteSource.LOCAL


@dataclass(frozen=True)
class Quote:
    """A single quote record.

    Instances are immutable; the store swaps whole records instead of
    editing them, so any reference handed out is already a snapshot.
    """

    id: str
    text: str
    category: str
    last_modified: int
    source: QuoteSource = QuoteSource.LOCAL
    remote_ref: str | None = None

    @property
    def key(self) -> str:
        """Correlation key shared with the remote counterpart."""
        return self.remote_ref or self.id

    @property
    def is_local_only(self) -> bool:
        return self.source == QuoteSource.LOCAL and self.remote_ref is None

    def same_content(self, other: "Quote") -> bool:
        return self.text == other.text and self.category == other.category

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the export field names."""
        data = {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "lastModified": self.last_modified,
            "source": self.source.value,
        }
        if self.remote_ref is not None:
            data["remoteRef"] = self.remote_ref
        return data


@dataclass(frozen=True)
class Conflict:
    """A local/remote disagreement captured during reconciliation."""

    key: str
    local: Quote
    remote: Quote
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Preferences:
    """Scalar user state persisted alongside the quotes."""

    selected_category: str = ALL_CATEGORIES
    auto_sync_enabled: bool = False
    last_sync: datetime | None = None


def _clean_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def normalize_record(raw: Mapping[str, Any], clock: MonotonicClock) -> Quote | None:
    """Coerce a loosely shaped mapping into a ``Quote``.

    Accepts both the export field names (``lastModified``, ``remoteRef``)
    and their snake_case forms. Returns None when there is no usable text.
    """
    text = _clean_str(raw.get("text"))
    if not text:
        return None

    category = _clean_str(raw.get("category")) or UNCATEGORIZED

    record_id = _clean_str(raw.get("id"))

    source_raw = raw.get("source")
    try:
        source = QuoteSource(source_raw)
    except ValueError:
        source = source_from_id(record_id) if record_id else QuoteSource.LOCAL

    if not record_id:
        record_id = new_local_id()

    remote_ref = _clean_str(raw.get("remoteRef", raw.get("remote_ref"))) or None
    if remote_ref is None and source == QuoteSource.REMOTE:
        if record_id.startswith(REMOTE_PREFIX):
            remote_ref = record_id[len(REMOTE_PREFIX) :] or record_id
        else:
            remote_ref = record_id

    stamp = raw.get("lastModified", raw.get("last_modified"))
    if isinstance(stamp, (int, float)) and not isinstance(stamp, bool) and stamp > 0:
        last_modified = int(stamp)
        clock.observe(last_modified)
    else:
        last_modified = clock.now()

    return Quote(
        id=record_id,
        text=text,
        category=category,
        last_modified=last_modified,
        source=source,
        remote_ref=remote_ref,
    )


def normalize_quote(quote: Quote, clock: MonotonicClock) -> Quote | None:
    """Re-run normalization on an existing ``Quote``."""
    return normalize_record(quote.to_dict(), clock)


def default_quotes(clock: MonotonicClock) -> list[Quote]:
    """Build the built-in starter set with fresh local ids."""
    return [
        Quote(
            id=new_local_id(),
            text=text,
            category=category,
            last_modified=clock.now(),
        )
        for text, category in DEFAULT_QUOTES
    ]


def stamp(quote: Quote, clock: MonotonicClock, **changes: Any) -> Quote:
    """Copy a quote with changes and a new ``last_modified``."""
    return replace(quote, last_modified=clock.now(), **changes)
