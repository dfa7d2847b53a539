"""In-memory quote collection backed by a key/value storage.

The QuoteStore is the single owner of the record list, the conflict ledger
and the user preferences for the lifetime of the process. Every mutation
persists immediately unless it runs inside ``batch()``, in which case the
collection is written once when the outermost batch exits.
"""

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from .exceptions import ImportFormatError, StorageUnavailable, ValidationError
from .ledger import ConflictLedger
from .models import (
    ALL_CATEGORIES,
    MonotonicClock,
    Preferences,
    Quote,
    QuoteSource,
    default_quotes,
    new_local_id,
    normalize_quote,
    normalize_record,
)
from .storage import (
    AUTO_SYNC_KEY,
    LAST_SYNC_KEY,
    QUOTES_KEY,
    SELECTED_CATEGORY_KEY,
    KeyValueStorage,
)

logger = logging.getLogger(__name__)


def parse_record_list(data: bytes) -> list[Mapping[str, Any]]:
    """Decode bytes into a list of record-shaped mappings.

    Raises:
        ImportFormatError: If the bytes are not a JSON list of objects
    """
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise ImportFormatError(f"Not valid JSON: {e}") from e

    if not isinstance(payload, list):
        raise ImportFormatError(
            f"Expected a list of quotes, got {type(payload).__name__}"
        )

    for position, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ImportFormatError(
                f"Item {position} is {type(item).__name__}, expected an object"
            )

    return payload


def serialize_quotes(quotes: Iterable[Quote]) -> bytes:
    return json.dumps(
        [quote.to_dict() for quote in quotes], indent=2, ensure_ascii=False
    ).encode("utf-8")


class QuoteStore:
    """Authoritative quote collection for the current process.

    Args:
        storage: Persistence backend.
        clock: Source of ``last_modified`` stamps; shared with collaborators
            that create records on the store's behalf.
    """

    def __init__(
        self, storage: KeyValueStorage, clock: MonotonicClock | None = None
    ) -> None:
        self.storage = storage
        self.clock = clock or MonotonicClock()
        self.ledger = ConflictLedger()
        self.preferences = Preferences()
        self.storage_available = True

        self._records: list[Quote] = []
        self._batch_depth = 0
        self._dirty = False
        self._opened = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "QuoteStore":
        """Load quotes and preferences from storage."""
        self.load()
        self._load_preferences()
        self._opened = True
        return self

    def close(self) -> None:
        """Flush pending writes. The in-memory state stays readable."""
        if self._dirty:
            self.save()
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def __enter__(self) -> "QuoteStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def _read(self, key: str) -> bytes | None:
        try:
            return self.storage.get(key)
        except StorageUnavailable as e:
            logger.warning(f"Storage unavailable, reading {key} failed: {e}")
            self.storage_available = False
            return None

    def _write(self, key: str, value: bytes) -> bool:
        try:
            self.storage.set(key, value)
            return True
        except StorageUnavailable as e:
            logger.warning(
                f"Storage unavailable, keeping {key} in memory only: {e}"
            )
            self.storage_available = False
            return False

    def _write_json(self, key: str, value: Any) -> bool:
        return self._write(key, json.dumps(value).encode("utf-8"))

    def _read_json(self, key: str) -> Any:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring unreadable value for {key}")
            return None

    def save(self) -> bool:
        """Persist the collection, or defer it while a batch is open."""
        if self._batch_depth:
            self._dirty = True
            return True
        self._dirty = False
        saved = self._write(QUOTES_KEY, serialize_quotes(self._records))
        if saved:
            logger.debug(f"Saved {len(self._records)} quotes")
        return saved

    @contextmanager
    def batch(self) -> Iterator["QuoteStore"]:
        """Group mutations into a single write."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self.save()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> list[Quote]:
        """Read the persisted collection, falling back to the defaults.

        Returns:
            The loaded quotes
        """
        raw = self._read(QUOTES_KEY)
        records: list[Quote] = []

        if raw:
            try:
                items = parse_record_list(raw)
            except ImportFormatError as e:
                logger.warning(f"Stored quotes are unreadable, using defaults: {e}")
                items = []
            records = self._normalize_all(items)

        if records:
            self._records = records
            logger.debug(f"Loaded {len(records)} quotes")
        else:
            self._records = default_quotes(self.clock)
            logger.info("No stored quotes, starting from the default set")
            self.save()

        return list(self._records)

    def _load_preferences(self) -> None:
        prefs = Preferences()

        category = self._read_json(SELECTED_CATEGORY_KEY)
        if isinstance(category, str) and category.strip():
            prefs.selected_category = category.strip()

        auto_sync = self._read_json(AUTO_SYNC_KEY)
        if isinstance(auto_sync, bool):
            prefs.auto_sync_enabled = auto_sync

        last_sync = self._read_json(LAST_SYNC_KEY)
        if isinstance(last_sync, str):
            try:
                prefs.last_sync = datetime.fromisoformat(last_sync)
            except ValueError:
                logger.warning(f"Ignoring malformed last sync time: {last_sync}")

        self.preferences = prefs

    def _normalize_all(
        self, items: Iterable[Mapping[str, Any] | Quote], taken: set[str] | None = None
    ) -> list[Quote]:
        taken = set() if taken is None else taken
        records = []
        for item in items:
            if isinstance(item, Quote):
                quote = normalize_quote(item, self.clock)
            else:
                quote = normalize_record(item, self.clock)
            if quote is None:
                continue
            quote = self._with_unique_id(quote, taken)
            taken.add(quote.id)
            records.append(quote)
        return records

    @staticmethod
    def _with_unique_id(quote: Quote, taken: set[str]) -> Quote:
        if quote.id not in taken:
            return quote
        fresh = new_local_id()
        logger.debug(f"Id {quote.id} already in use, reassigning to {fresh}")
        return replace(quote, id=fresh)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def records(self) -> tuple[Quote, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Quote]:
        return iter(tuple(self._records))

    def get(self, record_id: str) -> Quote | None:
        for quote in self._records:
            if quote.id == record_id:
                return quote
        return None

    def find_by_key(self, key: str) -> Quote | None:
        """Find the record whose correlation key is ``key``."""
        for quote in self._records:
            if quote.key == key:
                return quote
        return None

    def list_categories(self) -> list[str]:
        return sorted({quote.category for quote in self._records if quote.category})

    def filter(self, category: str | None = ALL_CATEGORIES) -> tuple[Quote, ...]:
        """Return the quotes in ``category``; "all" or None returns everything."""
        if category is None or category == ALL_CATEGORIES:
            return tuple(self._records)
        return tuple(quote for quote in self._records if quote.category == category)

    def local_only(self) -> list[Quote]:
        """Quotes that have never been pushed to the remote source."""
        return [quote for quote in self._records if quote.is_local_only]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, text: str, category: str) -> Quote:
        """Create a new local quote.

        Raises:
            ValidationError: If text or category is empty after trimming
        """
        text = (text or "").strip()
        category = (category or "").strip()
        if not text:
            raise ValidationError("Quote text cannot be empty")
        if not category:
            raise ValidationError("Quote category cannot be empty")

        quote = Quote(
            id=new_local_id(),
            text=text,
            category=category,
            last_modified=self.clock.now(),
        )
        self._records.append(quote)
        self.save()
        logger.info(f"Added quote {quote.id} in {category}")
        return quote

    def append(self, quote: Quote) -> Quote:
        """Append an already normalized quote, keeping ids unique."""
        quote = self._with_unique_id(quote, self._ids())
        self.clock.observe(quote.last_modified)
        self._records.append(quote)
        self.save()
        return quote

    def replace(self, record_id: str, quote: Quote) -> Quote:
        """Swap the record with ``record_id`` for ``quote`` in place.

        Raises:
            KeyError: If no record has ``record_id``
        """
        for position, current in enumerate(self._records):
            if current.id == record_id:
                break
        else:
            raise KeyError(record_id)

        others = self._ids() - {record_id}
        if quote.id in others:
            quote = replace(quote, id=record_id)

        self.clock.observe(quote.last_modified)
        self._records[position] = quote
        self.save()
        return quote

    def replace_all(self, records: Iterable[Quote | Mapping[str, Any]]) -> list[Quote]:
        """Replace the whole collection with re-normalized records."""
        self._records = self._normalize_all(records)
        self.save()
        logger.info(f"Replaced collection with {len(self._records)} quotes")
        return list(self._records)

    def remove(self, record_id: str) -> bool:
        """Delete a quote by id. Returns False if it was not present."""
        for position, quote in enumerate(self._records):
            if quote.id == record_id:
                del self._records[position]
                self.save()
                logger.info(f"Removed quote {record_id}")
                return True
        return False

    def reset_to_defaults(self) -> list[Quote]:
        """Discard every quote and open conflict; preferences are kept."""
        self.ledger.clear()
        return self.replace_all(default_quotes(self.clock))

    def mark_pushed(self, record_id: str, remote_ref: str) -> Quote | None:
        """Record a successful push. Returns None if the quote is gone."""
        current = self.get(record_id)
        if current is None:
            logger.warning(f"Pushed quote {record_id} no longer exists")
            return None
        return self.replace(
            record_id,
            replace(current, source=QuoteSource.REMOTE, remote_ref=remote_ref),
        )

    def _ids(self) -> set[str]:
        return {quote.id for quote in self._records}

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_bytes(self) -> bytes:
        return serialize_quotes(self._records)

    def import_bytes(self, data: bytes) -> list[Quote]:
        """Append quotes from exported bytes.

        Raises:
            ImportFormatError: If data is not a list of objects; nothing is
                applied in that case
        """
        items = parse_record_list(data)
        accepted = self._normalize_all(items, taken=self._ids())
        self._records.extend(accepted)
        self.save()
        logger.info(
            f"Imported {len(accepted)} quotes ({len(items) - len(accepted)} dropped)"
        )
        return accepted

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def select_category(self, category: str) -> str:
        category = (category or "").strip() or ALL_CATEGORIES
        self.preferences.selected_category = category
        self._write_json(SELECTED_CATEGORY_KEY, category)
        return category

    def set_auto_sync(self, enabled: bool) -> None:
        self.preferences.auto_sync_enabled = bool(enabled)
        self._write_json(AUTO_SYNC_KEY, bool(enabled))

    def mark_synced(self, when: datetime | None = None) -> datetime:
        when = when or datetime.now(timezone.utc)
        self.preferences.last_sync = when
        self._write_json(LAST_SYNC_KEY, when.isoformat())
        return when
