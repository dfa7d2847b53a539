"""Choose which quote(s) to show for the current category filter."""

import logging
import random
from typing import Optional

from .models import Quote
from .store import QuoteStore

logger = logging.getLogger(__name__)


class QuotePicker:
    """Random single-quote selection over the store's current filter.

    The last pick is remembered for the life of the picker so a caller can
    show the same quote again without drawing a new one.

    Args:
        store: Store to read from.
        rng: Random source; inject a seeded ``random.Random`` for
            reproducible picks.
    """

    def __init__(self, store: QuoteStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()
        self._last: Optional[tuple[str, str]] = None

    def _category(self, category: Optional[str]) -> str:
        return category or self.store.preferences.selected_category

    def view(self, category: Optional[str] = None) -> tuple[Quote, ...]:
        """Full ordered view for ``category`` (default: the selected one)."""
        return self.store.filter(self._category(category))

    def pick(self, category: Optional[str] = None) -> Optional[Quote]:
        """Draw one quote uniformly from the view. None if the view is empty."""
        category = self._category(category)
        view = self.store.filter(category)
        if not view:
            self._last = None
            return None

        quote = self.rng.choice(view)
        self._last = (category, quote.id)
        logger.debug(f"Picked {quote.id} from {len(view)} quotes in {category}")
        return quote

    def current(self, category: Optional[str] = None) -> Optional[Quote]:
        """Return the cached pick if it is still in the same filter's view."""
        if self._last is None:
            return None

        cached_category, quote_id = self._last
        if cached_category != self._category(category):
            return None

        for quote in self.store.filter(cached_category):
            if quote.id == quote_id:
                return quote
        return None

    def current_or_pick(self, category: Optional[str] = None) -> Optional[Quote]:
        return self.current(category) or self.pick(category)
