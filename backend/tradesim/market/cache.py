"""Thread-safe in-memory price cache."""

from __future__ import annotations

import time
from threading import Lock

from .models import PriceCacheEntry


class PriceCache:
    """Thread-safe in-memory cache of the latest price for each symbol.

    Writer: the FeedConnector, one trade at a time.
    Readers: BroadcastHub snapshots, PortfolioService at buy time and listing.

    Entries are never removed. A symbol that is unsubscribed keeps its last
    price so a later resubscribe shows something instead of null.
    """

    def __init__(self) -> None:
        self._prices: dict[str, PriceCacheEntry] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every update

    def update(self, symbol: str, price: float, observed_at: float | None = None) -> PriceCacheEntry:
        """Overwrite the entry for a symbol. Returns the new entry."""
        entry = PriceCacheEntry(
            symbol=symbol,
            price=float(price),
            observed_at=observed_at or time.time(),
        )
        with self._lock:
            self._prices[symbol] = entry
            self._version += 1
        return entry

    def get(self, symbol: str) -> PriceCacheEntry | None:
        """Latest entry for a symbol, or None if never seen."""
        with self._lock:
            return self._prices.get(symbol)

    def get_price(self, symbol: str) -> float | None:
        entry = self.get(symbol)
        return entry.price if entry else None

    def get_all(self) -> dict[str, PriceCacheEntry]:
        """Snapshot of all entries. Returns a shallow copy."""
        with self._lock:
            return dict(self._prices)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._prices
