"""Data models for market data."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PriceCacheEntry:
    """Last known price of one symbol and when it was observed."""

    symbol: str
    price: float
    observed_at: float = field(default_factory=time.time)  # Unix seconds

    def to_dict(self) -> dict:
        """Payload of an ``update`` frame sent to clients."""
        return {"symbol": self.symbol, "price": self.price}


@dataclass(frozen=True, slots=True)
class Trade:
    """One item of an upstream ``trade`` message."""

    symbol: str
    price: float
    timestamp: float | None = None  # Unix seconds
    volume: float | None = None

    @classmethod
    def from_wire(cls, item: dict) -> Trade:
        """Build from a Finnhub trade item ``{"s", "p", "t", "v"}``.

        Raises KeyError, TypeError or ValueError on malformed items.
        """
        symbol = item["s"]
        if not isinstance(symbol, str) or not symbol:
            raise ValueError(f"invalid symbol: {symbol!r}")
        price = item["p"]
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise TypeError(f"invalid price for {symbol}: {price!r}")
        if not math.isfinite(price) or price <= 0:
            raise ValueError(f"price must be finite and positive for {symbol}: {price!r}")
        # Finnhub timestamps are Unix milliseconds
        ts = item.get("t")
        timestamp = ts / 1000.0 if isinstance(ts, (int, float)) and ts > 0 else None
        volume = item.get("v")
        return cls(
            symbol=symbol,
            price=float(price),
            timestamp=timestamp,
            volume=float(volume) if isinstance(volume, (int, float)) else None,
        )
