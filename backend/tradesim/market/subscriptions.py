"""Set of symbols the upstream feed should stream."""

from __future__ import annotations

import logging

from .interface import SubscriptionListener

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Insertion-ordered set of subscribed symbols.

    Single source of truth for what the FeedConnector subscribes to. The set
    is updated before listeners are notified, so any subscribe decision made
    after ``add()``/``remove()`` returns observes the change. Iteration order
    is insertion order, which keeps resubscription replay deterministic.
    """

    def __init__(self, symbols: list[str] | tuple[str, ...] = ()) -> None:
        self._symbols: dict[str, None] = dict.fromkeys(symbols)
        self._listeners: list[SubscriptionListener] = []

    def add_listener(self, listener: SubscriptionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    async def add(self, symbol: str) -> bool:
        """Subscribe a symbol. Returns False if it was already present."""
        if symbol in self._symbols:
            return False
        self._symbols[symbol] = None
        logger.info("Subscribed %s (%d active)", symbol, len(self._symbols))
        for listener in list(self._listeners):
            await listener.on_subscribe(symbol)
        return True

    async def remove(self, symbol: str) -> bool:
        """Unsubscribe a symbol. Returns False if it was not present."""
        if symbol not in self._symbols:
            return False
        del self._symbols[symbol]
        logger.info("Unsubscribed %s (%d active)", symbol, len(self._symbols))
        for listener in list(self._listeners):
            await listener.on_unsubscribe(symbol)
        return True

    def contains(self, symbol: str) -> bool:
        return symbol in self._symbols

    def symbols(self) -> list[str]:
        """Current symbols in insertion order. Returns a copy."""
        return list(self._symbols)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)
