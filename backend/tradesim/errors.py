"""Error taxonomy shared by the market and portfolio subsystems."""

from __future__ import annotations


class TradeSimError(Exception):
    """Base class for all domain errors raised by the backend."""


class ValidationError(TradeSimError):
    """Input rejected before any mutation (bad ticker, quantity or price)."""


class NotFoundError(TradeSimError):
    """No holding exists for the requested ticker."""

    def __init__(self, ticker: str) -> None:
        super().__init__(f"Stock not found: {ticker}")
        self.ticker = ticker


class InsufficientQuantityError(TradeSimError):
    """A sell asked for more units than the holding owns."""

    def __init__(self, ticker: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient shares of {ticker}: requested {requested}, own {available}"
        )
        self.ticker = ticker
        self.requested = requested
        self.available = available


class UpstreamFeedError(TradeSimError):
    """Malformed upstream message or transport failure.

    Contained inside the feed connector: logged, then the message is dropped
    or the connection is re-established.
    """


class StoreError(TradeSimError):
    """The portfolio store failed to read or commit."""
