"""Abstract interfaces between the market components and their collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class FeedConnection(Protocol):
    """One live connection to a market data feed.

    A ``websockets`` client connection satisfies this protocol as-is. Async
    iteration yields inbound text frames and ends when the connection closes
    cleanly; an abnormal close raises.
    """

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str]: ...


class FeedTransport(ABC):
    """Contract for market data providers.

    The FeedConnector owns the connection lifecycle and calls ``connect()``
    once per attempt. The upstream side holds no subscription state across
    connections, so every new connection starts with nothing subscribed.

    Lifecycle:
        transport = create_feed_transport(settings)
        conn = await transport.connect()
        await conn.send('{"type": "subscribe", "symbol": "BINANCE:BTCUSDT"}')
        async for frame in conn:
            ...
        await conn.close()
    """

    @abstractmethod
    async def connect(self) -> FeedConnection:
        """Open a new connection. Raises UpstreamFeedError on failure."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short label used in logs."""


class SubscriptionListener(Protocol):
    """Notified by the SubscriptionRegistry after each effective change."""

    async def on_subscribe(self, symbol: str) -> None: ...

    async def on_unsubscribe(self, symbol: str) -> None: ...


class ClientChannel(Protocol):
    """Push connection to one browser session, as seen by the BroadcastHub."""

    @property
    def name(self) -> str: ...

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: str) -> None: ...
