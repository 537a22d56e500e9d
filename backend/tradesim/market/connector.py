"""Upstream feed connector with reconnect backoff and subscription replay."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from collections.abc import Callable
from typing import Any

from ..errors import UpstreamFeedError
from .cache import PriceCache
from .interface import FeedConnection, FeedTransport
from .models import PriceCacheEntry, Trade
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)

PriceListener = Callable[[PriceCacheEntry], None]


class FeedState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


class Backoff:
    """Exponential reconnect delay: ``min(base * 2**attempt, cap)``.

    ``attempt`` counts consecutive failures and goes back to 0 on a
    successful open.
    """

    # 2**62 already exceeds any sane cap; keeps the float math finite
    _MAX_EXPONENT = 62

    def __init__(self, base: float = 1.0, cap: float = 30.0) -> None:
        if base <= 0:
            raise ValueError("backoff base must be positive")
        if cap < base:
            raise ValueError("backoff cap must be >= base")
        self.base = base
        self.cap = cap
        self.attempt = 0

    def delay(self, attempt: int) -> float:
        return min(self.base * 2 ** min(attempt, self._MAX_EXPONENT), self.cap)

    def next_delay(self) -> float:
        """Delay for the current attempt, then advance the attempt counter."""
        delay = self.delay(self.attempt)
        self.attempt += 1
        return delay

    def reset(self) -> None:
        self.attempt = 0


def decode_message(raw: str | bytes) -> dict[str, Any]:
    """Decode one upstream frame into a JSON object."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise UpstreamFeedError(f"undecodable frame: {e}") from e
    if not isinstance(message, dict):
        raise UpstreamFeedError(f"expected a JSON object, got {type(message).__name__}")
    return message


def encode_command(action: str, symbol: str) -> str:
    return json.dumps({"type": action, "symbol": symbol})


class FeedConnector:
    """Owns the single connection to the market data feed.

    A single background task runs the connection loop, so there is never
    more than one live connection or more than one pending reconnect:

        idle -> connecting -> connected -> disconnected -> connecting -> ...
                    \\-> disconnected (connect failed)

    On every successful open, all symbols in the SubscriptionRegistry are
    re-sent as subscribe commands in registry order. Each inbound trade
    updates the PriceCache and is then handed to every price listener, in
    the order the feed delivered them.
    """

    def __init__(
        self,
        transport: FeedTransport,
        price_cache: PriceCache,
        registry: SubscriptionRegistry,
        backoff: Backoff | None = None,
    ) -> None:
        self._transport = transport
        self._cache = price_cache
        self._registry = registry
        self._backoff = backoff or Backoff()
        self._listeners: list[PriceListener] = []
        self._state = FeedState.IDLE
        self._conn: FeedConnection | None = None
        self._task: asyncio.Task | None = None
        self._opened = 0
        registry.add_listener(self)

    # --- Public API ---

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    @property
    def connections_opened(self) -> int:
        """Number of successful opens since construction."""
        return self._opened

    def add_listener(self, listener: PriceListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="feed-connector")
        logger.info("Feed connector started (%s)", self._transport.name)

    async def stop(self) -> None:
        """Cancel the connection loop and close the live connection. Idempotent."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._state = FeedState.STOPPED
        logger.info("Feed connector stopped")

    async def subscribe(self, symbol: str) -> bool:
        return await self._registry.add(symbol)

    async def unsubscribe(self, symbol: str) -> bool:
        return await self._registry.remove(symbol)

    def handle_message(self, raw: str | bytes) -> int:
        """Apply one upstream frame. Returns the number of trades applied.

        Malformed frames and items are logged and dropped.
        """
        try:
            message = decode_message(raw)
        except UpstreamFeedError as e:
            logger.warning("Dropping malformed feed message: %s", e)
            return 0

        kind = message.get("type")
        if kind == "trade":
            return self._apply_trades(message.get("data"))
        if kind == "ping":
            return 0
        if kind == "error":
            logger.warning("Feed reported an error: %s", message.get("msg"))
            return 0
        logger.debug("Ignoring feed message of type %r", kind)
        return 0

    # --- SubscriptionListener ---

    async def on_subscribe(self, symbol: str) -> None:
        await self._send_command("subscribe", symbol)

    async def on_unsubscribe(self, symbol: str) -> None:
        await self._send_command("unsubscribe", symbol)

    # --- Internals ---

    async def _send_command(self, action: str, symbol: str) -> None:
        conn = self._conn
        if conn is None or self._state is not FeedState.CONNECTED:
            # Replay on the next open picks it up
            logger.debug("Feed not connected; %s %s deferred", action, symbol)
            return
        try:
            await conn.send(encode_command(action, symbol))
        except Exception as e:
            logger.warning("Failed to send %s for %s: %s", action, symbol, e)

    async def _run(self) -> None:
        while True:
            await self._connect_once()
            self._state = FeedState.DISCONNECTED
            delay = self._backoff.next_delay()
            logger.info(
                "Reconnecting to %s in %.1fs (attempt %d)",
                self._transport.name,
                delay,
                self._backoff.attempt,
            )
            await asyncio.sleep(delay)

    async def _connect_once(self) -> None:
        """One connection lifetime: connect, replay, read until it ends."""
        self._state = FeedState.CONNECTING
        try:
            conn = await self._transport.connect()
        except Exception as e:
            logger.warning("Connect to %s failed: %s", self._transport.name, e)
            return

        self._conn = conn
        self._state = FeedState.CONNECTED
        self._backoff.reset()
        self._opened += 1
        logger.info("Connected to %s", self._transport.name)

        try:
            replayed = 0
            for symbol in self._registry.symbols():
                # Removed while an earlier send was in flight
                if not self._registry.contains(symbol):
                    continue
                await conn.send(encode_command("subscribe", symbol))
                replayed += 1
            logger.info("Replayed %d subscriptions", replayed)

            async for raw in conn:
                self.handle_message(raw)
            logger.warning("Feed %s closed the connection", self._transport.name)
        except Exception as e:
            logger.warning("Feed %s error: %s", self._transport.name, e)
        finally:
            self._conn = None
            try:
                await conn.close()
            except Exception as e:
                logger.debug("Error closing feed connection: %s", e)

    def _apply_trades(self, data: Any) -> int:
        if not isinstance(data, list):
            logger.warning("Dropping trade message without a data list")
            return 0

        applied = 0
        for item in data:
            try:
                trade = Trade.from_wire(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed trade %r: %s", item, e)
                continue
            entry = self._cache.update(trade.symbol, trade.price, observed_at=trade.timestamp)
            self._emit(entry)
            applied += 1
        return applied

    def _emit(self, entry: PriceCacheEntry) -> None:
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception:
                logger.exception("Price listener failed for %s", entry.symbol)
