"""Offline market feed: correlated GBM prices behind the Finnhub wire protocol."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import random
import time
from collections.abc import AsyncIterator

import numpy as np

from ..errors import UpstreamFeedError
from .interface import FeedConnection, FeedTransport
from .seed_prices import (
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    INTRA_CRYPTO_CORR,
    INTRA_EQUITY_CORR,
    SEED_PRICES,
    SYMBOL_PARAMS,
)

logger = logging.getLogger(__name__)


class GBMSimulator:
    """Geometric Brownian Motion price paths with sector correlation.

        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Z is drawn from a correlated standard normal via the Cholesky factor of
    the pairwise correlation matrix. Crypto trades around the clock, so dt
    is the tick interval as a fraction of a calendar year.
    """

    SECONDS_PER_YEAR = 365 * 24 * 3600
    DEFAULT_DT = 0.5 / SECONDS_PER_YEAR

    def __init__(
        self,
        symbols: list[str] | tuple[str, ...] = (),
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability
        self._symbols: list[str] = []
        self._prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}
        self._cholesky: np.ndarray | None = None

        for symbol in symbols:
            self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def step(self) -> dict[str, float]:
        """Advance every symbol by one tick. Returns {symbol: new_price}."""
        n = len(self._symbols)
        if n == 0:
            return {}

        z = np.random.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        result: dict[str, float] = {}
        for i, symbol in enumerate(self._symbols):
            mu = self._params[symbol]["mu"]
            sigma = self._params[symbol]["sigma"]
            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z[i]
            self._prices[symbol] *= math.exp(drift + diffusion)

            if random.random() < self._event_prob:
                shock = random.uniform(0.02, 0.05) * random.choice([-1, 1])
                self._prices[symbol] *= 1 + shock
                logger.debug("Simulated shock on %s: %+.1f%%", symbol, shock * 100)

            result[symbol] = round(self._prices[symbol], 4)
        return result

    def add_symbol(self, symbol: str) -> None:
        if symbol in self._prices:
            return
        self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    def remove_symbol(self, symbol: str) -> None:
        if symbol not in self._prices:
            return
        self._symbols.remove(symbol)
        del self._prices[symbol]
        del self._params[symbol]
        self._rebuild_cholesky()

    def get_price(self, symbol: str) -> float | None:
        return self._prices.get(symbol)

    def _add_symbol_internal(self, symbol: str) -> None:
        if symbol in self._prices:
            return
        self._symbols.append(symbol)
        self._prices[symbol] = SEED_PRICES.get(symbol, random.uniform(50.0, 300.0))
        self._params[symbol] = SYMBOL_PARAMS.get(symbol, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        n = len(self._symbols)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self.pairwise_correlation(self._symbols[i], self._symbols[j])
                corr[i, j] = corr[j, i] = rho
        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def pairwise_correlation(a: str, b: str) -> float:
        for group, rho in (("crypto", INTRA_CRYPTO_CORR), ("equity", INTRA_EQUITY_CORR)):
            members = CORRELATION_GROUPS[group]
            if a in members and b in members:
                return rho
        return CROSS_GROUP_CORR


class SimulatedFeedConnection:
    """In-process stand-in for one Finnhub websocket connection.

    Accepts subscribe/unsubscribe commands and yields a ``trade`` frame for
    the subscribed symbols every ``interval`` seconds. Starts with nothing
    subscribed, like the real feed.
    """

    def __init__(self, simulator: GBMSimulator, interval: float) -> None:
        self._sim = simulator
        self._interval = interval
        self._subscribed: dict[str, None] = {}
        self._closed = asyncio.Event()

    @property
    def subscribed(self) -> list[str]:
        return list(self._subscribed)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, message: str) -> None:
        if self._closed.is_set():
            raise UpstreamFeedError("simulated connection is closed")
        try:
            command = json.loads(message)
            action, symbol = command["type"], command["symbol"]
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Simulated feed ignoring bad command %r: %s", message, e)
            return

        if action == "subscribe":
            self._subscribed[symbol] = None
            self._sim.add_symbol(symbol)
        elif action == "unsubscribe":
            self._subscribed.pop(symbol, None)
            self._sim.remove_symbol(symbol)

    async def close(self) -> None:
        self._closed.set()

    def __aiter__(self) -> AsyncIterator[str]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[str]:
        while not self._closed.is_set():
            try:
                await asyncio.wait_for(self._closed.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass
            frame = self._next_frame()
            if frame is not None:
                yield frame

    def _next_frame(self) -> str | None:
        if not self._subscribed:
            return None
        prices = self._sim.step()
        now_ms = int(time.time() * 1000)
        data = [
            {"s": symbol, "p": prices[symbol], "t": now_ms, "v": round(random.uniform(0.01, 5.0), 4)}
            for symbol in self._subscribed
            if symbol in prices
        ]
        if not data:
            return None
        return json.dumps({"type": "trade", "data": data})


class SimulatedFeed(FeedTransport):
    """FeedTransport backed by the GBM simulator.

    Prices live in one simulator shared by successive connections, so a
    reconnect continues the same paths.
    """

    def __init__(self, interval: float = 0.5, event_probability: float = 0.001) -> None:
        self._interval = interval
        self._sim = GBMSimulator(event_probability=event_probability)

    @property
    def name(self) -> str:
        return "simulator"

    @property
    def simulator(self) -> GBMSimulator:
        return self._sim

    async def connect(self) -> FeedConnection:
        logger.info("Simulated feed connection opened (%.2fs ticks)", self._interval)
        return SimulatedFeedConnection(self._sim, self._interval)
