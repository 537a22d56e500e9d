"""Buy/sell against the portfolio store, kept in step with subscriptions."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..errors import InsufficientQuantityError, NotFoundError, ValidationError
from ..market.cache import PriceCache
from ..market.subscriptions import SubscriptionRegistry
from .models import Holding
from .store import SqlPortfolioStore

logger = logging.getLogger(__name__)


def validate_ticker(ticker: object) -> str:
    if not isinstance(ticker, str) or not ticker.strip():
        raise ValidationError("ticker must be a non-empty string")
    return ticker.strip()


def validate_quantity(quantity: object) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise ValidationError(f"quantity must be positive, got {quantity}")
    return quantity


class PortfolioService:
    """Applies trades to the store and keeps the SubscriptionRegistry in step.

    Every read-modify-write on a ticker runs under that ticker's lock, so
    concurrent buys and sells never lose an update and two first buys never
    both create a row. The registry is only touched after the store commit
    succeeded; a StoreError leaves subscriptions unchanged.

    A crash between commit and registry update can leave a sold-out ticker
    subscribed until restart. Startup restores only seeds and held tickers,
    so the leak is bounded.
    """

    def __init__(
        self,
        store: SqlPortfolioStore,
        registry: SubscriptionRegistry,
        price_cache: PriceCache,
        seed_symbols: tuple[str, ...] | list[str] = (),
    ) -> None:
        self._store = store
        self._registry = registry
        self._cache = price_cache
        self._seed_symbols = tuple(seed_symbols)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._seed_lock = asyncio.Lock()

    @property
    def seed_symbols(self) -> tuple[str, ...]:
        return self._seed_symbols

    # --- Trades ---

    async def buy(
        self,
        ticker: str,
        quantity: int,
        reference_price: float | None = None,
        name: str | None = None,
    ) -> Holding:
        """Buy units of a ticker, creating the holding on first buy.

        A new holding records ``reference_price`` if given, else the cached
        live price. Buying more of an existing holding keeps its original
        ``buy_price``; no average-cost accounting.
        """
        ticker = validate_ticker(ticker)
        quantity = validate_quantity(quantity)
        if reference_price is not None and (
            not math.isfinite(reference_price) or reference_price <= 0
        ):
            raise ValidationError(f"reference price must be finite and positive, got {reference_price}")

        async with self._locked(ticker):
            holding = await self._store.find_by_ticker(ticker)
            if holding is None:
                price = reference_price if reference_price is not None else self._cache.get_price(ticker)
                if price is None:
                    raise ValidationError(f"no price available for {ticker}; pass a reference price")
                holding = await self._store.create(
                    Holding(ticker=ticker, name=name or ticker, quantity=quantity, buy_price=price)
                )
                logger.info("Opened %s: %d @ %.4f", ticker, quantity, price)
            else:
                holding = await self._store.update(ticker, quantity=holding.quantity + quantity)
                if holding is None:
                    raise NotFoundError(ticker)
                logger.info("Bought %d %s (now %d)", quantity, ticker, holding.quantity)

            await self._registry.add(ticker)
        return holding

    async def sell(self, ticker: str, quantity: int) -> Holding:
        """Sell units of a ticker. Unsubscribes when the holding reaches zero."""
        ticker = validate_ticker(ticker)
        quantity = validate_quantity(quantity)

        async with self._locked(ticker):
            holding = await self._store.find_by_ticker(ticker)
            if holding is None:
                raise NotFoundError(ticker)
            if quantity > holding.quantity:
                raise InsufficientQuantityError(ticker, quantity, holding.quantity)

            holding = await self._store.update(ticker, quantity=holding.quantity - quantity)
            if holding is None:
                raise NotFoundError(ticker)
            logger.info("Sold %d %s (now %d)", quantity, ticker, holding.quantity)

            if holding.quantity == 0:
                await self._registry.remove(ticker)
        return holding

    # --- Reads ---

    async def list_holdings(self) -> list[dict]:
        """All holdings joined with live prices, zero rows included.

        While the store has fewer rows than there are seed symbols, each
        missing seed with a known price is opened with one unit.
        """
        holdings = await self._store.find_all()
        if len(holdings) < len(self._seed_symbols):
            await self._create_seed_holdings({h.ticker for h in holdings})
            holdings = await self._store.find_all()
        return [self._with_live_price(h) for h in holdings]

    async def snapshot(self) -> list[dict]:
        """Rows for a client's initial snapshot: held positions only."""
        holdings = await self._store.find_all()
        return [h.to_dict() for h in holdings if h.is_held]

    # --- Subscriptions ---

    async def restore_subscriptions(self, include_holdings: bool = True) -> list[str]:
        """Seed the registry at startup. Returns the symbols added."""
        added: list[str] = []
        for symbol in self._seed_symbols:
            if await self._registry.add(symbol):
                added.append(symbol)
        if include_holdings:
            for holding in await self._store.find_all():
                if holding.is_held and await self._registry.add(holding.ticker):
                    added.append(holding.ticker)
        logger.info("Restored %d subscriptions", len(added))
        return added

    async def request_subscription(self, action: str, symbol: str) -> None:
        """Client-originated subscribe/unsubscribe.

        Subscribing is allowed for held tickers and seed symbols; dropping a
        subscription is allowed only for tickers that are not held.
        """
        symbol = validate_ticker(symbol)
        async with self._locked(symbol):
            holding = await self._store.find_by_ticker(symbol)
            held = holding is not None and holding.is_held
            if action == "subscribe":
                if not held and symbol not in self._seed_symbols:
                    raise ValidationError(f"{symbol} is not held")
                await self._registry.add(symbol)
            elif action == "unsubscribe":
                if held:
                    raise ValidationError(f"{symbol} is held; sell it to unsubscribe")
                await self._registry.remove(symbol)
            else:
                raise ValidationError(f"unknown action {action!r}")

    # --- Internals ---

    @asynccontextmanager
    async def _locked(self, ticker: str) -> AsyncIterator[None]:
        """Hold the lock for one ticker. The entry is dropped once nothing holds or awaits it."""
        lock = self._locks.get(ticker)
        if lock is None:
            lock = self._locks[ticker] = asyncio.Lock()
        self._lock_users[ticker] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[ticker] -= 1
            if not self._lock_users[ticker]:
                del self._lock_users[ticker]
                del self._locks[ticker]

    async def _create_seed_holdings(self, existing: set[str]) -> None:
        async with self._seed_lock:
            for symbol in self._seed_symbols:
                if symbol in existing:
                    continue
                price = self._cache.get_price(symbol)
                if price is None:
                    continue
                async with self._locked(symbol):
                    if await self._store.find_by_ticker(symbol) is not None:
                        continue
                    await self._store.create(
                        Holding(ticker=symbol, name=symbol, quantity=1, buy_price=price)
                    )
                    await self._registry.add(symbol)
                    logger.info("Seeded holding %s @ %.4f", symbol, price)

    def _with_live_price(self, holding: Holding) -> dict:
        row = holding.to_dict()
        row["livePrice"] = self._cache.get_price(holding.ticker)
        return row
