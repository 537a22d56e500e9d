"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio

from tradesim.market.cache import PriceCache
from tradesim.market.subscriptions import SubscriptionRegistry
from tradesim.portfolio.service import PortfolioService
from tradesim.portfolio.store import SqlPortfolioStore


@pytest.fixture
def price_cache():
    return PriceCache()


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory SQLite store with the table created."""
    store = SqlPortfolioStore.from_url("sqlite://")
    await store.initialize()
    yield store
    store.dispose()


@pytest.fixture
def service(store, registry, price_cache):
    return PortfolioService(store, registry, price_cache, seed_symbols=("BINANCE:BTCUSDT", "BINANCE:ETHUSDT"))
