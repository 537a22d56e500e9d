"""Application wiring and process entry point.

Run with the ``tradesim`` console script or ``python -m tradesim.main``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import create_portfolio_router, create_status_router, register_error_handlers
from .config import Settings
from .market import (
    Backoff,
    BroadcastHub,
    FeedConnector,
    FeedTransport,
    PriceCache,
    SubscriptionRegistry,
    create_feed_transport,
    create_stream_router,
)
from .portfolio import PortfolioService, SqlPortfolioStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@dataclass
class Components:
    """Everything the app owns, built once and shared by the routers."""

    settings: Settings
    price_cache: PriceCache
    registry: SubscriptionRegistry
    connector: FeedConnector
    hub: BroadcastHub
    store: SqlPortfolioStore
    service: PortfolioService


def build_components(settings: Settings, transport: FeedTransport | None = None) -> Components:
    """Construct and wire the components. Nothing is started here.

    Data flow: feed -> connector -> cache + hub -> client channels.
    Control flow: service -> registry -> connector (subscribe commands).
    """
    price_cache = PriceCache()
    registry = SubscriptionRegistry()
    connector = FeedConnector(
        transport or create_feed_transport(settings),
        price_cache,
        registry,
        backoff=Backoff(settings.reconnect_base, settings.reconnect_cap),
    )
    store = SqlPortfolioStore.from_url(settings.database_url)
    service = PortfolioService(store, registry, price_cache, seed_symbols=settings.seed_symbols)
    hub = BroadcastHub(price_cache, service.snapshot, queue_size=settings.client_queue_size)
    connector.add_listener(hub.on_price_change)
    return Components(
        settings=settings,
        price_cache=price_cache,
        registry=registry,
        connector=connector,
        hub=hub,
        store=store,
        service=service,
    )


def create_app(settings: Settings | None = None, transport: FeedTransport | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    components = build_components(settings, transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await components.store.initialize()
        await components.service.restore_subscriptions(
            include_holdings=settings.resubscribe_holdings
        )
        await components.connector.start()
        logger.info("TradeSim backend started")
        try:
            yield
        finally:
            await components.connector.stop()
            await components.hub.close()
            components.store.dispose()
            logger.info("TradeSim backend stopped")

    app = FastAPI(title="TradeSim", version="0.1.0", lifespan=lifespan)
    app.state.components = components
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(create_status_router(components.connector, components.registry, components.hub))
    app.include_router(create_portfolio_router(components.service))
    app.include_router(create_stream_router(components.hub, components.service.request_subscription))
    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    port = int(os.environ.get("PORT", "3000"))
    uvicorn.run(create_app(settings), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
