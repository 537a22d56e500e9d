"""Factory for creating the upstream feed transport."""

from __future__ import annotations

import logging

from ..config import Settings
from .interface import FeedTransport

logger = logging.getLogger(__name__)


def create_feed_transport(settings: Settings) -> FeedTransport:
    """Pick the upstream transport from settings.

    - FINNHUB_API_KEY set and non-empty -> FinnhubTransport (live trades)
    - Otherwise -> SimulatedFeed (GBM prices, same wire protocol)

    The transport is passive; the FeedConnector opens connections on it.
    """
    if not settings.use_simulator:
        from .finnhub import FinnhubTransport

        logger.info("Market data feed: Finnhub websocket")
        return FinnhubTransport(
            api_key=settings.finnhub_api_key,
            url=settings.finnhub_ws_url,
            open_timeout=settings.open_timeout,
        )

    from .simulator import SimulatedFeed

    logger.info("Market data feed: GBM simulator")
    return SimulatedFeed(interval=settings.simulator_interval)
