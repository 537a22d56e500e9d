"""Market data subsystem for TradeSim.

Public API:
    PriceCacheEntry      - Last known price of a symbol
    PriceCache           - Thread-safe in-memory price store
    SubscriptionRegistry - Ordered set of symbols the feed should stream
    FeedConnector        - Upstream connection, backoff and replay
    Backoff              - Exponential reconnect delay
    BroadcastHub         - Fan-out of price updates to client channels
    create_feed_transport - Factory that selects Finnhub or the simulator
    create_stream_router - FastAPI router factory for the websocket endpoint
"""

from .cache import PriceCache
from .connector import Backoff, FeedConnector, FeedState
from .factory import create_feed_transport
from .hub import BroadcastHub
from .interface import FeedTransport
from .models import PriceCacheEntry, Trade
from .stream import create_stream_router
from .subscriptions import SubscriptionRegistry

__all__ = [
    "Backoff",
    "BroadcastHub",
    "FeedConnector",
    "FeedState",
    "FeedTransport",
    "PriceCache",
    "PriceCacheEntry",
    "SubscriptionRegistry",
    "Trade",
    "create_feed_transport",
    "create_stream_router",
]
