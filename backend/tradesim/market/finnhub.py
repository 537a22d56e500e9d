"""Finnhub websocket transport for live trade data."""

from __future__ import annotations

import asyncio
import logging

import websockets
from websockets.exceptions import WebSocketException

from ..errors import UpstreamFeedError
from .interface import FeedConnection, FeedTransport

logger = logging.getLogger(__name__)

FINNHUB_WS_URL = "wss://ws.finnhub.io"


class FinnhubTransport(FeedTransport):
    """Opens ``wss://ws.finnhub.io?token=<key>`` connections.

    The returned websockets connection is used directly as a FeedConnection:
    it accepts the ``{"type": "subscribe", "symbol": ...}`` commands and
    yields ``trade`` / ``ping`` frames. Finnhub forgets subscriptions when
    the socket drops; the FeedConnector replays them.
    """

    def __init__(
        self,
        api_key: str,
        url: str = FINNHUB_WS_URL,
        open_timeout: float = 15.0,
        ping_interval: float | None = 20.0,
    ) -> None:
        if not api_key:
            raise ValueError("Finnhub API key is required")
        self._api_key = api_key
        self._url = url.rstrip("/")
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval

    @property
    def name(self) -> str:
        return self._url

    @property
    def uri(self) -> str:
        return f"{self._url}?token={self._api_key}"

    async def connect(self) -> FeedConnection:
        try:
            return await websockets.connect(
                self.uri,
                open_timeout=self._open_timeout,
                ping_interval=self._ping_interval,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            raise UpstreamFeedError(f"cannot connect to {self._url}: {e}") from e
