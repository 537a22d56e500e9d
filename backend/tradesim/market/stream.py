"""Websocket endpoint pushing live prices to browser sessions."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..errors import TradeSimError
from .hub import BroadcastHub

logger = logging.getLogger(__name__)

# (action, symbol) -> None; raises TradeSimError to reject the request
ClientRequestHandler = Callable[[str, str], Awaitable[None]]

CLIENT_ACTIONS = ("subscribe", "unsubscribe")


class WebSocketChannel:
    """Adapts a Starlette WebSocket to the hub's ClientChannel protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        client = websocket.client
        self._name = f"{client.host}:{client.port}" if client else "unknown"

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: str) -> None:
        await self._ws.send_text(message)


def create_stream_router(hub: BroadcastHub, request_handler: ClientRequestHandler) -> APIRouter:
    """Create the websocket router bound to a hub.

    Factory instead of module globals so the hub and the request handler
    are injected by the application.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket("/ws")
    async def stream_prices(websocket: WebSocket) -> None:
        """Push channel for one browser session.

        Server frames:
            {"type": "initial", "data": [{ticker, name, quantity, buyPrice, livePrice}, ...]}
            {"type": "update", "data": {"symbol": ..., "price": ...}}
            {"type": "ack" | "error", ...}   replies to client requests

        Client frames:
            {"action": "subscribe" | "unsubscribe", "symbol": ...}
        """
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        try:
            await hub.register(channel)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    hub.send_to(channel, {"type": "error", "message": "expected a text frame"})
                    continue
                await handle_client_frame(hub, channel, text, request_handler)
        except WebSocketDisconnect:
            pass
        finally:
            await hub.unregister(channel)

    return router


async def handle_client_frame(
    hub: BroadcastHub,
    channel: WebSocketChannel,
    text: str,
    request_handler: ClientRequestHandler,
) -> None:
    """Parse one client request, run it, and queue the reply."""
    try:
        request = json.loads(text)
        action = request["action"]
        symbol = request["symbol"]
    except (TypeError, ValueError, KeyError):
        hub.send_to(channel, {"type": "error", "message": "expected {action, symbol}"})
        return

    if action not in CLIENT_ACTIONS or not isinstance(symbol, str) or not symbol.strip():
        hub.send_to(channel, {"type": "error", "message": f"invalid request: {action!r} {symbol!r}"})
        return

    symbol = symbol.strip()
    try:
        await request_handler(action, symbol)
    except TradeSimError as e:
        logger.info("Rejected %s %s from %s: %s", action, symbol, channel.name, e)
        hub.send_to(channel, {"type": "error", "message": str(e)})
        return
    hub.send_to(channel, {"type": "ack", "action": action, "symbol": symbol})
