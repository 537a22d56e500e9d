"""In-memory stand-ins for the feed, client channels and registry listeners."""

from __future__ import annotations

import asyncio
import json
import time

from tradesim.errors import UpstreamFeedError
from tradesim.market.interface import FeedTransport


class FakeConnection:
    """Scriptable FeedConnection. Push frames with ``feed()``."""

    def __init__(self, send_delay: float = 0.0) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._send_delay = send_delay
        self._inbox: asyncio.Queue = asyncio.Queue()

    @property
    def commands(self) -> list[tuple[str, str]]:
        return [(c["type"], c["symbol"]) for c in self.sent]

    def feed(self, frame: str | dict) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def trade(self, *items: tuple[str, float]) -> None:
        self.feed({"type": "trade", "data": [{"s": s, "p": p} for s, p in items]})

    def drop(self, exc: BaseException | None = None) -> None:
        """Abnormal close: the reader raises."""
        self._inbox.put_nowait(exc or ConnectionResetError("connection dropped"))

    def end(self) -> None:
        """Clean close: iteration stops."""
        self._inbox.put_nowait(None)

    async def send(self, message: str) -> None:
        if self.closed:
            raise UpstreamFeedError("connection closed")
        if self._send_delay:
            # Lets other tasks run mid-send, like a real socket write
            await asyncio.sleep(self._send_delay)
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeTransport(FeedTransport):
    """Hands out FakeConnections; the first ``failures`` attempts are refused."""

    def __init__(self, failures: int = 0, send_delay: float = 0.0) -> None:
        self.attempts = 0
        self.attempt_times: list[float] = []
        self.connections: list[FakeConnection] = []
        self._failures = failures
        self._send_delay = send_delay

    @property
    def name(self) -> str:
        return "fake"

    @property
    def latest(self) -> FakeConnection:
        return self.connections[-1]

    def fail_next(self, count: int = 1) -> None:
        self._failures += count

    async def connect(self) -> FakeConnection:
        self.attempts += 1
        self.attempt_times.append(time.monotonic())
        if self._failures > 0:
            self._failures -= 1
            raise UpstreamFeedError("connection refused")
        conn = FakeConnection(send_delay=self._send_delay)
        self.connections.append(conn)
        return conn


class FakeChannel:
    """ClientChannel that records decoded frames."""

    def __init__(self, name: str = "client", is_open: bool = True, fail: bool = False) -> None:
        self.name = name
        self.is_open = is_open
        self.messages: list[dict] = []
        self._fail = fail
        self._gate = asyncio.Event()
        self._gate.set()

    def block(self) -> None:
        self._gate.clear()

    def unblock(self) -> None:
        self._gate.set()

    @property
    def updates(self) -> list[dict]:
        return [m["data"] for m in self.messages if m["type"] == "update"]

    async def send(self, message: str) -> None:
        if self._fail:
            raise ConnectionResetError("client went away")
        await self._gate.wait()
        self.messages.append(json.loads(message))


class RecordingListener:
    """SubscriptionListener that records calls in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def on_subscribe(self, symbol: str) -> None:
        self.calls.append(("subscribe", symbol))

    async def on_unsubscribe(self, symbol: str) -> None:
        self.calls.append(("unsubscribe", symbol))


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll until ``predicate()`` is true or fail the test."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
