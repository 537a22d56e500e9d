"""Fan-out of price updates to connected client channels."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .cache import PriceCache
from .interface import ClientChannel
from .models import PriceCacheEntry

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], Awaitable[list[dict]]]


@dataclass(eq=False)
class _ChannelWriter:
    """Outbound queue and writer task for one channel."""

    channel: ClientChannel
    queue: asyncio.Queue
    task: asyncio.Task | None = None
    dropped: int = 0
    sent: int = 0


class BroadcastHub:
    """Pushes every price change to every registered client channel.

    Each channel gets a bounded queue drained by its own task, so a slow
    client never delays other clients or the feed. When a queue is full the
    oldest pending frame is dropped; frames that remain keep feed order.
    """

    def __init__(
        self,
        price_cache: PriceCache,
        snapshot_provider: SnapshotProvider,
        queue_size: int = 100,
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._cache = price_cache
        self._snapshot_provider = snapshot_provider
        self._queue_size = queue_size
        self._writers: dict[ClientChannel, _ChannelWriter] = {}

    # --- Channel lifecycle ---

    async def register(self, channel: ClientChannel) -> None:
        """Add a channel and queue the ``initial`` snapshot as its first frame."""
        if channel in self._writers:
            return
        rows = await self._snapshot_provider()
        # No suspension from here on: the snapshot and the first queued
        # update see the same cache state.
        data = [dict(row, livePrice=self._cache.get_price(row["ticker"])) for row in rows]
        writer = _ChannelWriter(channel=channel, queue=asyncio.Queue(maxsize=self._queue_size))
        writer.queue.put_nowait(json.dumps({"type": "initial", "data": data}))
        self._writers[channel] = writer
        writer.task = asyncio.create_task(self._drain(writer), name=f"hub-writer-{channel.name}")
        logger.info("Client joined: %s (%d connected)", channel.name, len(self._writers))

    async def unregister(self, channel: ClientChannel) -> None:
        writer = self._writers.pop(channel, None)
        if writer is None:
            return
        await self._stop_writer(writer)
        logger.info(
            "Client left: %s (%d connected, %d frames dropped)",
            channel.name,
            len(self._writers),
            writer.dropped,
        )

    async def close(self) -> None:
        writers = list(self._writers.values())
        self._writers.clear()
        for writer in writers:
            await self._stop_writer(writer)

    # --- Fan-out ---

    def on_price_change(self, entry: PriceCacheEntry) -> None:
        """Price listener. Encodes once, enqueues on every open channel."""
        if not self._writers:
            return
        message = json.dumps({"type": "update", "data": entry.to_dict()})
        for writer in list(self._writers.values()):
            if not writer.channel.is_open:
                continue
            self._enqueue(writer, message)

    def send_to(self, channel: ClientChannel, payload: dict) -> bool:
        """Queue a direct frame for one channel. False if not registered."""
        writer = self._writers.get(channel)
        if writer is None:
            return False
        self._enqueue(writer, json.dumps(payload))
        return True

    def dropped(self, channel: ClientChannel) -> int:
        writer = self._writers.get(channel)
        return writer.dropped if writer else 0

    def __len__(self) -> int:
        return len(self._writers)

    def __contains__(self, channel: ClientChannel) -> bool:
        return channel in self._writers

    # --- Internals ---

    def _enqueue(self, writer: _ChannelWriter, message: str) -> None:
        try:
            writer.queue.put_nowait(message)
        except asyncio.QueueFull:
            writer.queue.get_nowait()
            writer.dropped += 1
            writer.queue.put_nowait(message)
            logger.debug("Client %s is slow; dropped oldest frame", writer.channel.name)

    async def _drain(self, writer: _ChannelWriter) -> None:
        while True:
            message = await writer.queue.get()
            try:
                await writer.channel.send(message)
            except Exception as e:
                # The channel's own disconnect path unregisters it
                logger.warning("Send to %s failed, writer stopped: %s", writer.channel.name, e)
                return
            writer.sent += 1

    @staticmethod
    async def _stop_writer(writer: _ChannelWriter) -> None:
        task = writer.task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
