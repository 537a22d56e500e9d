"""Tests for BroadcastHub."""

import asyncio

import pytest

from fakes import FakeChannel, wait_until
from tradesim.market.cache import PriceCache
from tradesim.market.hub import BroadcastHub
from tradesim.market.models import PriceCacheEntry


def entry(symbol: str, price: float) -> PriceCacheEntry:
    return PriceCacheEntry(symbol=symbol, price=price, observed_at=1.0)


def holdings_provider(rows):
    async def provide():
        return [dict(row) for row in rows]

    return provide


@pytest.mark.asyncio
class TestBroadcastHub:
    """Snapshot on join, fan-out, isolation and backpressure."""

    async def test_register_sends_initial_snapshot(self):
        """Test a new channel first receives the snapshot with live prices."""
        cache = PriceCache()
        cache.update("BINANCE:BTCUSDT", 100.0)
        rows = [
            {"ticker": "BINANCE:BTCUSDT", "name": "BTC", "quantity": 2, "buyPrice": 90.0},
            {"ticker": "BINANCE:ETHUSDT", "name": "ETH", "quantity": 1, "buyPrice": 10.0},
        ]
        hub = BroadcastHub(cache, holdings_provider(rows))
        channel = FakeChannel()

        await hub.register(channel)
        await wait_until(lambda: channel.messages)

        initial = channel.messages[0]
        assert initial["type"] == "initial"
        assert initial["data"][0] == {
            "ticker": "BINANCE:BTCUSDT",
            "name": "BTC",
            "quantity": 2,
            "buyPrice": 90.0,
            "livePrice": 100.0,
        }
        assert initial["data"][1]["livePrice"] is None
        await hub.close()

    async def test_update_reaches_every_channel_in_order(self):
        """Test every channel gets every update in order."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        channels = [FakeChannel(f"c{i}") for i in range(3)]
        for channel in channels:
            await hub.register(channel)

        for price in (100.0, 110.0, 105.0):
            hub.on_price_change(entry("BINANCE:BTCUSDT", price))
        await wait_until(lambda: all(len(c.updates) == 3 for c in channels))

        for channel in channels:
            assert channel.messages[0]["type"] == "initial"
            assert channel.updates == [
                {"symbol": "BINANCE:BTCUSDT", "price": 100.0},
                {"symbol": "BINANCE:BTCUSDT", "price": 110.0},
                {"symbol": "BINANCE:BTCUSDT", "price": 105.0},
            ]
        await hub.close()

    async def test_closed_channel_is_skipped(self):
        """Test closed channels are skipped."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        open_channel = FakeChannel("open")
        closed_channel = FakeChannel("closed")
        await hub.register(open_channel)
        await hub.register(closed_channel)
        await wait_until(lambda: closed_channel.messages)

        closed_channel.is_open = False
        hub.on_price_change(entry("A", 1.0))
        await wait_until(lambda: open_channel.updates)
        await asyncio.sleep(0.01)

        assert closed_channel.updates == []
        # Skipped, not removed: its own disconnect unregisters it
        assert closed_channel in hub
        await hub.close()

    async def test_failing_channel_does_not_affect_others(self):
        """Test a failing channel does not block the others."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        broken = FakeChannel("broken", fail=True)
        healthy = FakeChannel("healthy")
        await hub.register(broken)
        await hub.register(healthy)

        hub.on_price_change(entry("A", 1.0))
        hub.on_price_change(entry("A", 2.0))
        await wait_until(lambda: len(healthy.updates) == 2)
        assert [u["price"] for u in healthy.updates] == [1.0, 2.0]
        await hub.close()

    async def test_slow_channel_drops_oldest(self):
        """Test a full queue drops its oldest frames."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]), queue_size=3)
        slow = FakeChannel("slow")
        fast = FakeChannel("fast")
        slow.block()
        await hub.register(slow)
        await hub.register(fast)
        await asyncio.sleep(0)  # slow writer now holds the initial frame

        for price in range(1, 11):
            hub.on_price_change(entry("A", float(price)))
            await wait_until(lambda: len(fast.updates) == price)

        assert hub.dropped(slow) == 7
        slow.unblock()
        await wait_until(lambda: len(slow.updates) == 3)
        # The newest frames survive, still in feed order
        assert [u["price"] for u in slow.updates] == [8.0, 9.0, 10.0]
        await hub.close()

    async def test_unregister_stops_delivery(self):
        """Test unregistered channels receive nothing more."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        channel = FakeChannel()
        await hub.register(channel)
        await wait_until(lambda: channel.messages)

        await hub.unregister(channel)
        assert len(hub) == 0
        hub.on_price_change(entry("A", 1.0))
        await asyncio.sleep(0.01)
        assert channel.updates == []

        await hub.unregister(channel)  # second unregister is a no-op

    async def test_register_twice_is_noop(self):
        """Test registering twice sends one snapshot."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        channel = FakeChannel()
        await hub.register(channel)
        await hub.register(channel)
        await wait_until(lambda: channel.messages)
        await asyncio.sleep(0.01)
        assert len(channel.messages) == 1
        await hub.close()

    async def test_send_to_single_channel(self):
        """Test send_to reaches only the given channel."""
        hub = BroadcastHub(PriceCache(), holdings_provider([]))
        a = FakeChannel("a")
        b = FakeChannel("b")
        await hub.register(a)
        await hub.register(b)

        assert hub.send_to(a, {"type": "ack", "action": "subscribe", "symbol": "X"}) is True
        await wait_until(lambda: len(a.messages) == 2)
        await asyncio.sleep(0.01)
        assert len(b.messages) == 1
        assert hub.send_to(FakeChannel("stranger"), {"type": "ack"}) is False
        await hub.close()

    async def test_invalid_queue_size(self):
        """Test a queue size below one is rejected."""
        with pytest.raises(ValueError):
            BroadcastHub(PriceCache(), holdings_provider([]), queue_size=0)
