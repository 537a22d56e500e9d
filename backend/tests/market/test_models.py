"""Tests for market data models."""

import pytest

from tradesim.market.models import PriceCacheEntry, Trade


class TestPriceCacheEntry:
    """Unit tests for PriceCacheEntry."""

    def test_creation(self):
        """Test creating an entry with an explicit timestamp."""
        entry = PriceCacheEntry(symbol="BINANCE:BTCUSDT", price=67000.5, observed_at=1234567890.0)
        assert entry.symbol == "BINANCE:BTCUSDT"
        assert entry.price == 67000.5
        assert entry.observed_at == 1234567890.0

    def test_default_timestamp(self):
        """Test that observed_at defaults to now."""
        entry = PriceCacheEntry(symbol="AAPL", price=190.0)
        assert entry.observed_at > 0

    def test_to_dict(self):
        """Only symbol and price go on the wire."""
        entry = PriceCacheEntry(symbol="AAPL", price=190.5, observed_at=1.0)
        assert entry.to_dict() == {"symbol": "AAPL", "price": 190.5}

    def test_immutability(self):
        """Test that entries are frozen."""
        entry = PriceCacheEntry(symbol="AAPL", price=190.5)
        with pytest.raises(AttributeError):
            entry.price = 200.0


class TestTrade:
    """Parsing of Finnhub trade items."""

    def test_from_wire(self):
        """Test parsing a complete trade item."""
        trade = Trade.from_wire({"s": "BINANCE:BTCUSDT", "p": 67000.5, "t": 1707580800000, "v": 0.25})
        assert trade.symbol == "BINANCE:BTCUSDT"
        assert trade.price == 67000.5
        assert trade.volume == 0.25

    def test_timestamp_converted_to_seconds(self):
        """Test millisecond timestamps become Unix seconds."""
        trade = Trade.from_wire({"s": "AAPL", "p": 190, "t": 1707580800000})
        assert trade.timestamp == 1707580800.0

    def test_optional_fields_missing(self):
        """Test timestamp and volume are optional."""
        trade = Trade.from_wire({"s": "AAPL", "p": 190})
        assert trade.timestamp is None
        assert trade.volume is None
        assert isinstance(trade.price, float)

    def test_missing_price(self):
        """Test an item without a price raises KeyError."""
        with pytest.raises(KeyError):
            Trade.from_wire({"s": "AAPL"})

    def test_non_numeric_price(self):
        """Test a string price is rejected."""
        with pytest.raises(TypeError):
            Trade.from_wire({"s": "AAPL", "p": "190"})

    def test_boolean_price_rejected(self):
        """Test a boolean is not taken as a price."""
        with pytest.raises(TypeError):
            Trade.from_wire({"s": "AAPL", "p": True})

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf"), 0, -5.0])
    def test_non_finite_or_non_positive_price_rejected(self, price):
        """Test NaN, infinities, zero and negative prices are rejected."""
        with pytest.raises(ValueError):
            Trade.from_wire({"s": "AAPL", "p": price})

    def test_empty_symbol(self):
        """Test an empty symbol is rejected."""
        with pytest.raises(ValueError):
            Trade.from_wire({"s": "", "p": 1.0})
