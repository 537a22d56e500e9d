"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_SEED_SYMBOLS: tuple[str, ...] = (
    "BINANCE:BTCUSDT",
    "BINANCE:ETHUSDT",
    "BINANCE:BNBUSDT",
    "BINANCE:ADAUSDT",
    "BINANCE:SOLUSDT",
)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide settings. Build with ``Settings.from_env()``."""

    finnhub_api_key: str = ""
    finnhub_ws_url: str = "wss://ws.finnhub.io"
    database_url: str = "sqlite:///./tradesim.db"
    reconnect_base: float = 1.0
    reconnect_cap: float = 30.0
    open_timeout: float = 15.0
    client_queue_size: int = 100
    seed_symbols: tuple[str, ...] = DEFAULT_SEED_SYMBOLS
    resubscribe_holdings: bool = True
    simulator_interval: float = 0.5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        def get(name: str) -> str:
            return env.get(name, "").strip()

        kwargs: dict = {}
        if get("FINNHUB_API_KEY"):
            kwargs["finnhub_api_key"] = get("FINNHUB_API_KEY")
        if get("FINNHUB_WS_URL"):
            kwargs["finnhub_ws_url"] = get("FINNHUB_WS_URL")
        if get("DATABASE_URL"):
            kwargs["database_url"] = get("DATABASE_URL")
        if get("FEED_RECONNECT_BASE"):
            kwargs["reconnect_base"] = float(get("FEED_RECONNECT_BASE"))
        if get("FEED_RECONNECT_CAP"):
            kwargs["reconnect_cap"] = float(get("FEED_RECONNECT_CAP"))
        if get("FEED_OPEN_TIMEOUT"):
            kwargs["open_timeout"] = float(get("FEED_OPEN_TIMEOUT"))
        if get("CLIENT_QUEUE_SIZE"):
            kwargs["client_queue_size"] = int(get("CLIENT_QUEUE_SIZE"))
        if get("SEED_SYMBOLS"):
            kwargs["seed_symbols"] = tuple(
                s.strip() for s in get("SEED_SYMBOLS").split(",") if s.strip()
            )
        if get("RESUBSCRIBE_HOLDINGS"):
            kwargs["resubscribe_holdings"] = get("RESUBSCRIBE_HOLDINGS").lower() in _TRUTHY
        if get("SIMULATOR_INTERVAL"):
            kwargs["simulator_interval"] = float(get("SIMULATOR_INTERVAL"))
        if get("LOG_LEVEL"):
            kwargs["log_level"] = get("LOG_LEVEL").upper()
        return cls(**kwargs)

    @property
    def use_simulator(self) -> bool:
        """True when no Finnhub key is configured."""
        return not self.finnhub_api_key
