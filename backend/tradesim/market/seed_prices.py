"""Seed prices and per-symbol parameters for the simulated feed."""

# Starting prices for the default seed symbols and a few common extras
SEED_PRICES: dict[str, float] = {
    "BINANCE:BTCUSDT": 67000.00,
    "BINANCE:ETHUSDT": 3500.00,
    "BINANCE:BNBUSDT": 580.00,
    "BINANCE:ADAUSDT": 0.45,
    "BINANCE:SOLUSDT": 150.00,
    "AAPL": 190.00,
    "MSFT": 420.00,
    "NVDA": 800.00,
    "TSLA": 250.00,
}

# Annualized GBM parameters
# sigma: volatility, mu: drift
SYMBOL_PARAMS: dict[str, dict[str, float]] = {
    "BINANCE:BTCUSDT": {"sigma": 0.60, "mu": 0.10},
    "BINANCE:ETHUSDT": {"sigma": 0.75, "mu": 0.10},
    "BINANCE:BNBUSDT": {"sigma": 0.70, "mu": 0.08},
    "BINANCE:ADAUSDT": {"sigma": 0.90, "mu": 0.05},
    "BINANCE:SOLUSDT": {"sigma": 0.95, "mu": 0.08},
    "AAPL": {"sigma": 0.22, "mu": 0.05},
    "MSFT": {"sigma": 0.20, "mu": 0.05},
    "NVDA": {"sigma": 0.40, "mu": 0.08},
    "TSLA": {"sigma": 0.50, "mu": 0.03},
}

# Parameters for symbols not listed above
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.50, "mu": 0.05}

# Symbols in the same group move together
CORRELATION_GROUPS: dict[str, set[str]] = {
    "crypto": {
        "BINANCE:BTCUSDT",
        "BINANCE:ETHUSDT",
        "BINANCE:BNBUSDT",
        "BINANCE:ADAUSDT",
        "BINANCE:SOLUSDT",
    },
    "equity": {"AAPL", "MSFT", "NVDA", "TSLA"},
}

INTRA_CRYPTO_CORR = 0.7
INTRA_EQUITY_CORR = 0.5
CROSS_GROUP_CORR = 0.2
