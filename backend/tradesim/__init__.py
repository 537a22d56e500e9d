"""TradeSim: virtual trading backend with a live price relay."""
