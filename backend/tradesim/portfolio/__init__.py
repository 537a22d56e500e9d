"""Portfolio subsystem: holdings table and the trade service."""

from .models import Holding, StockRecord
from .service import PortfolioService
from .store import SqlPortfolioStore

__all__ = ["Holding", "PortfolioService", "SqlPortfolioStore", "StockRecord"]
