"""Portfolio table and the Holding value object."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class StockRecord(Base):
    """One row per ticker ever bought. Rows are kept when quantity hits 0."""

    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticker: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    buy_price: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def to_holding(self) -> Holding:
        return Holding(
            ticker=self.ticker,
            name=self.name,
            quantity=self.quantity,
            buy_price=self.buy_price,
        )


@dataclass(frozen=True, slots=True)
class Holding:
    """Immutable view of a portfolio row."""

    ticker: str
    name: str
    quantity: int
    buy_price: float

    @property
    def is_held(self) -> bool:
        return self.quantity > 0

    def to_dict(self) -> dict:
        """Serialize with the field names the frontend expects."""
        return {
            "ticker": self.ticker,
            "name": self.name,
            "quantity": self.quantity,
            "buyPrice": self.buy_price,
        }
