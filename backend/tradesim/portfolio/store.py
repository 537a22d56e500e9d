"""SQLAlchemy-backed portfolio store with an async facade."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import nullcontext
from threading import Lock
from typing import TypeVar

from sqlalchemy import Engine, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import StoreError
from .models import Base, Holding, StockRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

UPDATABLE_FIELDS = frozenset({"name", "quantity", "buy_price"})


class SqlPortfolioStore:
    """Portfolio Store over a relational table.

    Sessions are synchronous, so every call runs in a worker thread via
    ``asyncio.to_thread`` to keep the event loop free. Each call is its own
    transaction; callers serialize read-modify-write per ticker.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)
        # SQLite connections must not be used from two threads at once
        self._lock = Lock() if engine.dialect.name == "sqlite" else None

    @classmethod
    def from_url(cls, url: str) -> SqlPortfolioStore:
        kwargs: dict = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        return cls(create_engine(url, **kwargs))

    @property
    def engine(self) -> Engine:
        return self._engine

    async def initialize(self) -> None:
        """Create the table if it does not exist."""
        await asyncio.to_thread(self._guarded, lambda _: Base.metadata.create_all(self._engine))
        logger.info("Portfolio store ready (%s)", self._engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self._engine.dispose()

    async def find_all(self) -> list[Holding]:
        def query(session: Session) -> list[Holding]:
            rows = session.scalars(select(StockRecord).order_by(StockRecord.id))
            return [row.to_holding() for row in rows]

        return await self._run(query)

    async def find_by_ticker(self, ticker: str) -> Holding | None:
        def query(session: Session) -> Holding | None:
            row = session.scalar(select(StockRecord).where(StockRecord.ticker == ticker))
            return row.to_holding() if row else None

        return await self._run(query)

    async def create(self, holding: Holding) -> Holding:
        """Insert a new row. Raises StoreError if the ticker already exists."""

        def insert(session: Session) -> Holding:
            row = StockRecord(
                ticker=holding.ticker,
                name=holding.name,
                quantity=holding.quantity,
                buy_price=holding.buy_price,
            )
            session.add(row)
            session.commit()
            return row.to_holding()

        return await self._run(insert)

    async def update(self, ticker: str, **fields) -> Holding | None:
        """Update columns of an existing row. Returns None if it does not exist."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {sorted(unknown)}")

        def apply(session: Session) -> Holding | None:
            row = session.scalar(select(StockRecord).where(StockRecord.ticker == ticker))
            if row is None:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            session.commit()
            return row.to_holding()

        return await self._run(apply)

    # --- Internals ---

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._guarded, fn)

    def _guarded(self, fn: Callable[[Session], T]) -> T:
        with self._lock or nullcontext():
            try:
                with self._sessions() as session:
                    return fn(session)
            except IntegrityError as e:
                raise StoreError(f"integrity violation: {e.orig}") from e
            except SQLAlchemyError as e:
                raise StoreError(f"portfolio store failure: {e}") from e
