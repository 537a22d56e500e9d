"""HTTP surface: portfolio endpoints, status, and error mapping."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, StrictInt

from .errors import (
    InsufficientQuantityError,
    NotFoundError,
    StoreError,
    TradeSimError,
    ValidationError,
)
from .market.connector import FeedConnector
from .market.hub import BroadcastHub
from .market.subscriptions import SubscriptionRegistry
from .portfolio.service import PortfolioService

logger = logging.getLogger(__name__)

PositiveQuantity = Annotated[StrictInt, Field(gt=0)]


class BuyRequest(BaseModel):
    ticker: str = Field(min_length=1)
    quantityToBuy: PositiveQuantity
    price: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    name: str | None = None


class SellRequest(BaseModel):
    ticker: str = Field(min_length=1)
    quantityToSell: PositiveQuantity


def create_portfolio_router(service: PortfolioService) -> APIRouter:
    router = APIRouter(prefix="/stocks", tags=["portfolio"])

    @router.get("")
    async def list_stocks() -> list[dict]:
        return await service.list_holdings()

    @router.post("/buy")
    async def buy_stock(body: BuyRequest) -> dict:
        holding = await service.buy(
            body.ticker,
            body.quantityToBuy,
            reference_price=body.price,
            name=body.name,
        )
        return {
            "message": f"Bought {body.quantityToBuy} shares of {holding.ticker}",
            "stock": holding.to_dict(),
        }

    @router.post("/sell")
    async def sell_stock(body: SellRequest) -> dict:
        holding = await service.sell(body.ticker, body.quantityToSell)
        return {
            "message": f"Sold {body.quantityToSell} shares of {holding.ticker}",
            "stock": holding.to_dict(),
        }

    return router


def create_status_router(
    connector: FeedConnector,
    registry: SubscriptionRegistry,
    hub: BroadcastHub,
) -> APIRouter:
    router = APIRouter(tags=["status"])

    @router.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "Backend is up!"

    @router.get("/health")
    async def health() -> dict:
        return {
            "feed": connector.state.value,
            "reconnectAttempt": connector.backoff.attempt,
            "subscriptions": registry.symbols(),
            "clients": len(hub),
        }

    return router


_STATUS_BY_ERROR: list[tuple[type[TradeSimError], int]] = [
    (NotFoundError, 404),
    (InsufficientQuantityError, 400),
    (ValidationError, 400),
    (StoreError, 500),
]


def register_error_handlers(app: FastAPI) -> None:
    """Map domain errors to ``{"message": ...}`` JSON responses."""

    async def handle(request: Request, exc: TradeSimError) -> JSONResponse:
        status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            message = "Error processing request"
        else:
            message = str(exc)
        return JSONResponse(status_code=status, content={"message": message})

    app.add_exception_handler(TradeSimError, handle)
