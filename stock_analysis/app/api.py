"""
FastAPI application exposing stock prices merged with MACD/RSI/SMA,
a profit simulation over user rules, and notification subscriptions.
"""
from __future__ import annotations

import datetime as dt
import logging
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..alerts.store import NotificationStore, NotificationSubscription, SubscriptionCreate
from ..core import PriceFetcher, TradeRule, build_merged_rows, simulate_profit
from ..core.config import Settings, load_settings
from ..core.rules import resolve_indicator

logger = logging.getLogger("stock_api")
app = FastAPI(title="Stock Analysis API")


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------
@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def _store_for(database_url: str) -> NotificationStore:
    return NotificationStore.from_url(database_url)


def get_store(settings: Settings = Depends(get_settings)) -> NotificationStore:
    return _store_for(settings.database_url)


async def get_fetcher(settings: Settings = Depends(get_settings)) -> AsyncIterator[PriceFetcher]:
    async with httpx.AsyncClient(timeout=settings.fmp_timeout_secs) as client:
        yield PriceFetcher(client, settings.fmp_base_url, settings.fmp_api_key)


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------
class TradeRuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    buy_threshold: float = Field(..., alias="buyThreshold")
    buy_comparison: str = Field("<", alias="buyComparison", pattern="^[<>]$")
    sell_threshold: float = Field(..., alias="sellThreshold")
    sell_comparison: str = Field(">", alias="sellComparison", pattern="^[<>]$")
    trade_amount: float = Field(..., alias="tradeAmount", ge=0)
    trade_amount_unit: str = Field(
        "shares", alias="tradeAmountUnit", description="shares, currency (or dollars)"
    )

    @field_validator("trade_amount_unit")
    @classmethod
    def _known_unit(cls, v: str) -> str:
        if v.lower() not in ("shares", "currency", "dollars"):
            raise ValueError("tradeAmountUnit must be shares or currency")
        return v.lower()

    def to_rule(self) -> TradeRule:
        return TradeRule(
            buy_threshold=self.buy_threshold,
            buy_comparison=self.buy_comparison,
            sell_threshold=self.sell_threshold,
            sell_comparison=self.sell_comparison,
            trade_amount=self.trade_amount,
            trade_amount_unit=self.trade_amount_unit,
        )


class ProfitRequest(BaseModel):
    """
    Rules keyed by indicator name (Price, MACD, MACD_SIGNAL, RSI, SMA...).
    Prices are fetched for the optional inclusive date range.
    """
    model_config = ConfigDict(populate_by_name=True)

    from_date: Optional[dt.date] = Field(None, alias="from")
    to_date: Optional[dt.date] = Field(None, alias="to")
    starting_cash: Optional[float] = Field(None, alias="startingCash", gt=0)
    rules: Dict[str, TradeRuleModel]

    @field_validator("rules")
    @classmethod
    def _known_indicators(cls, v: Dict[str, TradeRuleModel]) -> Dict[str, TradeRuleModel]:
        for name in v:
            resolve_indicator(name)
        return v


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    email: Optional[str] = None
    phone_number: Optional[str] = Field(None, serialization_alias="phoneNumber")
    stock_symbol: str = Field(..., serialization_alias="stockSymbol")
    indicator: str
    threshold: float
    condition: str
    created_at: dt.datetime = Field(..., serialization_alias="createdAt")


def _serialise(subs: List[NotificationSubscription]) -> List[Dict[str, Any]]:
    return [
        SubscriptionResponse.model_validate(s).model_dump(mode="json", by_alias=True)
        for s in subs
    ]


# ----------------------------------------------------------------------
# Stock endpoints
# ----------------------------------------------------------------------
@app.get("/stock/{symbol}")
async def get_stock(
    symbol: str,
    from_date: Optional[dt.date] = Query(None, alias="from"),
    to_date: Optional[dt.date] = Query(None, alias="to"),
    fetcher: PriceFetcher = Depends(get_fetcher),
) -> List[Dict[str, Any]]:
    """Return daily bars with any indicator values defined on each date."""
    bars = await fetcher.fetch_historical(symbol, from_date, to_date)
    return [row.to_dict() for row in build_merged_rows(bars)]


@app.post("/stock/{symbol}/profit")
async def run_profit(
    symbol: str,
    req: ProfitRequest,
    fetcher: PriceFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Replay the buy/sell rules over the merged rows and return the
    resulting profit and trade signals.
    """
    bars = await fetcher.fetch_historical(symbol, req.from_date, req.to_date)
    rows = build_merged_rows(bars)
    rules = {name: model.to_rule() for name, model in req.rules.items()}
    starting_cash = req.starting_cash if req.starting_cash is not None else settings.starting_cash
    return simulate_profit(rows, rules, starting_cash=starting_cash).to_dict()


# ----------------------------------------------------------------------
# Notification endpoints
# ----------------------------------------------------------------------
@app.post("/notifications", status_code=201)
def create_notification(
    req: SubscriptionCreate,
    store: NotificationStore = Depends(get_store),
) -> Dict[str, Any]:
    sub = store.create(req)
    logger.info("Created subscription %s for %s", sub.id, sub.contact_key)
    return _serialise([sub])[0]


@app.get("/notifications/email/{email}")
def get_by_email(email: str, store: NotificationStore = Depends(get_store)):
    return _serialise(store.find_by_email(email))


@app.get("/notifications/phone/{phone_number}")
def get_by_phone(phone_number: str, store: NotificationStore = Depends(get_store)):
    return _serialise(store.find_by_phone(phone_number))


@app.get("/notifications/symbol/{symbol}")
def get_by_symbol(symbol: str, store: NotificationStore = Depends(get_store)):
    return _serialise(store.find_by_symbol(symbol))


@app.get("/notifications/id/{subscription_id}")
def get_by_id(subscription_id: str, store: NotificationStore = Depends(get_store)):
    sub = store.find_by_id(subscription_id)
    if sub is None:
        raise HTTPException(404, detail="Notification not found")
    return _serialise([sub])[0]


@app.get("/notifications/{contact}")
def get_by_contact(contact: str, store: NotificationStore = Depends(get_store)):
    """Subscriptions whose email or phone number equals ``contact``."""
    return _serialise(store.find_by_contact(contact))


@app.delete("/notifications/{subscription_id}", status_code=204)
def delete_notification(
    subscription_id: str, store: NotificationStore = Depends(get_store)
) -> Response:
    if not store.delete_by_id(subscription_id):
        logger.debug("Delete of unknown subscription %s ignored", subscription_id)
    return Response(status_code=204)
