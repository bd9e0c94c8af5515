# core/price_fetcher.py
"""Fetch daily OHLCV history from the Financial Modeling Prep API.

The HTTP client is handed in at construction so callers (the API, the
notification sweep, tests) decide its lifetime, timeout and transport.

Every upstream failure (transport error, timeout, non-2xx status,
malformed JSON, missing ``historical`` array) is logged and reported as
an empty list.  Downstream code treats "no data" as an empty price series
and never has to special-case a failed fetch.
"""
from __future__ import annotations

import datetime as dt
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pandas as pd

from .models import PriceBar

# ──────────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────────

logger = logging.getLogger("price_fetcher")
if not logger.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
    logger.addHandler(_h)
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO")

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

_PRICE_COLUMNS = ["open", "high", "low", "close", "volume"]


def _mask(key: Optional[str]) -> str:
    return f"...{key[-4:]}" if key and len(key) >= 4 else "(none)"


def _as_iso(value: Optional[dt.date | str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def parse_historical(payload: Any) -> List[PriceBar]:
    """
    Turn an FMP ``historical-price-full`` payload into ascending PriceBars.

    FMP returns newest-first and sometimes appends a time to the date
    string; only the calendar day is kept.  Raises ``ValueError``,
    ``KeyError`` or ``TypeError`` on a malformed payload.
    """
    if not isinstance(payload, dict):
        raise ValueError("payload is not a JSON object")
    rows = payload.get("historical")
    if not rows:
        return []
    df = pd.DataFrame(rows)
    missing = [c for c in ["date", *_PRICE_COLUMNS] if c not in df.columns]
    if missing:
        raise KeyError(f"historical rows missing columns: {missing}")
    df["date"] = pd.to_datetime(df["date"].astype(str).str[:10], format="%Y-%m-%d").dt.date
    df[_PRICE_COLUMNS] = df[_PRICE_COLUMNS].astype(float)
    incomplete = df[_PRICE_COLUMNS].isna().any(axis=1)
    if incomplete.any():
        logger.debug("Dropping %d FMP rows with missing prices", int(incomplete.sum()))
        df = df.loc[~incomplete]
    df = df.sort_values("date", kind="stable")
    dupes = df["date"].duplicated(keep="first")
    if dupes.any():
        logger.debug("Dropping %d duplicate dates from FMP payload", int(dupes.sum()))
        df = df.loc[~dupes]
    return [
        PriceBar(
            date=row.date,
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume,
        )
        for row in df[["date", *_PRICE_COLUMNS]].itertuples(index=False)
    ]

# ──────────────────────────────────────────────────────────────────────────────
# Fetcher
# ──────────────────────────────────────────────────────────────────────────────


class PriceFetcher:
    """Historical daily prices for one symbol at a time."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: Optional[str]) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        logger.info("FMP base=%s key=%s", self._base_url, _mask(api_key))

    def _request(
        self, symbol: str, from_date: Optional[str], to_date: Optional[str]
    ) -> Tuple[str, Dict[str, str]]:
        url = f"{self._base_url}/historical-price-full/{symbol}"
        params: Dict[str, str] = {}
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date
        if self._api_key:
            params["apikey"] = self._api_key
        return url, params

    async def fetch_historical(
        self,
        symbol: str,
        from_date: Optional[dt.date | str] = None,
        to_date: Optional[dt.date | str] = None,
    ) -> List[PriceBar]:
        """
        Return daily bars for ``symbol`` between the inclusive ISO dates, or
        the provider's default range when they are omitted.  Returns ``[]``
        when the upstream call fails for any reason.
        """
        url, params = self._request(symbol, _as_iso(from_date), _as_iso(to_date))
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.warning("FMP request for %s failed: %s", symbol, e.__class__.__name__)
            return []

        if resp.status_code >= 400:
            logger.warning("FMP error %s for %s: %s", resp.status_code, symbol, resp.text[:200])
            return []

        try:
            bars = parse_historical(resp.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Malformed FMP payload for %s: %s", symbol, e)
            return []

        if not bars:
            logger.info("FMP returned no rows for %s (from=%s to=%s)", symbol, from_date, to_date)
        return bars
