"""
Plain data records shared by the fetcher, indicator calculator, merge
and profit simulator.  All records are keyed by calendar day
(``datetime.date``) so that joins across series are exact matches.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PriceBar:
    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d


@dataclass(frozen=True)
class IndicatorPoint:
    date: dt.date
    value: float


# Field names a MergedRow can carry on top of the price columns.
INDICATOR_FIELDS = ("macd", "macd_signal", "macd_histogram", "rsi", "sma")


@dataclass(frozen=True)
class MergedRow:
    """
    One trading day: the price bar plus whichever indicator values are
    defined for that exact date.  Undefined indicators are ``None`` and
    are dropped from the serialised form rather than emitted as null.
    """
    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    rsi: Optional[float] = None
    sma: Optional[float] = None

    def to_price_bar(self) -> PriceBar:
        return PriceBar(
            date=self.date,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = value.isoformat() if f.name == "date" else value
        return out


@dataclass(frozen=True)
class TradeSignal:
    type: str  # "Buy" or "Sell"
    date: dt.date
    price: float
    indicator: str
    shares: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d
