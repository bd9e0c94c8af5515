"""
Threshold rules over merged rows.

Indicator names used by trade rules and notification subscriptions are
resolved here to MergedRow fields, case-insensitively, so ``"RSI"``,
``"rsi"`` and ``"Rsi"`` all read the same column and ``"Price"`` reads
the close.  All threshold comparisons are strict.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .models import MergedRow

_INDICATOR_ALIASES: Dict[str, str] = {
    "price": "close",
    "close": "close",
    "macd": "macd",
    "macd_signal": "macd_signal",
    "macdsignal": "macd_signal",
    "signal": "macd_signal",
    "macd_histogram": "macd_histogram",
    "macdhistogram": "macd_histogram",
    "histogram": "macd_histogram",
    "rsi": "rsi",
    "sma": "sma",
}

COMPARISONS = ("<", ">")
SHARES = "shares"
CURRENCY = "currency"
_UNIT_ALIASES = {"shares": SHARES, "currency": CURRENCY, "dollars": CURRENCY}


class UnknownIndicatorError(ValueError):
    pass


def resolve_indicator(name: str) -> str:
    """Return the MergedRow field for an indicator name."""
    key = (name or "").strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _INDICATOR_ALIASES[key]
    except KeyError:
        raise UnknownIndicatorError(f"Unknown indicator {name!r}") from None


def indicator_value(row: MergedRow, name: str) -> Optional[float]:
    """Value of ``name`` on ``row``, or None when undefined for that date."""
    value = getattr(row, resolve_indicator(name))
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def compare(value: float, comparison: str, threshold: float) -> bool:
    if comparison == "<":
        return value < threshold
    if comparison == ">":
        return value > threshold
    raise ValueError(f"comparison must be '<' or '>', got {comparison!r}")


@dataclass(frozen=True)
class TradeRule:
    """Buy/sell thresholds for one indicator."""
    buy_threshold: float
    buy_comparison: str
    sell_threshold: float
    sell_comparison: str
    trade_amount: float
    trade_amount_unit: str = SHARES

    def __post_init__(self) -> None:
        for comparison in (self.buy_comparison, self.sell_comparison):
            if comparison not in COMPARISONS:
                raise ValueError(f"comparison must be '<' or '>', got {comparison!r}")
        unit = _UNIT_ALIASES.get(str(self.trade_amount_unit).lower())
        if unit is None:
            raise ValueError(
                f"trade_amount_unit must be 'shares' or 'currency', got {self.trade_amount_unit!r}"
            )
        object.__setattr__(self, "trade_amount_unit", unit)
        if self.trade_amount < 0:
            raise ValueError("trade_amount must not be negative")

    def should_buy(self, value: float) -> bool:
        return compare(value, self.buy_comparison, self.buy_threshold)

    def should_sell(self, value: float) -> bool:
        return compare(value, self.sell_comparison, self.sell_threshold)

    def shares_for(self, price: float) -> float:
        if self.trade_amount_unit == SHARES:
            return float(self.trade_amount)
        if price <= 0:
            return 0.0
        return self.trade_amount / price
