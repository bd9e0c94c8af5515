"""Core utilities for the stock analysis service.

This package provides helpers for fetching daily prices from Financial
Modeling Prep, computing technical indicators, merging them with the
price rows, and replaying threshold trade rules.  Apart from the fetcher,
all functions are side‑effect free and deterministic when given the same
inputs.
"""

from .models import IndicatorPoint, MergedRow, PriceBar, TradeSignal
from .price_fetcher import PriceFetcher, parse_historical
from .indicators import (
    calculate_indicators,
    compute_ema,
    compute_macd,
    compute_rsi,
    compute_sma,
)
from .merge import build_merged_rows, merge_series
from .rules import TradeRule, UnknownIndicatorError, indicator_value, resolve_indicator
from .backtester import ProfitResult, simulate_profit

__all__ = [
    "IndicatorPoint",
    "MergedRow",
    "PriceBar",
    "TradeSignal",
    "PriceFetcher",
    "parse_historical",
    "calculate_indicators",
    "compute_ema",
    "compute_macd",
    "compute_rsi",
    "compute_sma",
    "build_merged_rows",
    "merge_series",
    "TradeRule",
    "UnknownIndicatorError",
    "indicator_value",
    "resolve_indicator",
    "ProfitResult",
    "simulate_profit",
]
