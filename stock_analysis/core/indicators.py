"""Implement MACD, RSI and SMA using pure pandas.

The ``compute_*`` helpers work on a close-price Series and leave warm-up
positions as NaN.  ``calculate_indicators`` runs all of them over a list
of PriceBars and returns only the defined points, keyed by the bar's own
calendar date, so no NaN ever leaves this module.

Seeding convention: every exponential average (the MACD EMAs, the MACD
signal line and Wilder's RSI averages) starts from the simple mean of its
first window, then recurses.  With the default windows MACD is defined
from the 26th bar, its signal line from the 34th, RSI from the 15th and
SMA from the 14th.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .models import IndicatorPoint, PriceBar

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
RSI_WINDOW = 14
SMA_WINDOW = 14


def compute_sma(close: pd.Series, window: int = SMA_WINDOW) -> pd.Series:
    """
    Compute the simple moving average (SMA) over the given window.
    Missing values in the initial window remain NaN to avoid look‑ahead.
    """
    return close.rolling(window=window, min_periods=window).mean()


def _seeded_average(values: pd.Series, window: int, alpha: float) -> pd.Series:
    """
    Exponential average with smoothing ``alpha`` whose first value is the
    SMA of the first ``window`` non-NaN observations.  Leading NaNs in
    ``values`` are kept as NaN in the output.
    """
    out = pd.Series(np.nan, index=values.index, dtype=float)
    defined = values.dropna()
    if len(defined) < window:
        return out
    seeded = defined.iloc[window - 1:].astype(float).copy()
    seeded.iloc[0] = defined.iloc[:window].mean()
    out.loc[seeded.index] = seeded.ewm(alpha=alpha, adjust=False).mean()
    return out


def compute_ema(close: pd.Series, window: int) -> pd.Series:
    """
    Compute the exponential moving average (EMA) with smoothing 2/(N+1),
    seeded with the SMA of the first ``window`` closes.
    """
    return _seeded_average(close, window, alpha=2.0 / (window + 1))


def compute_rsi(close: pd.Series, window: int = RSI_WINDOW) -> pd.Series:
    """
    Compute the Relative Strength Index (RSI) using Wilder’s method.
    RSI oscillates between 0 and 100. Oversold <30, overbought >70.

    A window with no losses reads 100; a perfectly flat window reads 50.
    """
    delta = close.diff()
    gain = delta.clip(lower=0.0)
    loss = -delta.clip(upper=0.0)
    avg_gain = _seeded_average(gain, window, alpha=1.0 / window)
    avg_loss = _seeded_average(loss, window, alpha=1.0 / window)
    with np.errstate(divide="ignore", invalid="ignore"):
        rs = avg_gain / avg_loss
        rsi = 100 - (100 / (1 + rs))
    rsi = rsi.where(avg_loss != 0, np.where(avg_gain > 0, 100.0, 50.0))
    return rsi.where(avg_gain.notna() & avg_loss.notna())


def compute_macd(
    close: pd.Series,
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> pd.DataFrame:
    """
    Compute the Moving Average Convergence Divergence (MACD).
    Returns a DataFrame with columns macd, macd_signal and macd_histogram.
    """
    ema_fast = compute_ema(close, fast)
    ema_slow = compute_ema(close, slow)
    macd_line = ema_fast - ema_slow
    signal_line = compute_ema(macd_line, signal)
    histogram = macd_line - signal_line
    return pd.DataFrame(
        {"macd": macd_line, "macd_signal": signal_line, "macd_histogram": histogram}
    )


def _to_points(series: pd.Series) -> List[IndicatorPoint]:
    series = series.replace([np.inf, -np.inf], np.nan).dropna()
    return [IndicatorPoint(date=d, value=float(v)) for d, v in series.items()]


def calculate_indicators(
    bars: Sequence[PriceBar],
    *,
    macd_fast: int = MACD_FAST,
    macd_slow: int = MACD_SLOW,
    macd_signal: int = MACD_SIGNAL,
    rsi_window: int = RSI_WINDOW,
    sma_window: int = SMA_WINDOW,
) -> Dict[str, List[IndicatorPoint]]:
    """
    Compute every indicator for an ascending bar series.  Each entry holds
    only the dates where that indicator is defined; too few bars simply
    yield an empty list.
    """
    if not bars:
        return {name: [] for name in ("macd", "macd_signal", "macd_histogram", "rsi", "sma")}

    close = pd.Series(
        [b.close for b in bars], index=[b.date for b in bars], dtype=float
    )
    macd_df = compute_macd(close, macd_fast, macd_slow, macd_signal)
    return {
        "macd": _to_points(macd_df["macd"]),
        "macd_signal": _to_points(macd_df["macd_signal"]),
        "macd_histogram": _to_points(macd_df["macd_histogram"]),
        "rsi": _to_points(compute_rsi(close, rsi_window)),
        "sma": _to_points(compute_sma(close, sma_window)),
    }
