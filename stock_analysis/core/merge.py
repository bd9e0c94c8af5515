"""
Join price bars with indicator series by exact calendar date.

The price bars are the authoritative row set (a LEFT JOIN): every bar
yields exactly one MergedRow, in bar order, and an indicator field is set
only when that series has a point for the bar's date.  Each series is
indexed by date once, so the join is linear in the total input size and
does not depend on how the series are ordered internally.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .indicators import calculate_indicators
from .models import INDICATOR_FIELDS, IndicatorPoint, MergedRow, PriceBar

logger = logging.getLogger("series_merge")


def _index_by_date(points: Sequence[IndicatorPoint]) -> Dict[dt.date, float]:
    index: Dict[dt.date, float] = {}
    for p in points:
        # first point wins so the result is independent of later duplicates
        index.setdefault(p.date, p.value)
    return index


def merge_series(
    bars: Sequence[PriceBar],
    indicators: Optional[Mapping[str, Sequence[IndicatorPoint]]] = None,
) -> List[MergedRow]:
    """Merge ``bars`` with any of the known indicator series."""
    lookups: Dict[str, Dict[dt.date, float]] = {}
    for name, points in (indicators or {}).items():
        if name not in INDICATOR_FIELDS:
            logger.debug("Ignoring unknown indicator series %r", name)
            continue
        lookups[name] = _index_by_date(points or [])

    rows: List[MergedRow] = []
    for bar in bars:
        values = {name: lookup.get(bar.date) for name, lookup in lookups.items()}
        rows.append(
            MergedRow(
                date=bar.date,
                open=bar.open,
                high=bar.high,
                low=bar.low,
                close=bar.close,
                volume=bar.volume,
                **values,
            )
        )
    return rows


def build_merged_rows(bars: Sequence[PriceBar]) -> List[MergedRow]:
    """Compute the default indicator set for ``bars`` and merge it in."""
    return merge_series(bars, calculate_indicators(bars))
