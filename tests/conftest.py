import datetime as dt
from typing import List, Sequence

import pytest

from stock_analysis.alerts.store import NotificationStore
from stock_analysis.core.models import PriceBar


def _make_bars(closes: Sequence[float], start: dt.date = dt.date(2023, 1, 2)) -> List[PriceBar]:
    """One bar per consecutive calendar day with the given closes."""
    return [
        PriceBar(
            date=start + dt.timedelta(days=i),
            open=float(c),
            high=float(c) + 1,
            low=float(c) - 1,
            close=float(c),
            volume=1000.0 + i,
        )
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def make_bars():
    return _make_bars


@pytest.fixture
def store() -> NotificationStore:
    return NotificationStore.from_url("sqlite://")
