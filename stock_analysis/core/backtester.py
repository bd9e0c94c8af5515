"""
Replay buy/sell threshold rules over merged rows and report profit.

Each indicator rule runs its own long-only state machine: flat until its
buy condition holds, then holding until its sell condition holds.  Rules
do not coordinate with each other; their trades share one cash balance
and one share count and their signals are pooled in date order.  Trades
fill at the day's close.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .models import MergedRow, TradeSignal
from .rules import TradeRule, indicator_value, resolve_indicator

logger = logging.getLogger("backtester")

DEFAULT_STARTING_CASH = 10000.0


@dataclass
class ProfitResult:
    profit: float
    starting_cash: float
    ending_cash: float
    ending_shares: float
    signals: List[TradeSignal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "profit": round(self.profit, 2),
            "starting_cash": self.starting_cash,
            "ending_cash": self.ending_cash,
            "ending_shares": self.ending_shares,
            "signals": [s.to_dict() for s in self.signals],
        }


def simulate_profit(
    rows: Sequence[MergedRow],
    rules: Mapping[str, TradeRule],
    starting_cash: float = DEFAULT_STARTING_CASH,
) -> ProfitResult:
    """
    Run every rule in ``rules`` (indicator name -> rule) over ``rows``,
    which must be in ascending date order.  A day where a rule's indicator
    is undefined is skipped for that rule.  Cash is not constrained.
    """
    for name in rules:
        resolve_indicator(name)

    cash = starting_cash
    shares = 0.0
    # shares currently held per rule; absent means flat
    held: Dict[str, float] = {}
    signals: List[TradeSignal] = []

    for row in rows:
        price = row.close
        for name, rule in rules.items():
            value = indicator_value(row, name)
            if value is None:
                continue
            if name not in held:
                if rule.should_buy(value):
                    qty = rule.shares_for(price)
                    cash -= qty * price
                    shares += qty
                    held[name] = qty
                    signals.append(TradeSignal("Buy", row.date, price, name, qty))
            elif rule.should_sell(value):
                qty = held.pop(name)
                cash += qty * price
                shares -= qty
                signals.append(TradeSignal("Sell", row.date, price, name, qty))

    last_close = rows[-1].close if rows else 0.0
    profit = cash + shares * last_close - starting_cash
    logger.debug("Simulated %d rows, %d signals, profit %.2f", len(rows), len(signals), profit)
    return ProfitResult(
        profit=profit,
        starting_cash=starting_cash,
        ending_cash=cash,
        ending_shares=shares,
        signals=signals,
    )
