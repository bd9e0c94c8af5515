"""Tests for the threshold-rule profit simulator."""

import datetime as dt

import pytest

from stock_analysis.core.backtester import simulate_profit
from stock_analysis.core.merge import merge_series
from stock_analysis.core.models import IndicatorPoint
from stock_analysis.core.rules import TradeRule, UnknownIndicatorError


def share_rule(buy, sell, amount, unit="shares"):
    return TradeRule(
        buy_threshold=buy,
        buy_comparison="<",
        sell_threshold=sell,
        sell_comparison=">",
        trade_amount=amount,
        trade_amount_unit=unit,
    )


def test_buy_then_sell_on_price(make_bars):
    rows = merge_series(make_bars([98, 105, 102], start=dt.date(2023, 10, 1)))
    result = simulate_profit(rows, {"Price": share_rule(99, 104, 10)}, starting_cash=10000)

    assert result.profit == pytest.approx(70.0)
    assert [(s.type, s.date, s.price, s.shares) for s in result.signals] == [
        ("Buy", dt.date(2023, 10, 1), 98.0, 10),
        ("Sell", dt.date(2023, 10, 2), 105.0, 10),
    ]
    assert result.ending_shares == 0
    assert result.to_dict()["profit"] == 70.0


def test_currency_amount_buys_fractional_shares(make_bars):
    rows = merge_series(make_bars([98, 107]))
    result = simulate_profit(rows, {"Price": share_rule(99, 106, 1000, unit="dollars")})
    # 1000/98 shares bought at 98 and sold at 107
    assert result.profit == pytest.approx(1000 / 98 * 107 - 1000)
    assert result.profit == pytest.approx(91.84, abs=0.01)
    assert result.signals[0].shares == pytest.approx(1000 / 98)


def test_rules_run_independently_and_signals_pool(make_bars):
    bars = make_bars([100, 105, 102])
    rsi = [IndicatorPoint(b.date, v) for b, v in zip(bars, [20, 80, 50])]
    rows = merge_series(bars, {"rsi": rsi})
    rules = {
        "Price": share_rule(99, 106, 10),
        "RSI": share_rule(25, 75, 5),
    }
    result = simulate_profit(rows, rules)
    assert result.profit == pytest.approx(25.0)
    assert [(s.type, s.indicator) for s in result.signals] == [("Buy", "RSI"), ("Sell", "RSI")]


def test_days_without_indicator_value_are_skipped(make_bars):
    bars = make_bars([90, 95, 120])
    # sma only defined on the last day, where the buy condition does not hold
    rows = merge_series(bars, {"sma": [IndicatorPoint(bars[2].date, 200.0)]})
    result = simulate_profit(rows, {"SMA": share_rule(150, 300, 1)})
    assert result.signals == []
    assert result.profit == 0


def test_open_position_is_marked_at_last_close(make_bars):
    rows = merge_series(make_bars([98, 100, 110]))
    result = simulate_profit(rows, {"Price": share_rule(99, 200, 2)})
    assert [s.type for s in result.signals] == ["Buy"]
    assert result.ending_shares == 2
    assert result.ending_cash == pytest.approx(10000 - 196)
    assert result.profit == pytest.approx((110 - 98) * 2)


def test_holding_rule_does_not_buy_again(make_bars):
    rows = merge_series(make_bars([90, 91, 92, 120, 80]))
    result = simulate_profit(rows, {"Price": share_rule(99, 100, 1)})
    assert [s.type for s in result.signals] == ["Buy", "Sell", "Buy"]


def test_boundary_values_do_not_trade(make_bars):
    rows = merge_series(make_bars([99, 104]))
    result = simulate_profit(rows, {"Price": share_rule(99, 104, 10)})
    assert result.signals == []


def test_empty_rows_give_zero_profit():
    result = simulate_profit([], {"Price": share_rule(99, 104, 10)})
    assert result.profit == 0
    assert result.signals == []


def test_unknown_indicator_rejected(make_bars):
    with pytest.raises(UnknownIndicatorError):
        simulate_profit(merge_series(make_bars([1])), {"Stochastic": share_rule(1, 2, 1)})


def test_trade_rule_validation():
    with pytest.raises(ValueError):
        TradeRule(1, "<=", 2, ">", 1)
    with pytest.raises(ValueError):
        TradeRule(1, "<", 2, ">", 1, trade_amount_unit="lots")
    assert TradeRule(1, "<", 2, ">", 1, trade_amount_unit="Dollars").trade_amount_unit == "currency"
