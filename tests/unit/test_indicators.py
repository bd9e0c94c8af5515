import pandas as pd
import pytest

from stock_analysis.core.indicators import (
    calculate_indicators,
    compute_ema,
    compute_macd,
    compute_rsi,
    compute_sma,
)


def test_compute_sma():
    series = pd.Series([1, 2, 3, 4, 5], dtype=float)
    sma3 = compute_sma(series, 3)
    # last value should be average of [3,4,5] = 4
    assert round(sma3.iloc[-1], 2) == 4.00
    assert sma3.iloc[:2].isna().all()


def test_compute_ema_is_sma_seeded():
    series = pd.Series([1, 2, 3, 4, 5], dtype=float)
    ema3 = compute_ema(series, 3)
    assert ema3.iloc[:2].isna().all()
    # seed is mean(1, 2, 3); alpha = 0.5 afterwards
    assert ema3.iloc[2] == pytest.approx(2.0)
    assert ema3.iloc[3] == pytest.approx(3.0)
    assert ema3.iloc[4] == pytest.approx(4.0)


def test_compute_rsi_flat_series_is_neutral():
    # constant series has RSI=50
    series = pd.Series([1] * 20, dtype=float)
    rsi = compute_rsi(series, 14)
    last = rsi.iloc[-1]
    assert 45 <= last <= 55


def test_compute_rsi_only_gains_is_100():
    rsi = compute_rsi(pd.Series(range(30), dtype=float), 14)
    assert rsi.iloc[:14].isna().all()
    assert rsi.iloc[14:].eq(100.0).all()


def test_compute_rsi_balanced_moves():
    closes = [10, 11] * 7 + [10]  # 15 bars, seven +1 and seven -1 moves
    rsi = compute_rsi(pd.Series(closes, dtype=float), 14)
    assert rsi.iloc[14] == pytest.approx(50.0)


def test_compute_macd_on_linear_trend():
    macd = compute_macd(pd.Series(range(60), dtype=float))
    assert macd["macd"].iloc[:25].isna().all()
    assert macd["macd_signal"].iloc[:33].isna().all()
    # SMA-seeded EMAs of a straight line lag by (N-1)/2: 12.5 - 5.5 = 7
    assert macd["macd"].iloc[25:].tolist() == pytest.approx([7.0] * 35)
    assert macd["macd_signal"].iloc[33:].tolist() == pytest.approx([7.0] * 27)
    assert macd["macd_histogram"].iloc[33:].abs().max() == pytest.approx(0.0, abs=1e-9)


def test_short_series_yields_empty_indicators(make_bars):
    result = calculate_indicators(make_bars(range(10)))
    assert result["sma"] == []
    assert result["rsi"] == []
    assert result["macd"] == []


def test_empty_input_yields_empty_series():
    result = calculate_indicators([])
    assert set(result) == {"macd", "macd_signal", "macd_histogram", "rsi", "sma"}
    assert all(points == [] for points in result.values())


def test_warm_up_lengths_and_dates(make_bars):
    bars = make_bars([100 + (i % 7) - (i % 3) for i in range(40)])
    result = calculate_indicators(bars)
    assert len(result["sma"]) == 40 - 13
    assert len(result["rsi"]) == 40 - 14
    assert len(result["macd"]) == 40 - 25
    assert len(result["macd_signal"]) == 40 - 33
    assert result["sma"][0].date == bars[13].date
    assert result["rsi"][0].date == bars[14].date
    assert result["macd"][-1].date == bars[-1].date
    assert all(0 <= p.value <= 100 for p in result["rsi"])


def test_sma_window_of_exactly_14_bars(make_bars):
    bars = make_bars(range(1, 15))
    result = calculate_indicators(bars)
    assert len(result["sma"]) == 1
    assert result["sma"][0].value == pytest.approx(7.5)
    assert result["rsi"] == []
