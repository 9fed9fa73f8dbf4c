"""Tests for the series engine and indicator formulas."""

import numpy as np
import pytest

from engine.series import Series, stochastic_fast, stochastic_percent_k, stochastic_slow


def test_construction_truncates_to_shorter_input():
    s = Series([0, 1, 2], [10.0, 20.0])
    assert len(s) == 2
    assert s.indices == [0, 1]
    assert s.values == [10.0, 20.0]


def test_rolling_window_tags_last_index():
    s = Series.from_values([1.0, 2.0, 3.0, 4.0, 5.0])
    windows = s.rolling_window(3)
    assert windows.indices == [2, 3, 4]
    assert windows.values[0].values == [1.0, 2.0, 3.0]
    assert windows.values[-1].index_last == 4


@pytest.mark.parametrize("period", [0, -1, 6])
def test_rolling_window_insufficient_data_is_empty(period):
    s = Series.from_values([1.0, 2.0, 3.0, 4.0, 5.0])
    assert s.rolling_window(period).is_empty


def test_sma():
    sma = Series.from_values([1.0, 2.0, 3.0, 4.0, 5.0]).sma(2)
    assert sma.indices == [1, 2, 3, 4]
    assert sma.values == pytest.approx([1.5, 2.5, 3.5, 4.5])


def test_ema_recursion():
    ema = Series.from_values([1.0, 2.0, 3.0, 4.0, 5.0]).ema(3)
    assert ema.indices == [2, 3, 4]
    assert ema.values == pytest.approx([2.0, 3.0, 4.0])


def test_ema_uses_previous_value_not_window_mean():
    values = [10.0, 10.0, 10.0, 40.0, 10.0]
    ema = Series.from_values(values).ema(3)
    # seed 10, then (40-10)*0.5+10 = 25, then (10-25)*0.5+25 = 17.5
    assert ema.values == pytest.approx([10.0, 25.0, 17.5])
    assert ema.values[-1] != pytest.approx(np.mean(values[-3:]))


def test_ema_insufficient_data():
    assert Series.from_values([1.0, 2.0]).ema(3).is_empty
    assert Series.from_values([1.0, 2.0]).ema(0).is_empty


def test_rsi_saturates_on_rising_series():
    period = 3
    rsi = Series.from_values([float(v) for v in range(1, 11)]).rsi(period)
    assert rsi.indices[0] == period
    assert len(rsi) == 10 - period
    assert all(v == pytest.approx(100.0) for v in rsi.values)


def test_rsi_falling_series_is_zero():
    rsi = Series.from_values([float(v) for v in range(10, 0, -1)]).rsi(3)
    assert all(v == pytest.approx(0.0) for v in rsi.values)


def test_rsi_flat_series_is_fifty():
    rsi = Series.from_values([5.0] * 8).rsi(3)
    assert all(v == pytest.approx(50.0) for v in rsi.values)


def test_rsi_wilder_smoothing():
    values = [1.0, 2.0, 1.0, 2.0, 1.0]
    rsi = Series.from_values(values).rsi(2)
    # deltas +1,-1,+1,-1 ; seed gain 0.5 loss 0.5 -> 50
    # then gain (0.5+1)/2=0.75 loss 0.25 -> 75 ; then gain 0.375 loss 0.625 -> 37.5
    assert rsi.indices == [2, 3, 4]
    assert rsi.values == pytest.approx([50.0, 75.0, 37.5])


def test_rsi_needs_period_plus_one_values():
    assert Series.from_values([1.0, 2.0, 3.0]).rsi(3).is_empty


def test_bollinger_population_std():
    frame = Series.from_values([1.0, 2.0, 3.0]).bollinger(3, 2.0, 1.0)
    row = frame.rows[0]
    std = np.sqrt(2.0 / 3.0)
    assert frame.indices == [2]
    assert row.value == 3.0
    assert row.middle == pytest.approx(2.0)
    assert row.stddev == pytest.approx(std)
    assert row.upper == pytest.approx(2.0 + 2.0 * std)
    assert row.lower == pytest.approx(2.0 - 1.0 * std)


def test_series_and_frame_to_pandas():
    sma = Series.from_values([1.0, 2.0, 3.0, 4.0]).sma(2).to_pandas(name='sma')
    assert list(sma.index) == [1, 2, 3]
    assert list(sma) == pytest.approx([1.5, 2.5, 3.5])
    assert sma.name == 'sma'

    frame = Series.from_values([1.0, 2.0, 3.0]).bollinger(3, 2.0, 1.0).to_pandas()
    assert list(frame.index) == [2]
    assert list(frame.columns) == ['value', 'upper', 'middle', 'lower', 'stddev']
    assert frame.loc[2, 'middle'] == pytest.approx(2.0)


def test_macd_is_index_aligned():
    s = Series.from_values([float(v) + np.sin(v) for v in range(40)])
    frame = s.macd(3, 6, 4)
    # long EMA starts at 5, signal needs 4 MACD values -> first row at 8
    assert frame.indices[0] == 8
    assert len(frame) == 32

    short_ema = dict(s.ema(3))
    long_ema = dict(s.ema(6))
    for index, row in frame:
        assert row.macd == pytest.approx(short_ema[index] - long_ema[index])
        assert row.histogram == pytest.approx(row.macd - row.signal)


def test_zip_aligned_joins_on_index():
    a = Series([0, 1, 2, 3, 4], [1.0, 2.0, 3.0, 4.0, 5.0])
    b = Series([2, 3, 4], [10.0, 20.0, 30.0])
    joined = a.zip_aligned(b, lambda x, y: x + y)
    assert joined.indices == [2, 3, 4]
    assert joined.values == [13.0, 24.0, 35.0]


def test_amount_change():
    change = Series.from_values([1.0, 4.0, 9.0, 16.0]).amount_change(2)
    assert change.indices == [2, 3]
    assert change.values == [8.0, 12.0]


def test_stochastic_percent_k_zero_range():
    k = stochastic_percent_k(list(range(4)), [5.0] * 4, [5.0] * 4, [5.0] * 4, 2)
    assert k.values == [0.0, 0.0, 0.0]


def test_stochastic_percent_k_value():
    highs = [10.0, 12.0, 11.0]
    lows = [8.0, 9.0, 7.0]
    closes = [9.0, 11.0, 10.0]
    k = stochastic_percent_k([0, 1, 2], highs, lows, closes, 3)
    assert k.indices == [2]
    assert k.values[0] == pytest.approx(100.0 * (10.0 - 7.0) / (12.0 - 7.0))


def _ohlc(n=12):
    closes = [100.0 + 3.0 * np.sin(i / 2.0) for i in range(n)]
    highs = [c + 1.0 for c in closes]
    lows = [c - 1.5 for c in closes]
    return list(range(n)), highs, lows, closes


def test_stochastic_fast_percent_d_is_shifted():
    indices, highs, lows, closes = _ohlc()
    frame = stochastic_fast(indices, highs, lows, closes, 3, 2)
    k = dict(stochastic_percent_k(indices, highs, lows, closes, 3))
    # %K starts at 2, %D needs two %K values -> 3
    assert frame.indices[0] == 3
    first = frame.rows[0]
    assert first.percent_k == pytest.approx(k[3])
    assert first.percent_d == pytest.approx((k[2] + k[3]) / 2.0)


def test_stochastic_slow_alignment():
    indices, highs, lows, closes = _ohlc()
    frame = stochastic_slow(indices, highs, lows, closes, 3, 2, 2)
    assert frame.indices[0] == 4
    assert len(frame) == len(indices) - 4
