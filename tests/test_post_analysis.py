"""Tests for the risk-adjusted (BK) drawdown post-analysis."""

import numpy as np
import pandas as pd
import pytest

from engine.types import TimestampedValue, Trade, TradeDirection
from metrics.metrics import analyze
from metrics.post_analysis import (
    drawdown_scan,
    fixed_proxies,
    post_analysis,
    trade_drawdown,
    trailing_proxies,
    unwound_price,
)


def _observations(values):
    times = pd.date_range('2024-01-01', periods=len(values), freq='D')
    return [TimestampedValue(t, v) for t, v in zip(times, values)]


def make_trade(stop_price=90.0, stops=(), risks=()):
    return Trade(
        direction=TradeDirection.LONG,
        entry_time=pd.Timestamp('2024-01-01'),
        entry_price=100.0,
        exit_time=pd.Timestamp('2024-01-10'),
        exit_price=101.0,
        profit=1.0,
        profit_pct=1.0,
        growth=1.01,
        stop_price=stop_price,
        stop_price_series=_observations(list(stops)),
        risk_series=_observations(list(risks)),
    )


def test_drawdown_scan_known_sequence():
    scan = drawdown_scan([100.0, 110.0, 99.0, 105.0, 88.0])
    assert scan == pytest.approx([0.0, 0.0, 10.0, 10.0, 20.0])
    assert trade_drawdown([100.0, 110.0, 99.0, 105.0, 88.0]) == pytest.approx((20.0, 22.0))


def test_new_peak_resets_trough():
    # the 95 after the new peak at 120 is measured from 120, not 100
    assert drawdown_scan([100.0, 90.0, 120.0, 95.0])[-1] == pytest.approx(25.0 / 120.0 * 100.0)


def test_drawdown_scan_never_decreases():
    values = 100.0 + np.cumsum(np.random.default_rng(7).normal(0.0, 2.0, 200))
    scan = drawdown_scan(values)
    assert all(b >= a for a, b in zip(scan, scan[1:]))


def test_unwound_price():
    assert unwound_price(90.0, 10.0) == pytest.approx(100.0)
    assert unwound_price(90.0, 100.0) == 90.0


def test_trailing_proxies_default_missing_risk_to_zero():
    trade = make_trade(stops=[95.0, 96.0, 97.0], risks=[5.0])
    assert trailing_proxies(trade) == pytest.approx([95.0 / 0.95, 96.0, 97.0])


def test_fixed_stop_bk_drawdown():
    trade = make_trade(stop_price=90.0, risks=[10.0, 20.0, 5.0])
    proxies = fixed_proxies(trade)
    assert proxies == pytest.approx([100.0, 112.5, 90.0 / 0.95])

    analysis = analyze(1000.0, [trade])
    result = post_analysis(analysis, [trade], trailing_stop_loss=False)

    expected_pct = (112.5 - 90.0 / 0.95) / 112.5 * 100.0
    assert result.bk_max_drawdown_pct == pytest.approx(expected_pct)
    assert result.bk_max_drawdown == pytest.approx(112.5 - 90.0 / 0.95)
    # the input analysis is left untouched
    assert analysis.bk_max_drawdown_pct == 0.0
    assert result.total_trades == analysis.total_trades


def test_worst_trade_is_reported():
    mild = make_trade(stops=[100.0, 95.0])
    severe = make_trade(stops=[100.0, 80.0])
    result = post_analysis(analyze(1000.0, [mild, severe]), [mild, severe], trailing_stop_loss=True)
    assert result.bk_max_drawdown_pct == pytest.approx(20.0)
    assert result.bk_max_drawdown == pytest.approx(20.0)


def test_no_recorded_series_gives_zero():
    trade = make_trade()
    result = post_analysis(analyze(1000.0, [trade]), [trade], trailing_stop_loss=True)
    assert result.bk_max_drawdown_pct == 0.0
    assert result.bk_max_drawdown == 0.0
