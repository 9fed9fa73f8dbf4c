import pandas as pd
import pytest

from config.schema import MonteCarloOptions
from engine.types import Trade, TradeDirection
from validation.monte_carlo import monte_carlo, monte_carlo_from_options, summarize_monte_carlo


def _build_trades(n=20):
    start = pd.Timestamp('2023-01-01')
    trades = []
    for i in range(n):
        growth = 1.0 + (0.02 if i % 3 else -0.03)
        trades.append(Trade(
            direction=TradeDirection.LONG,
            entry_time=start + pd.Timedelta(days=i),
            entry_price=100.0 + i,
            exit_time=start + pd.Timedelta(days=i + 1),
            exit_price=(100.0 + i) * growth,
            profit=(100.0 + i) * (growth - 1.0),
            profit_pct=(growth - 1.0) * 100.0,
            growth=growth,
            rmultiple=2.0 if i % 3 else -1.0,
            exit_reason='test',
        ))
    return trades


def _entry_prices(samples):
    return [[t.entry_price for t in sample] for sample in samples]


def test_same_seed_gives_identical_samples():
    trades = _build_trades()
    a = monte_carlo(trades, num_iterations=50, num_samples=10, random_seed=42)
    b = monte_carlo(trades, num_iterations=50, num_samples=10, random_seed=42)
    assert _entry_prices(a) == _entry_prices(b)


def test_different_seed_changes_samples():
    trades = _build_trades()
    a = monte_carlo(trades, num_iterations=50, num_samples=10, random_seed=1)
    b = monte_carlo(trades, num_iterations=50, num_samples=10, random_seed=2)
    assert _entry_prices(a) != _entry_prices(b)


def test_sample_shape_and_membership():
    trades = _build_trades()
    samples = monte_carlo(trades, num_iterations=30, num_samples=7, random_seed=3)
    assert len(samples) == 30
    assert all(len(sample) == 7 for sample in samples)
    assert all(t in trades for sample in samples for t in sample)


@pytest.mark.parametrize("iterations,samples", [(0, 10), (10, 0), (-5, 3)])
def test_invalid_counts_give_no_samples(iterations, samples):
    assert monte_carlo(_build_trades(), iterations, samples) == []


def test_no_trades_gives_no_samples():
    assert monte_carlo([], 10, 10) == []


def test_options_wrapper_uses_seed():
    trades = _build_trades()
    options = MonteCarloOptions(num_iterations=5, num_samples=4, random_seed=9)
    assert _entry_prices(monte_carlo_from_options(trades, options)) == _entry_prices(
        monte_carlo(trades, 5, 4, random_seed=9)
    )


def test_summary():
    samples = monte_carlo(_build_trades(), num_iterations=40, num_samples=15, random_seed=0)
    result = summarize_monte_carlo(samples, 10_000.0)

    assert result.n_iterations == 40
    assert len(result.samples) == 40
    assert set(result.percentiles) == {'profit_pct', 'max_drawdown_pct', 'profit_factor', 'expectancy'}
    assert set(result.percentiles['profit_pct']) == {'p5', 'p25', 'p50', 'p75', 'p95'}
    assert result.percentiles['profit_pct']['p5'] <= result.percentiles['profit_pct']['p95']
    assert 0.0 <= result.prob_loss <= 1.0


def test_summary_of_no_samples():
    result = summarize_monte_carlo([], 10_000.0)
    assert result.n_iterations == 0
    assert result.percentiles == {}
    assert result.prob_loss == 0.0
