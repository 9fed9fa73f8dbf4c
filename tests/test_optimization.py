"""Tests for grid search and hill-climbing.

The test strategy enters on the first bar and books its profit target on
the next one, so each backtest's total profit equals the target distance
computed from the parameters. That gives a known, concave surface with its
maximum at x=3, y=2.
"""

import pandas as pd
import pytest

from config.schema import OptimizationOptions
from engine.types import Bar
from metrics.metrics import total_profit_objective
from strategies.base import Strategy
from validation.optimization import (
    ParameterDef,
    accept_result,
    grid_search,
    hill_climb,
    optimize,
)


def surface(x, y):
    return 50.0 - (x - 3.0) ** 2 - (y - 2.0) ** 2


def make_bars():
    times = pd.date_range('2024-01-01', periods=3, freq='D')
    return [
        Bar(time=times[0], open=100.0, high=100.0, low=100.0, close=100.0),
        Bar(time=times[1], open=100.0, high=1e6, low=100.0, close=100.0),
        Bar(time=times[2], open=100.0, high=100.0, low=100.0, close=100.0),
    ]


def surface_strategy(bars):
    first = bars[0].time

    def profit_target(args):
        return surface(args.parameters['x'], args.parameters['y'])

    return Strategy(
        entry_rule=lambda args: args.bar.time == first,
        profit_target=profit_target,
        parameters={'x': 0.0, 'y': 0.0},
    )


AXES = [ParameterDef('x', 0.0, 6.0, 1.0), ParameterDef('y', 0.0, 5.0, 1.0)]


def test_parameter_values():
    assert ParameterDef('a', 1.0, 3.0, 1.0).values() == [1.0, 2.0, 3.0]
    assert len(ParameterDef('a', 0.1, 0.3, 0.1).values()) == 3
    assert ParameterDef('a', 1.0, 1.0, 1.0).values() == [1.0]
    assert ParameterDef('a', 1.0, 3.0, 0.0).values() == []
    assert ParameterDef('a', 3.0, 1.0, 1.0).values() == []


def test_accept_result_is_strict():
    assert accept_result(1.0, 2.0, 'max')
    assert not accept_result(1.0, 1.0, 'max')
    assert accept_result(2.0, 1.0, 'min')
    assert not accept_result(1.0, 1.0, 'min')


def test_grid_search_finds_maximum():
    bars = make_bars()
    result = grid_search(surface_strategy(bars), AXES, total_profit_objective, bars)
    assert result.best_result == pytest.approx(50.0)
    assert result.best_parameter_values == {'x': 3.0, 'y': 2.0}
    assert result.all_results is None


def test_grid_search_records_every_point():
    bars = make_bars()
    options = OptimizationOptions(record_all_results=True, record_duration=True)
    result = grid_search(surface_strategy(bars), AXES, total_profit_objective, bars, options)

    assert len(result.all_results) == 7 * 6
    assert all(r.num_trades == 1 for r in result.all_results)
    assert result.duration_ms is not None and result.duration_ms >= 0.0
    frame = result.results_frame()
    assert list(frame.columns) == ['x', 'y', 'result', 'num_trades']


def test_grid_search_minimum_keeps_first_tie():
    bars = make_bars()
    options = OptimizationOptions(search_direction='min')
    result = grid_search(surface_strategy(bars), AXES, total_profit_objective, bars, options)
    # (0, 5) and (6, 5) both score 32; the first axis is outermost
    assert result.best_result == pytest.approx(32.0)
    assert result.best_parameter_values == {'x': 0.0, 'y': 5.0}


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_hill_climb_agrees_with_grid(seed):
    bars = make_bars()
    options = OptimizationOptions(optimization_type='hill-climb', random_seed=seed, num_starting_points=1)
    result = hill_climb(surface_strategy(bars), AXES, total_profit_objective, bars, options)
    assert result.best_result == pytest.approx(50.0)
    assert result.best_parameter_values == {'x': 3.0, 'y': 2.0}


def test_hill_climb_never_reevaluates_a_point():
    bars = make_bars()
    options = OptimizationOptions(record_all_results=True, num_starting_points=10)
    result = hill_climb(surface_strategy(bars), AXES, total_profit_objective, bars, options)

    seen = [tuple(sorted(r.params.items())) for r in result.all_results]
    assert len(seen) == len(set(seen))
    assert len(seen) <= 7 * 6


def test_hill_climb_is_reproducible():
    bars = make_bars()
    options = OptimizationOptions(record_all_results=True, random_seed=11, num_starting_points=3)
    first = hill_climb(surface_strategy(bars), AXES, total_profit_objective, bars, options)
    second = hill_climb(surface_strategy(bars), AXES, total_profit_objective, bars, options)
    assert [r.params for r in first.all_results] == [r.params for r in second.all_results]


def test_optimize_dispatches_on_type():
    bars = make_bars()
    strategy = surface_strategy(bars)
    grid = optimize(strategy, AXES, total_profit_objective, bars)
    climb = optimize(strategy, AXES, total_profit_objective, bars, OptimizationOptions(optimization_type='hill-climb'))
    assert grid.best_parameter_values == climb.best_parameter_values == {'x': 3.0, 'y': 2.0}


def test_param_mapper_shapes_result():
    bars = make_bars()
    result = grid_search(
        surface_strategy(bars),
        AXES,
        total_profit_objective,
        bars,
        param_mapper=lambda p: (p['x'], p['y']),
    )
    assert result.best_parameter_values == (3.0, 2.0)


def test_unknown_parameter_name_raises():
    bars = make_bars()
    with pytest.raises(ValueError):
        grid_search(surface_strategy(bars), [ParameterDef('z', 0.0, 1.0, 1.0)], total_profit_objective, bars)
    with pytest.raises(ValueError):
        hill_climb(surface_strategy(bars), [ParameterDef('z', 0.0, 1.0, 1.0)], total_profit_objective, bars)


def test_empty_axis_returns_empty_result():
    bars = make_bars()
    axes = [ParameterDef('x', 0.0, 6.0, 1.0), ParameterDef('y', 0.0, 5.0, 0.0)]
    for search in (grid_search, hill_climb):
        result = search(surface_strategy(bars), axes, total_profit_objective, bars)
        assert result.best_result == 0.0
        assert result.best_parameter_values is None


def test_zero_starting_points():
    bars = make_bars()
    options = OptimizationOptions(num_starting_points=0)
    result = hill_climb(surface_strategy(bars), AXES, total_profit_objective, bars, options)
    assert result.best_parameter_values is None
