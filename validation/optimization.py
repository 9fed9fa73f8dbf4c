"""Strategy parameter optimization: exhaustive grid search and hill-climbing.

Both searches evaluate an objective function over the trades of a backtest
run with a given parameter set, and keep the best result according to the
search direction. An improvement must be strict, so the first point seen
wins ties.
"""

import logging
import time
from dataclasses import dataclass
from itertools import product
from typing import Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd
from tqdm import tqdm

from config.schema import OptimizationOptions
from engine.backtest_engine import backtest
from engine.types import Bar
from metrics.metrics import ObjectiveFn
from strategies.base import Strategy
from validation.rng import Random

logger = logging.getLogger(__name__)

T = TypeVar("T")
ParamMapper = Callable[[Dict[str, float]], T]

# Slack, in steps, when deciding whether the last grid value still fits
GRID_TOLERANCE = 1e-9


@dataclass
class ParameterDef:
    """One optimisable axis, iterated ``start, start+step, ... <= end``."""
    name: str
    starting_value: float
    ending_value: float
    step_size: float

    def values(self) -> List[float]:
        """Grid values on this axis; empty when ``step <= 0`` or ``end < start``."""
        if self.step_size <= 0 or self.ending_value < self.starting_value:
            return []
        steps = int(np.floor((self.ending_value - self.starting_value) / self.step_size + GRID_TOLERANCE))
        return [self.starting_value + i * self.step_size for i in range(steps + 1)]


@dataclass
class OptimizationIterationResult(Generic[T]):
    """One evaluated parameter set."""
    params: T
    result: float
    num_trades: int


@dataclass
class OptimizationResult(Generic[T]):
    """Search outcome.

    Attributes:
        best_result: Best objective value (0.0 when nothing was evaluated)
        best_parameter_values: Mapped best parameters (None when nothing was evaluated)
        all_results: Every evaluated point when ``record_all_results`` is set
        duration_ms: Wall time when ``record_duration`` is set
    """
    best_result: float = 0.0
    best_parameter_values: Optional[T] = None
    all_results: Optional[List[OptimizationIterationResult[T]]] = None
    duration_ms: Optional[float] = None

    def results_frame(self) -> pd.DataFrame:
        """All recorded results as a DataFrame (parameter columns when params are dicts)."""
        rows = []
        for item in self.all_results or []:
            row = dict(item.params) if isinstance(item.params, dict) else {'params': item.params}
            row['result'] = item.result
            row['num_trades'] = item.num_trades
            rows.append(row)
        return pd.DataFrame(rows)


def accept_result(working: float, candidate: float, search_direction: str) -> bool:
    """True when ``candidate`` strictly improves on ``working``."""
    if search_direction == "max":
        return candidate > working
    return candidate < working


class _Evaluator:
    """Backtests parameter sets and memoizes them by grid position."""

    def __init__(
        self,
        strategy: Strategy,
        parameters: Sequence[ParameterDef],
        objective_fn: ObjectiveFn,
        bars: List[Bar],
        options: OptimizationOptions,
        param_mapper: ParamMapper,
    ):
        strategy.validate_parameter_names([p.name for p in parameters])
        self.strategy = strategy
        self.parameters = list(parameters)
        self.axes = [p.values() for p in self.parameters]
        self.objective_fn = objective_fn
        self.bars = bars
        self.options = options
        self.param_mapper = param_mapper
        self.visited: Dict[Tuple[int, ...], Tuple[float, int]] = {}
        self.records: List[OptimizationIterationResult] = []
        self.best: Optional[Tuple[float, Tuple[int, ...]]] = None

    @property
    def is_empty(self) -> bool:
        return not self.axes or any(len(axis) == 0 for axis in self.axes)

    def coordinates(self, key: Tuple[int, ...]) -> Dict[str, float]:
        return {p.name: axis[i] for p, axis, i in zip(self.parameters, self.axes, key)}

    def evaluate(self, key: Tuple[int, ...]) -> float:
        if key in self.visited:
            return self.visited[key][0]

        coordinates = self.coordinates(key)
        trades = backtest(self.strategy.with_parameters(coordinates), self.bars).trades
        metric = float(self.objective_fn(trades))
        self.visited[key] = (metric, len(trades))

        if self.best is None or accept_result(self.best[0], metric, self.options.search_direction):
            self.best = (metric, key)
        if self.options.record_all_results:
            self.records.append(OptimizationIterationResult(
                params=self.param_mapper(coordinates), result=metric, num_trades=len(trades)
            ))
        return metric

    def result(self, started: float) -> OptimizationResult:
        duration = (time.perf_counter() - started) * 1000.0 if self.options.record_duration else None
        all_results = self.records if self.options.record_all_results else None
        if self.best is None:
            return OptimizationResult(all_results=all_results, duration_ms=duration)
        metric, key = self.best
        return OptimizationResult(
            best_result=metric,
            best_parameter_values=self.param_mapper(self.coordinates(key)),
            all_results=all_results,
            duration_ms=duration,
        )


def grid_search(
    strategy: Strategy,
    parameters: Sequence[ParameterDef],
    objective_fn: ObjectiveFn,
    bars: List[Bar],
    options: Optional[OptimizationOptions] = None,
    param_mapper: ParamMapper = dict,
) -> OptimizationResult:
    """
    Evaluate every point of the parameter grid.

    Args:
        strategy: Strategy declaring every parameter being searched
        parameters: Axes, iterated with the first axis outermost
        objective_fn: trades -> score
        bars: Bars to backtest on
        options: Search options
        param_mapper: Packs a {name: value} dict into the caller's type

    Returns:
        OptimizationResult

    Raises:
        ValueError: A parameter name is not declared by the strategy
    """
    options = options or OptimizationOptions()
    started = time.perf_counter()
    evaluator = _Evaluator(strategy, parameters, objective_fn, bars, options, param_mapper)
    if evaluator.is_empty:
        logger.warning("Grid search has an empty axis; nothing to evaluate")
        return evaluator.result(started)

    keys = list(product(*[range(len(axis)) for axis in evaluator.axes]))
    for key in tqdm(keys, desc="Grid search", disable=not options.show_progress):
        evaluator.evaluate(key)

    logger.info(f"Grid search evaluated {len(keys)} points, best={evaluator.best[0]:.4f}")
    return evaluator.result(started)


def _neighbours(key: Tuple[int, ...], axes: List[List[float]]) -> List[Tuple[int, ...]]:
    """+step on every axis, then -step on every axis, within bounds."""
    result = []
    for i in range(len(key)):
        if key[i] + 1 < len(axes[i]):
            result.append(key[:i] + (key[i] + 1,) + key[i + 1:])
    for i in range(len(key)):
        if key[i] - 1 >= 0:
            result.append(key[:i] + (key[i] - 1,) + key[i + 1:])
    return result


def hill_climb(
    strategy: Strategy,
    parameters: Sequence[ParameterDef],
    objective_fn: ObjectiveFn,
    bars: List[Bar],
    options: Optional[OptimizationOptions] = None,
    param_mapper: ParamMapper = dict,
) -> OptimizationResult:
    """
    Steepest-ascent hill-climbing from several random starting points.

    Each start picks a random step count per axis. From there the search
    moves to the best strictly improving single-axis neighbour (first in
    neighbour order on ties) until no neighbour improves. Starts that were
    already evaluated are skipped.

    Args:
        strategy: Strategy declaring every parameter being searched
        parameters: Axes to search
        objective_fn: trades -> score
        bars: Bars to backtest on
        options: Search options (seed, number of starting points)
        param_mapper: Packs a {name: value} dict into the caller's type

    Returns:
        OptimizationResult with the best point seen across all climbs

    Raises:
        ValueError: A parameter name is not declared by the strategy
    """
    options = options or OptimizationOptions()
    started = time.perf_counter()
    evaluator = _Evaluator(strategy, parameters, objective_fn, bars, options, param_mapper)
    if evaluator.is_empty or options.num_starting_points <= 0:
        logger.warning("Hill-climbing has nothing to evaluate")
        return evaluator.result(started)

    random = Random(options.random_seed)
    direction = options.search_direction
    for _ in tqdm(range(options.num_starting_points), desc="Hill-climbing", disable=not options.show_progress):
        current = tuple(random.get_int(0, len(axis) - 1) for axis in evaluator.axes)
        if current in evaluator.visited:
            continue
        current_metric = evaluator.evaluate(current)

        while True:
            best_key = None
            best_metric = current_metric
            for neighbour in _neighbours(current, evaluator.axes):
                metric = evaluator.evaluate(neighbour)
                if accept_result(best_metric, metric, direction):
                    best_key, best_metric = neighbour, metric
            if best_key is None:
                break
            current, current_metric = best_key, best_metric

        logger.debug(f"Climb finished at {evaluator.coordinates(current)} ({current_metric:.4f})")

    return evaluator.result(started)


def optimize(
    strategy: Strategy,
    parameters: Sequence[ParameterDef],
    objective_fn: ObjectiveFn,
    bars: List[Bar],
    options: Optional[OptimizationOptions] = None,
    param_mapper: ParamMapper = dict,
) -> OptimizationResult:
    """Dispatch to grid search or hill-climbing per ``options.optimization_type``."""
    options = options or OptimizationOptions()
    if options.optimization_type == "hill-climb":
        return hill_climb(strategy, parameters, objective_fn, bars, options, param_mapper)
    return grid_search(strategy, parameters, objective_fn, bars, options, param_mapper)
