"""Walk-forward optimization.

The bar series is cut into adjacent in-sample / out-of-sample windows:

    fold k: in-sample  [k*O, k*O + I)
            out-sample [k*O + I, k*O + I + O)

Each fold re-optimizes on its in-sample window and trades the winning
parameters on the following out-of-sample window. Out-of-sample windows
never overlap, and the run stops as soon as a full out-of-sample window can
no longer be filled, giving ``floor((N - I) / O)`` folds for ``N >= I``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from config.schema import OptimizationOptions, WalkForwardConfig
from engine.backtest_engine import backtest
from engine.types import Bar, Trade
from metrics.metrics import ObjectiveFn
from strategies.base import Strategy
from validation.optimization import ParameterDef, optimize
from validation.rng import Random

logger = logging.getLogger(__name__)


@dataclass
class WalkForwardStep:
    """Results from a single walk-forward fold."""
    step_number: int
    in_sample_start: int
    in_sample_end: int
    out_sample_start: int
    out_sample_end: int
    train_start: Optional[pd.Timestamp]
    test_start: Optional[pd.Timestamp]
    test_end: Optional[pd.Timestamp]
    best_parameters: Dict[str, float]
    in_sample_result: float
    out_sample_result: float
    out_sample_trades: List[Trade] = field(default_factory=list)


@dataclass
class WalkForwardResult:
    """Complete walk-forward results: concatenated out-of-sample trades plus per-fold detail."""
    trades: List[Trade] = field(default_factory=list)
    steps: List[WalkForwardStep] = field(default_factory=list)
    summary: Dict = field(default_factory=dict)

    def steps_frame(self) -> pd.DataFrame:
        """One row per fold."""
        rows = []
        for step in self.steps:
            row = {
                'step': step.step_number,
                'in_sample_start': step.in_sample_start,
                'out_sample_start': step.out_sample_start,
                'out_sample_end': step.out_sample_end,
                'test_start': step.test_start,
                'test_end': step.test_end,
                'in_sample_result': step.in_sample_result,
                'out_sample_result': step.out_sample_result,
                'out_sample_trades': len(step.out_sample_trades),
            }
            row.update({f"param_{k}": v for k, v in step.best_parameters.items()})
            rows.append(row)
        return pd.DataFrame(rows)


class WalkForwardAnalyzer:
    """Walk-forward optimization engine."""

    def __init__(
        self,
        strategy: Strategy,
        parameters: Sequence[ParameterDef],
        objective_fn: ObjectiveFn,
        config: WalkForwardConfig,
        options: Optional[OptimizationOptions] = None,
    ):
        """
        Initialize walk-forward analyzer.

        Args:
            strategy: Strategy declaring the searched parameters
            parameters: Axes re-optimized on every fold
            objective_fn: trades -> score
            config: In-sample / out-of-sample sizes (bars) and seed
            options: Optimization options used on every fold
        """
        strategy.validate_parameter_names([p.name for p in parameters])
        self.strategy = strategy
        self.parameters = list(parameters)
        self.objective_fn = objective_fn
        self.config = config
        self.options = options or OptimizationOptions()

    def run(self, bars: List[Bar]) -> WalkForwardResult:
        """
        Run walk-forward optimization over ``bars``.

        Returns:
            WalkForwardResult; empty when either window size is not positive
        """
        in_size = self.config.in_sample_size
        out_size = self.config.out_sample_size
        if in_size <= 0 or out_size <= 0:
            logger.warning(f"Invalid walk-forward window sizes: in={in_size}, out={out_size}")
            return WalkForwardResult(summary=self._summarize([]))

        random = Random(self.config.random_seed)
        trades: List[Trade] = []
        steps: List[WalkForwardStep] = []
        offset = 0
        while True:
            in_sample = bars[offset:offset + in_size]
            out_sample = bars[offset + in_size:offset + in_size + out_size]
            if len(out_sample) < out_size:
                break

            fold_options = self.options.model_copy(update={'random_seed': random.spawn_seed()})
            best = optimize(self.strategy, self.parameters, self.objective_fn, in_sample, fold_options)
            best_parameters = dict(best.best_parameter_values or {})

            out_trades = backtest(self.strategy.with_parameters(best_parameters), out_sample).trades
            trades.extend(out_trades)
            steps.append(WalkForwardStep(
                step_number=len(steps) + 1,
                in_sample_start=offset,
                in_sample_end=offset + in_size,
                out_sample_start=offset + in_size,
                out_sample_end=offset + in_size + out_size,
                train_start=in_sample[0].time if in_sample else None,
                test_start=out_sample[0].time,
                test_end=out_sample[-1].time,
                best_parameters=best_parameters,
                in_sample_result=best.best_result,
                out_sample_result=float(self.objective_fn(out_trades)),
                out_sample_trades=out_trades,
            ))
            logger.info(
                f"Walk-forward step {len(steps)}: best={best_parameters} "
                f"in-sample={best.best_result:.4f}, out-of-sample trades={len(out_trades)}"
            )
            offset += out_size

        return WalkForwardResult(trades=trades, steps=steps, summary=self._summarize(steps))

    def _summarize(self, steps: List[WalkForwardStep]) -> Dict:
        in_results = [s.in_sample_result for s in steps]
        out_results = [s.out_sample_result for s in steps]
        efficiency = [o / i for i, o in zip(in_results, out_results) if i > 0]
        return {
            'total_steps': len(steps),
            'total_trades': sum(len(s.out_sample_trades) for s in steps),
            'mean_in_sample_result': float(np.mean(in_results)) if in_results else 0.0,
            'mean_out_sample_result': float(np.mean(out_results)) if out_results else 0.0,
            'std_out_sample_result': float(np.std(out_results)) if len(out_results) > 1 else 0.0,
            'walk_forward_efficiency': float(np.mean(efficiency)) if efficiency else 0.0,
            'consistency_score': self._calculate_consistency(out_results),
        }

    @staticmethod
    def _calculate_consistency(values: List[float]) -> float:
        """
        Calculate consistency score (coefficient of variation).
        Higher is more consistent, 1.0 when there is no variation.
        """
        if not values or len(values) < 2:
            return 0.0

        mean_val = np.mean(values)
        if mean_val == 0:
            return 0.0

        cv = np.std(values) / abs(mean_val)
        return float(1.0 / (1.0 + cv) if cv > 0 else 1.0)


def walk_forward_optimize(
    strategy: Strategy,
    parameters: Sequence[ParameterDef],
    objective_fn: ObjectiveFn,
    bars: List[Bar],
    in_sample_size: int,
    out_sample_size: int,
    options: Optional[OptimizationOptions] = None,
) -> WalkForwardResult:
    """Functional entry point around WalkForwardAnalyzer.

    The fold seeds are drawn from a generator seeded with
    ``options.random_seed``.
    """
    options = options or OptimizationOptions()
    config = WalkForwardConfig(
        in_sample_size=in_sample_size,
        out_sample_size=out_sample_size,
        random_seed=options.random_seed,
    )
    return WalkForwardAnalyzer(strategy, parameters, objective_fn, config, options).run(bars)
