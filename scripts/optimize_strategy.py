#!/usr/bin/env python3
"""Optimize the parameters of a preset strategy.

Example run file:

    simulation:
      policy: smaCrossover
      stop_loss_figure: 5
    optimization:
      parameters:
        - {name: fast, starting_value: 5, ending_value: 20, step_size: 5}
        - {name: slow, starting_value: 30, ending_value: 60, step_size: 10}
      options:
        optimization_type: hill-climb
        num_starting_points: 6
      walk_forward:
        in_sample_size: 500
        out_sample_size: 100
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.config_loader import load_run_config
from engine.data import load_bars_csv
from metrics.metrics import analysis_to_series, analyze, profit_pct_objective, sharpe_like_objective, total_profit_objective
from strategies.presets import preset_strategy
from validation.optimization import ParameterDef, optimize
from validation.walkforward import WalkForwardAnalyzer

OBJECTIVES = {
    'profit': total_profit_objective,
    'profit_pct': profit_pct_objective,
    'sharpe': sharpe_like_objective,
}

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description='Optimize preset strategy parameters',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--data', type=str, required=True, help='Path to an OHLCV CSV file')
    parser.add_argument('--config', type=str, required=True, help='YAML run file')
    parser.add_argument(
        '--objective',
        choices=sorted(OBJECTIVES),
        default='profit_pct',
        help='Objective to optimize (default: profit_pct)'
    )
    parser.add_argument('--results-out', type=str, help='Write every evaluated point to this CSV file')
    parser.add_argument('--walk-forward', action='store_true', help='Run walk-forward optimization')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    config = load_run_config(Path(args.config))
    if config.simulation.policy is None:
        parser.error('simulation.policy must name a preset policy')
    if not config.optimization.parameters:
        parser.error('optimization.parameters is empty')

    strategy = preset_strategy(config.simulation.policy, config=config.simulation)
    parameters = [ParameterDef(**p.model_dump()) for p in config.optimization.parameters]
    objective_fn = OBJECTIVES[args.objective]
    options = config.optimization.options
    bars = load_bars_csv(Path(args.data))

    if args.walk_forward:
        if config.optimization.walk_forward is None:
            parser.error('optimization.walk_forward is required with --walk-forward')
        result = WalkForwardAnalyzer(
            strategy, parameters, objective_fn, config.optimization.walk_forward, options
        ).run(bars)
        print(result.steps_frame().to_string(index=False))
        print(analysis_to_series(analyze(config.backtest.starting_capital, result.trades)).to_string())
        return 0

    if args.results_out:
        options = options.model_copy(update={'record_all_results': True})
    result = optimize(strategy, parameters, objective_fn, bars, options)
    print(f"\nBest {args.objective}: {result.best_result:.4f}")
    print(f"Best parameters: {result.best_parameter_values}")
    if args.results_out:
        result.results_frame().to_csv(args.results_out, index=False)
        logger.info(f"Results written to {args.results_out}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
