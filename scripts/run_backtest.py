#!/usr/bin/env python3
"""Script to run a rule-driven simulation from the command line.

Example:
    python scripts/run_backtest.py --data data/SPY.csv --config configs/sma.yml
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.config_loader import load_run_config
from engine.data import load_bars_csv
from engine.simulation import simulate
from metrics.metrics import analysis_to_series, trades_to_frame
from strategies.presets import preset_rules
from validation.monte_carlo import monte_carlo_from_options, summarize_monte_carlo


def main():
    parser = argparse.ArgumentParser(description='Run a rule-driven backtest')
    parser.add_argument(
        '--data',
        type=str,
        required=True,
        help='Path to an OHLCV CSV file'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='YAML run file (merged over config/defaults.yml)'
    )
    parser.add_argument(
        '--ticker',
        type=str,
        help='Instrument label (default: from config or file name)'
    )
    parser.add_argument(
        '--trades-out',
        type=str,
        help='Write the trade list to this CSV file'
    )
    parser.add_argument(
        '--monte-carlo',
        action='store_true',
        help='Resample the trades and print the distribution summary'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    config = load_run_config(Path(args.config) if args.config else None)
    ticker = args.ticker or config.ticker or Path(args.data).stem
    entry_rules, exit_rules = config.entry_rules, config.exit_rules
    if not entry_rules and config.simulation.policy is not None:
        entry_rules, exit_rules = preset_rules(config.simulation.policy)

    bars = load_bars_csv(Path(args.data))
    output, last_status = simulate(
        ticker,
        config.simulation,
        entry_rules,
        exit_rules,
        bars,
        starting_capital=config.backtest.starting_capital,
    )

    print(f"\n{ticker}: {len(output.trades)} trades, final status {last_status.value}")
    print(analysis_to_series(output.analysis).to_string())

    if args.trades_out:
        trades_to_frame(output.trades).to_csv(args.trades_out, index=False)
        print(f"\nTrades written to {args.trades_out}")

    if args.monte_carlo:
        samples = monte_carlo_from_options(output.trades, config.monte_carlo)
        result = summarize_monte_carlo(samples, config.backtest.starting_capital)
        print(f"\nMonte Carlo ({result.n_iterations} samples), P(loss)={result.prob_loss:.2%}")
        for metric, values in result.percentiles.items():
            print(f"  {metric}: " + ", ".join(f"{k}={v:.2f}" for k, v in values.items()))

    return 0


if __name__ == '__main__':
    sys.exit(main())
