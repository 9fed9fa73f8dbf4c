"""Rule-driven simulation: bake, build strategy, backtest, analyze."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from config.schema import SimulationConfig, SimulationRule, default_starting_capital
from engine.backtest_engine import backtest
from engine.indicators import bake_indicators
from engine.rules import get_checking_functions
from engine.types import BacktestOptions, Bar, PositionStatus, Trade
from metrics.metrics import Analysis, analyze
from metrics.post_analysis import post_analysis
from strategies.factory import get_strategy_from_config

logger = logging.getLogger(__name__)


@dataclass
class SimulationOutput:
    """Analysis, trades and the config that produced them."""
    analysis: Analysis = field(default_factory=Analysis)
    trades: List[Trade] = field(default_factory=list)
    config: Optional[SimulationConfig] = None


def simulate(
    ticker: str,
    config: SimulationConfig,
    entry_rules: List[SimulationRule],
    exit_rules: List[SimulationRule],
    raw_bars: List[Bar],
    starting_capital: Optional[float] = None,
) -> Tuple[SimulationOutput, PositionStatus]:
    """
    Run one rule-driven simulation end to end.

    Args:
        ticker: Instrument label, used for logging
        config: Policy and risk settings
        entry_rules: Rules that must all hold to enter
        exit_rules: Rules that must all hold to exit (empty: never)
        raw_bars: Unbaked bars in chronological order
        starting_capital: Capital for ``analyze`` (default from defaults.yml)

    Returns:
        (SimulationOutput, last position status). Insufficient data gives an
        empty output with status None.
    """
    empty = SimulationOutput(config=config)
    if len(raw_bars) <= 1:
        logger.warning(f"{ticker}: not enough bars to simulate ({len(raw_bars)})")
        return empty, PositionStatus.NONE
    if config.policy is None:
        logger.warning(f"{ticker}: no simulation policy configured")
        return empty, PositionStatus.NONE

    bars, max_lookback = bake_indicators(raw_bars, entry_rules, exit_rules)
    if max_lookback >= len(raw_bars) or not bars:
        logger.warning(f"{ticker}: indicator lookback {max_lookback} exceeds {len(raw_bars)} bars")
        return empty, PositionStatus.NONE

    entry_fn, exit_fn = get_checking_functions(entry_rules, exit_rules)
    strategy = get_strategy_from_config(entry_fn, exit_fn if exit_rules else None, config)
    trades, last_status = backtest(
        strategy,
        bars,
        BacktestOptions(record_stop_price=True, record_risk=True),
    )

    if starting_capital is None:
        starting_capital = default_starting_capital()
    analysis = analyze(starting_capital, trades)
    analysis = post_analysis(analysis, trades, config.trailing_stop_loss)
    logger.info(
        f"{ticker}: {analysis.total_trades} trades, profit {analysis.profit_pct:.2f}%, "
        f"max drawdown {analysis.max_drawdown_pct:.2f}%"
    )
    return SimulationOutput(analysis=analysis, trades=trades, config=config), last_status
