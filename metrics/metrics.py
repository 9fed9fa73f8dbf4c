"""Performance metrics calculation over a closed trade list."""

from dataclasses import asdict, dataclass
from typing import Callable, Dict, List

import numpy as np
import pandas as pd

from engine.types import Trade

ObjectiveFn = Callable[[List[Trade]], float]


@dataclass
class Analysis:
    """Aggregate statistics over a trade list.

    Drawdowns are reported as non-positive numbers. ``bk_max_drawdown`` and
    ``bk_max_drawdown_pct`` are filled in by post-analysis.
    """
    starting_capital: float = 0.0
    final_capital: float = 0.0
    profit: float = 0.0
    profit_pct: float = 0.0
    growth: float = 0.0
    total_trades: int = 0
    bar_count: int = 0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    max_risk_pct: float = 0.0
    expectancy: float = 0.0
    rmultiple_std_dev: float = 0.0
    system_quality: float = 0.0
    profit_factor: float = 0.0
    proportion_profitable: float = 0.0
    percent_profitable: float = 0.0
    return_on_account: float = 0.0
    average_profit_per_trade: float = 0.0
    num_winning_trades: int = 0
    num_losing_trades: int = 0
    average_winning_trade: float = 0.0
    average_losing_trade: float = 0.0
    expected_value: float = 0.0
    bk_max_drawdown: float = 0.0
    bk_max_drawdown_pct: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def analyze(starting_capital: float, trades: List[Trade]) -> Analysis:
    """
    Compute aggregate statistics, compounding capital by each trade's growth.

    Args:
        starting_capital: Capital before the first trade
        trades: Closed trades in chronological order

    Returns:
        Analysis. All-zero when ``starting_capital <= 0``; zeroed aggregates
        with ``total_trades == 0`` for an empty trade list.
    """
    if starting_capital <= 0:
        return Analysis()

    working_capital = starting_capital
    peak_capital = starting_capital
    bar_count = 0
    max_drawdown = 0.0
    max_drawdown_pct = 0.0
    total_profits = 0.0
    total_losses = 0.0
    num_winning = 0
    num_losing = 0
    max_risk_pct = 0.0

    for trade in trades:
        max_risk_pct = max(max_risk_pct, trade.risk_pct)
        working_capital *= trade.growth
        bar_count += trade.holding_period

        if working_capital < peak_capital:
            working_drawdown = working_capital - peak_capital
        else:
            peak_capital = working_capital
            working_drawdown = 0.0

        if trade.profit > 0:
            total_profits += trade.profit
            num_winning += 1
        else:
            total_losses += trade.profit
            num_losing += 1

        max_drawdown = min(working_drawdown, max_drawdown)
        max_drawdown_pct = min(max_drawdown / peak_capital * 100.0, max_drawdown_pct)

    total_trades = len(trades)
    rmultiples = np.array([t.rmultiple for t in trades], dtype=float)
    expectancy = float(rmultiples.mean()) if total_trades else 0.0
    rmultiple_std_dev = float(rmultiples.std()) if total_trades else 0.0
    system_quality = expectancy / rmultiple_std_dev if rmultiple_std_dev != 0 else 0.0

    abs_losses = abs(total_losses)
    profit_factor = total_profits / abs_losses if abs_losses > 0 else 0.0
    profit = working_capital - starting_capital
    profit_pct = profit / starting_capital * 100.0
    proportion_winning = num_winning / total_trades if total_trades else 0.0
    proportion_losing = num_losing / total_trades if total_trades else 0.0
    average_winning = total_profits / num_winning if num_winning else 0.0
    average_losing = total_losses / num_losing if num_losing else 0.0

    return Analysis(
        starting_capital=starting_capital,
        final_capital=working_capital,
        profit=profit,
        profit_pct=profit_pct,
        growth=working_capital / starting_capital,
        total_trades=total_trades,
        bar_count=bar_count,
        max_drawdown=max_drawdown,
        max_drawdown_pct=max_drawdown_pct,
        max_risk_pct=max_risk_pct,
        expectancy=expectancy,
        rmultiple_std_dev=rmultiple_std_dev,
        system_quality=system_quality,
        profit_factor=profit_factor,
        proportion_profitable=proportion_winning,
        percent_profitable=proportion_winning * 100.0,
        # No drawdown means no risk-adjusted figure
        return_on_account=profit_pct / abs(max_drawdown_pct) if max_drawdown_pct != 0 else 0.0,
        average_profit_per_trade=profit / total_trades if total_trades else 0.0,
        num_winning_trades=num_winning,
        num_losing_trades=num_losing,
        average_winning_trade=average_winning,
        average_losing_trade=average_losing,
        expected_value=proportion_winning * average_winning + proportion_losing * average_losing,
    )


def compute_equity_curve(starting_capital: float, trades: List[Trade]) -> List[float]:
    """Capital after each trade, starting with ``starting_capital``."""
    if starting_capital <= 0:
        return []
    growth = np.array([t.growth for t in trades], dtype=float)
    return [starting_capital] + list(starting_capital * np.cumprod(growth))


def compute_drawdown(starting_capital: float, trades: List[Trade]) -> List[float]:
    """Drawdown (non-positive, in capital units) at each point of the equity curve."""
    equity = np.array(compute_equity_curve(starting_capital, trades), dtype=float)
    if equity.size == 0:
        return []
    running_max = np.maximum.accumulate(equity)
    return list(equity - running_max)


# ============================================================================
# Objective functions for optimization
# ============================================================================

def total_profit_objective(trades: List[Trade]) -> float:
    """Sum of trade profits in price units."""
    return float(sum(t.profit for t in trades))


def profit_pct_objective(trades: List[Trade]) -> float:
    """Compounded return in percent."""
    if not trades:
        return 0.0
    return float((np.prod([t.growth for t in trades]) - 1.0) * 100.0)


def sharpe_like_objective(trades: List[Trade]) -> float:
    """Mean over population std-dev of per-trade profit percent (0 when flat)."""
    if not trades:
        return 0.0
    returns = np.array([t.profit_pct for t in trades], dtype=float)
    std = returns.std()
    return float(returns.mean() / std) if std > 0 else 0.0


# ============================================================================
# pandas views
# ============================================================================

def trades_to_frame(trades: List[Trade]) -> pd.DataFrame:
    """One row per trade; recorded series are reduced to their lengths."""
    rows = []
    for t in trades:
        row = asdict(t)
        row['direction'] = t.direction.value
        row['risk_series'] = len(t.risk_series)
        row['stop_price_series'] = len(t.stop_price_series)
        rows.append(row)
    return pd.DataFrame(rows)


def analysis_to_series(analysis: Analysis) -> pd.Series:
    return pd.Series(analysis.to_dict(), name='analysis')
