"""Performance metrics calculation."""

from metrics.metrics import (
    Analysis,
    analyze,
    compute_equity_curve,
    compute_drawdown,
    total_profit_objective,
    profit_pct_objective,
    sharpe_like_objective,
    trades_to_frame,
    analysis_to_series,
)
from metrics.post_analysis import post_analysis, drawdown_scan

__all__ = [
    'Analysis',
    'analyze',
    'compute_equity_curve',
    'compute_drawdown',
    'total_profit_objective',
    'profit_pct_objective',
    'sharpe_like_objective',
    'trades_to_frame',
    'analysis_to_series',
    'post_analysis',
    'drawdown_scan',
]
