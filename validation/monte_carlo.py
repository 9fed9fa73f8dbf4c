"""Monte Carlo resampling of a closed trade list.

Draws bootstrap samples of trades, with replacement, for distribution-style
risk analysis of a finished backtest.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from tqdm import tqdm

from config.schema import MonteCarloOptions
from engine.types import Trade
from metrics.metrics import analyze
from validation.rng import Random

logger = logging.getLogger(__name__)


def monte_carlo(
    trades: List[Trade],
    num_iterations: int,
    num_samples: int,
    random_seed: int = 0,
    show_progress: bool = False,
) -> List[List[Trade]]:
    """
    Draw ``num_iterations`` samples of ``num_samples`` trades each.

    Args:
        trades: Trades to sample from
        num_iterations: Number of samples
        num_samples: Trades per sample
        random_seed: Seed; identical seeds give identical samples
        show_progress: Show a tqdm progress bar

    Returns:
        List of samples; empty when either count is below 1 or there are no trades
    """
    if num_iterations < 1 or num_samples < 1 or not trades:
        logger.warning(
            f"Monte Carlo skipped: iterations={num_iterations}, samples={num_samples}, trades={len(trades)}"
        )
        return []

    random = Random(random_seed)
    last = len(trades) - 1
    samples = []
    for _ in tqdm(range(num_iterations), desc="Monte Carlo", disable=not show_progress):
        samples.append([trades[random.get_int(0, last)] for _ in range(num_samples)])
    return samples


def monte_carlo_from_options(trades: List[Trade], options: MonteCarloOptions) -> List[List[Trade]]:
    return monte_carlo(trades, options.num_iterations, options.num_samples, options.random_seed)


@dataclass
class MonteCarloResult:
    """Distribution summary of resampled runs."""
    samples: pd.DataFrame
    percentiles: Dict[str, Dict[str, float]]
    n_iterations: int
    prob_loss: float


def summarize_monte_carlo(
    samples: List[List[Trade]],
    starting_capital: float,
    percentiles: Optional[List[float]] = None,
) -> MonteCarloResult:
    """
    Analyze every sample and summarise the distribution.

    Args:
        samples: Output of ``monte_carlo``
        starting_capital: Capital each sample starts from
        percentiles: Percentiles to report (default 5, 25, 50, 75, 95)

    Returns:
        MonteCarloResult with one analysis row per sample
    """
    percentiles = percentiles or [5, 25, 50, 75, 95]
    rows = [analyze(starting_capital, sample).to_dict() for sample in samples]
    frame = pd.DataFrame(rows)

    summary: Dict[str, Dict[str, float]] = {}
    prob_loss = 0.0
    if not frame.empty:
        for column in ('profit_pct', 'max_drawdown_pct', 'profit_factor', 'expectancy'):
            values = frame[column].to_numpy(dtype=float)
            summary[column] = {f"p{int(p)}": float(np.percentile(values, p)) for p in percentiles}
        prob_loss = float((frame['profit'] < 0).mean())

    return MonteCarloResult(samples=frame, percentiles=summary, n_iterations=len(samples), prob_loss=prob_loss)
