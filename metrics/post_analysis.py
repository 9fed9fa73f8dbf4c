"""Risk-adjusted ("BK") max drawdown over the recorded stop/risk series.

For every observation of a trade the stop price is unwound into a proxy
close price, ``stop / (1 - risk_pct / 100)``. A peak/trough scan over those
proxies gives the trade's worst local drawdown; the worst across all trades
is reported.
"""

from dataclasses import replace
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from engine.types import Trade
from metrics.metrics import Analysis


class MinMax(Enum):
    MAX = "max"
    MIN = "min"


class PeakTroughTracker:
    """Running peak/trough state for one trade."""

    def __init__(self):
        self.local_max = float('-inf')
        self.local_min = float('inf')
        self.previous_edit: Optional[MinMax] = None
        self.drawdown_pct = 0.0
        self.drawdown = 0.0

    def update(self, value: float) -> float:
        """Feed one proxy price; returns the local drawdown percent so far."""
        if self.previous_edit is None:
            self.local_max = value
            self.local_min = value
            self.previous_edit = MinMax.MAX
        elif value > self.local_max:
            # New peak resets the trough
            self.local_max = value
            self.local_min = value
            self.previous_edit = MinMax.MAX
        elif value < self.local_min:
            self.local_min = value
            self.previous_edit = MinMax.MIN
            if self.local_max > 0:
                pct = (self.local_max - self.local_min) / self.local_max * 100.0
                if pct > self.drawdown_pct:
                    self.drawdown_pct = pct
                    self.drawdown = self.local_max - self.local_min
        return self.drawdown_pct


def unwound_price(stop_price: float, risk_pct: float) -> float:
    """Proxy close implied by a stop and the current risk percent."""
    factor = 1.0 - risk_pct / 100.0
    return stop_price if factor == 0 else stop_price / factor


def trailing_proxies(trade: Trade) -> List[float]:
    """Proxies along the per-bar stop series (risk 0 where not recorded)."""
    proxies = []
    for i, stop in enumerate(trade.stop_price_series):
        risk_pct = trade.risk_series[i].value if i < len(trade.risk_series) else 0.0
        proxies.append(unwound_price(stop.value, risk_pct))
    return proxies


def fixed_proxies(trade: Trade) -> List[float]:
    """Proxies for a fixed stop, one per risk observation."""
    return [unwound_price(trade.stop_price, risk.value) for risk in trade.risk_series]


def drawdown_scan(values: Iterable[float]) -> List[float]:
    """Local drawdown percent after each observation (never decreases)."""
    tracker = PeakTroughTracker()
    return [tracker.update(v) for v in values]


def trade_drawdown(values: Iterable[float]) -> Tuple[float, float]:
    """Worst (drawdown_pct, drawdown) of one trade's proxy series."""
    tracker = PeakTroughTracker()
    for value in values:
        tracker.update(value)
    return tracker.drawdown_pct, tracker.drawdown


def post_analysis(analysis: Analysis, trades: List[Trade], trailing_stop_loss: bool) -> Analysis:
    """
    Fill in the BK max drawdown fields.

    Args:
        analysis: Result of ``analyze``; left untouched
        trades: Trades recorded with stop and risk series
        trailing_stop_loss: Walk the per-bar stop series (True) or the
            initial stop against each risk observation (False)

    Returns:
        Copy of ``analysis`` with ``bk_max_drawdown``/``bk_max_drawdown_pct`` set
    """
    proxies_for = trailing_proxies if trailing_stop_loss else fixed_proxies
    worst_pct = 0.0
    worst = 0.0
    for trade in trades:
        pct, amount = trade_drawdown(proxies_for(trade))
        if pct > worst_pct:
            worst_pct = pct
            worst = amount
    return replace(analysis, bk_max_drawdown=worst, bk_max_drawdown_pct=worst_pct)
