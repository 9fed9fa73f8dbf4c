"""Core data models shared by the engine, metrics and validation layers."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd


ADJUSTED_CLOSE_ALIASES = ("adjustedClose", "adjusted_close", "adjClose", "adj_close")


class TradeDirection(Enum):
    """Side of a position."""
    LONG = "long"
    SHORT = "short"


class PositionStatus(Enum):
    """State of the simulation at a given bar.

    NONE -> ENTER -> POSITION -> EXIT -> NONE. ENTER is only held while a
    conditional entry price is waiting to be reached; EXIT only while the
    exit is being booked.
    """
    NONE = "None"
    ENTER = "Enter"
    POSITION = "Position"
    EXIT = "Exit"


# ============================================================================
# Bars
# ============================================================================

@dataclass(frozen=True)
class Bar:
    """One OHLCV observation plus baked indicator values.

    Attributes:
        time: Bar timestamp
        open: Open price
        high: High price
        low: Low price
        close: Close price
        volume: Traded volume
        adjusted_close: Optional adjusted close
        indicators: Indicator name -> value, filled in by indicator baking
    """
    time: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    adjusted_close: Optional[float] = None
    indicators: Dict[str, float] = field(default_factory=dict)

    def value(self, name: str) -> Optional[float]:
        """Resolve a raw field or an indicator by name (None if unknown)."""
        if name in ("open", "high", "low", "close", "volume"):
            return getattr(self, name)
        if name in ADJUSTED_CLOSE_ALIASES:
            return self.adjusted_close
        return self.indicators.get(name)

    def with_indicators(self, updates: Dict[str, float]) -> "Bar":
        """Return a copy of this bar with extra indicator values."""
        merged = dict(self.indicators)
        merged.update(updates)
        return replace(self, indicators=merged)


@dataclass(frozen=True)
class TimestampedValue:
    """A single (time, value) observation."""
    time: pd.Timestamp
    value: float


# ============================================================================
# Strategy callback arguments
# ============================================================================

@dataclass
class BacktestOptions:
    """Recording switches for a backtest run."""
    record_stop_price: bool = False
    record_risk: bool = False


@dataclass
class EnterPositionOptions:
    """Returned by an entry rule to customise the entry.

    Attributes:
        direction: Long or short
        entry_price: Conditional entry price. When set, the position is only
            filled once a later bar trades through this price.
    """
    direction: TradeDirection = TradeDirection.LONG
    entry_price: Optional[float] = None


@dataclass
class RuleParams:
    """Arguments passed to an entry rule."""
    bar: Bar
    lookback: List[Bar]
    parameters: Dict[str, float]


@dataclass
class Position:
    """Open position, mutated bar by bar until it is closed."""
    direction: TradeDirection
    entry_time: pd.Timestamp
    entry_price: float
    profit: float = 0.0
    profit_pct: float = 0.0
    growth: float = 1.0
    holding_period: int = 0
    initial_unit_risk: Optional[float] = None
    initial_risk_pct: Optional[float] = None
    cur_risk_pct: Optional[float] = None
    cur_rmultiple: Optional[float] = None
    risk_series: List[TimestampedValue] = field(default_factory=list)
    initial_stop_price: Optional[float] = None
    cur_stop_price: Optional[float] = None
    stop_price_series: List[TimestampedValue] = field(default_factory=list)
    profit_target: Optional[float] = None
    # Highest high (long) or lowest low (short) seen since entry
    extreme_price: Optional[float] = None


@dataclass
class OpenPositionRuleArgs:
    """Arguments passed to exit, stop-loss and profit-target functions."""
    entry_price: float
    position: Position
    bar: Bar
    lookback: List[Bar]
    parameters: Dict[str, float]


@dataclass(frozen=True)
class Trade:
    """Closed trade record.

    Attributes:
        direction: Long or short
        entry_time: Entry timestamp
        entry_price: Entry fill price
        exit_time: Exit timestamp
        exit_price: Exit fill price
        profit: Price points gained (sign already adjusted for shorts)
        profit_pct: Profit relative to entry price, in percent
        growth: Multiplicative return factor
        risk_pct: Initial risk as percent of entry price
        rmultiple: Profit divided by initial unit risk
        risk_series: Per-bar risk percent observations
        holding_period: Bars held
        exit_reason: stop-loss, profit-target, exit-rule or finalize
        stop_price: Initial stop price (0 when none)
        stop_price_series: Per-bar stop price observations
        profit_target: Final profit target (0 when none)
    """
    direction: TradeDirection
    entry_time: pd.Timestamp
    entry_price: float
    exit_time: pd.Timestamp
    exit_price: float
    profit: float
    profit_pct: float
    growth: float
    risk_pct: float = 0.0
    rmultiple: float = 0.0
    risk_series: List[TimestampedValue] = field(default_factory=list)
    holding_period: int = 0
    exit_reason: str = ""
    stop_price: float = 0.0
    stop_price_series: List[TimestampedValue] = field(default_factory=list)
    profit_target: float = 0.0
