"""Core backtesting engine module."""

from engine.types import (
    Bar,
    TimestampedValue,
    TradeDirection,
    PositionStatus,
    BacktestOptions,
    EnterPositionOptions,
    RuleParams,
    OpenPositionRuleArgs,
    Position,
    Trade,
)
from engine.series import Series, Window, Frame
from engine.backtest_engine import BacktestEngine, BacktestOutcome, backtest

__all__ = [
    'Bar',
    'TimestampedValue',
    'TradeDirection',
    'PositionStatus',
    'BacktestOptions',
    'EnterPositionOptions',
    'RuleParams',
    'OpenPositionRuleArgs',
    'Position',
    'Trade',
    'Series',
    'Window',
    'Frame',
    'BacktestEngine',
    'BacktestOutcome',
    'backtest',
]
