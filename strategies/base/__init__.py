"""Strategy base definitions."""

from strategies.base.strategy_base import Strategy

__all__ = ["Strategy"]
