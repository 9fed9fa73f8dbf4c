"""Exit condition resolution for an open position.

Exits are checked in a fixed order once per bar: stop hit, then profit
target hit, then the strategy's exit rule. The first one that fires wins.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from engine.types import Bar, OpenPositionRuleArgs, Position, TradeDirection


class ExitType(Enum):
    """Types of exit conditions (values are the recorded exit reasons)."""
    STOP_LOSS = "stop-loss"
    PROFIT_TARGET = "profit-target"
    EXIT_RULE = "exit-rule"
    FINALIZE = "finalize"


EXIT_PRIORITY = {
    ExitType.STOP_LOSS: 0,
    ExitType.PROFIT_TARGET: 1,
    ExitType.EXIT_RULE: 2,
    ExitType.FINALIZE: 3,
}


@dataclass
class ExitCondition:
    """A triggered exit.

    Attributes:
        exit_type: Which check fired
        exit_price: Price at which the position is closed
        priority: Lower fires first
    """
    exit_type: ExitType
    exit_price: float
    priority: int = 10

    @classmethod
    def of(cls, exit_type: ExitType, exit_price: float) -> "ExitCondition":
        return cls(exit_type=exit_type, exit_price=exit_price, priority=EXIT_PRIORITY[exit_type])

    @property
    def reason(self) -> str:
        return self.exit_type.value


class ExitResolver:
    """Evaluates the ordered exit checks for an open position."""

    @staticmethod
    def stop_hit(position: Position, bar: Bar) -> Optional[ExitCondition]:
        """Stop in effect at the start of the bar touched by the bar's range."""
        stop = position.cur_stop_price
        if stop is None:
            return None
        if position.direction == TradeDirection.LONG:
            hit = bar.low <= stop
        else:
            hit = bar.high >= stop
        return ExitCondition.of(ExitType.STOP_LOSS, stop) if hit else None

    @staticmethod
    def target_hit(position: Position, bar: Bar) -> Optional[ExitCondition]:
        """Profit target touched by the bar's range."""
        target = position.profit_target
        if target is None:
            return None
        if position.direction == TradeDirection.LONG:
            hit = bar.high >= target
        else:
            hit = bar.low <= target
        return ExitCondition.of(ExitType.PROFIT_TARGET, target) if hit else None

    @staticmethod
    def rule_fired(exit_rule, args: OpenPositionRuleArgs) -> Optional[ExitCondition]:
        """Strategy exit rule; fills at the bar close."""
        if exit_rule is None or not exit_rule(args):
            return None
        return ExitCondition.of(ExitType.EXIT_RULE, args.bar.close)

    @classmethod
    def price_exits(cls, position: Position, bar: Bar) -> List[ExitCondition]:
        """All price-level exits triggered on this bar."""
        exits = [cls.stop_hit(position, bar), cls.target_hit(position, bar)]
        return [e for e in exits if e is not None]

    @staticmethod
    def resolve(exits: List[ExitCondition]) -> Optional[ExitCondition]:
        """Pick the exit to execute: lowest priority number, first on ties.

        Args:
            exits: Triggered exit conditions

        Returns:
            Exit to execute, or None if nothing fired
        """
        if not exits:
            return None
        return min(exits, key=lambda e: e.priority)
