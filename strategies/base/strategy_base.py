"""Strategy definition consumed by the backtest engine."""

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Union

from engine.types import Bar, EnterPositionOptions, OpenPositionRuleArgs, RuleParams

# Truthy to enter long at the signal bar's close; EnterPositionOptions to pick
# direction or a conditional entry price.
EntryRuleFn = Callable[[RuleParams], Union[bool, EnterPositionOptions, None]]
ExitRuleFn = Callable[[OpenPositionRuleArgs], bool]
# Distance from the entry (or current) price, in price units.
DistanceFn = Callable[[OpenPositionRuleArgs], float]
PrepIndicatorsFn = Callable[[List[Bar], Dict[str, float]], List[Bar]]


@dataclass
class Strategy:
    """Entry/exit rules and risk functions for one backtest.

    Every callable is a pure function of the current bar, the lookback
    window and the strategy parameters. Optional callables left as None
    are simply not applied.

    Attributes:
        entry_rule: Decides whether to open a position on a bar
        exit_rule: Decides whether to close the open position
        stop_loss: Fixed stop distance, anchored at the entry price
        trailing_stop_loss: Trailing stop distance from the running extreme
        profit_target: Profit target distance from the entry price
        prep_indicators: Optional hook run once over the bars before the loop
        parameters: Named numeric parameters handed to every callable
        lookback_period: Bars kept in the lookback window
    """
    entry_rule: EntryRuleFn
    exit_rule: Optional[ExitRuleFn] = None
    stop_loss: Optional[DistanceFn] = None
    trailing_stop_loss: Optional[DistanceFn] = None
    profit_target: Optional[DistanceFn] = None
    prep_indicators: Optional[PrepIndicatorsFn] = None
    parameters: Dict[str, float] = field(default_factory=dict)
    lookback_period: int = 1

    def validate_parameter_names(self, names: Iterable[str]) -> None:
        """Raise ValueError if any name is not a declared parameter."""
        unknown = sorted(set(names) - set(self.parameters))
        if unknown:
            raise ValueError(
                f"Unknown strategy parameter(s) {unknown}; declared: {sorted(self.parameters)}"
            )

    def with_parameters(self, overrides: Dict[str, float]) -> "Strategy":
        """Return a copy with ``overrides`` merged into the parameters.

        Args:
            overrides: Parameter name -> value. Names must already be declared.

        Returns:
            New Strategy; this one is left untouched.
        """
        self.validate_parameter_names(overrides)
        merged = dict(self.parameters)
        merged.update(overrides)
        return replace(self, parameters=merged)
