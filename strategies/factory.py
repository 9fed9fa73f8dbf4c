"""Build Strategy objects from rule check functions and risk settings."""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from config.schema import SimulationConfig, SimulationPolicy, SimulationRule
from engine.indicators import bake_indicators
from engine.rules import CheckFn, evaluate_rules
from engine.types import Bar, EnterPositionOptions, OpenPositionRuleArgs, RuleParams, TradeDirection
from strategies.base import Strategy

logger = logging.getLogger(__name__)

RuleBuilder = Callable[[Dict[str, float]], Tuple[List[SimulationRule], List[SimulationRule]]]


def _risk_functions(risk_pct: float, trailing_stop_loss: bool, profit_factor: Optional[float]) -> Dict:
    """Stop, trailing-stop and target distance functions for a long-only strategy.

    A non-positive ``risk_pct`` disables stops; ``profit_factor=None``
    disables the profit target.
    """
    functions = {}
    if risk_pct > 0:
        def stop_loss(args: OpenPositionRuleArgs) -> float:
            return args.entry_price * (risk_pct / 100.0)

        functions['stop_loss'] = stop_loss

        if trailing_stop_loss:
            def trailing_stop(args: OpenPositionRuleArgs) -> float:
                highest = max((b.high for b in args.lookback), default=args.bar.high)
                return highest * (risk_pct / 100.0)

            functions['trailing_stop_loss'] = trailing_stop

    if profit_factor is not None:
        def profit_target(args: OpenPositionRuleArgs) -> float:
            return args.entry_price * profit_factor

        functions['profit_target'] = profit_target
    return functions


def get_strategy(
    entry_fn: CheckFn,
    exit_fn: Optional[CheckFn] = None,
    policy: SimulationPolicy = SimulationPolicy.SMA,
    risk_pct: float = 15.0,
    trailing_stop_loss: bool = False,
    profit_factor: Optional[float] = None,
    lookback_period: int = 1,
) -> Strategy:
    """Long-only strategy driven by two check functions.

    Args:
        entry_fn: True when a position should be opened
        exit_fn: True when the open position should be closed (None: never)
        policy: Strategy family, recorded for logging only
        risk_pct: Stop distance in percent of entry price
        trailing_stop_loss: Trail the stop at ``risk_pct`` of the lookback's highest high
        profit_factor: Target distance as a multiple of entry price
        lookback_period: Bars in the lookback window

    Returns:
        Strategy
    """
    def entry_rule(args: RuleParams):
        if entry_fn(args):
            return EnterPositionOptions(direction=TradeDirection.LONG)
        return None

    exit_rule = None
    if exit_fn is not None:
        def exit_rule(args: OpenPositionRuleArgs) -> bool:
            return exit_fn(RuleParams(bar=args.bar, lookback=args.lookback, parameters=args.parameters))

    logger.debug(
        f"Building {policy.value} strategy (risk={risk_pct}%, trailing={trailing_stop_loss}, "
        f"profit_factor={profit_factor})"
    )
    return Strategy(
        entry_rule=entry_rule,
        exit_rule=exit_rule,
        lookback_period=lookback_period,
        **_risk_functions(risk_pct, trailing_stop_loss, profit_factor),
    )


def get_strategy_from_config(entry_fn: CheckFn, exit_fn: Optional[CheckFn], config: SimulationConfig) -> Strategy:
    """get_strategy with the risk settings of a SimulationConfig."""
    return get_strategy(
        entry_fn,
        exit_fn,
        policy=config.policy or SimulationPolicy.CUSTOM_STRATEGY,
        risk_pct=config.stop_loss_figure,
        trailing_stop_loss=config.trailing_stop_loss,
        profit_factor=config.profit_factor,
    )


def get_parametric_strategy(
    rule_builder: RuleBuilder,
    parameters: Dict[str, float],
    config: Optional[SimulationConfig] = None,
) -> Strategy:
    """Strategy whose rules are rebuilt from its parameters.

    Indicators are baked in ``prep_indicators`` so that every parameter
    set sees the columns its own rules refer to. This is the form the
    optimizers work with.

    Args:
        rule_builder: parameters -> (entry_rules, exit_rules)
        parameters: Default parameter values (declares the parameter names)
        config: Risk settings (defaults: no stop, no target)

    Returns:
        Strategy with ``parameters`` declared
    """
    config = config or SimulationConfig()
    cache: Dict[Tuple, Tuple[List[SimulationRule], List[SimulationRule]]] = {}

    def rules_for(params: Dict[str, float]):
        key = tuple(sorted(params.items()))
        if key not in cache:
            cache[key] = rule_builder(params)
        return cache[key]

    def prep_indicators(bars: List[Bar], params: Dict[str, float]) -> List[Bar]:
        entry_rules, exit_rules = rules_for(params)
        baked, _ = bake_indicators(bars, entry_rules, exit_rules)
        return baked

    def entry_fn(args: RuleParams) -> bool:
        return evaluate_rules(rules_for(args.parameters)[0], args)

    def exit_fn(args: RuleParams) -> bool:
        exit_rules = rules_for(args.parameters)[1]
        return bool(exit_rules) and evaluate_rules(exit_rules, args)

    strategy = get_strategy_from_config(entry_fn, exit_fn, config)
    strategy.prep_indicators = prep_indicators
    strategy.parameters = dict(parameters)
    return strategy
