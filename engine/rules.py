"""Rule evaluation against baked bars."""

import logging
import operator
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from engine.indicators import RAW_FIELD_TYPES, IndicatorType, output_name
from engine.types import Bar, RuleParams

logger = logging.getLogger(__name__)

CheckFn = Callable[[RuleParams], bool]


class CompareOption(Enum):
    """Comparison between operand one and operand two."""
    LARGER_OR_EQUAL_TO = "largerOrEqualTo"
    LARGER_THAN = "largerThan"
    EQUAL_TO = "equalTo"
    SMALL_THAN = "smallThan"
    SMALLER_OR_EQUAL_TO = "smallerOrEqualTo"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["CompareOption"]:
        if raw is None:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


_OPERATORS = {
    CompareOption.LARGER_OR_EQUAL_TO: operator.ge,
    CompareOption.LARGER_THAN: operator.gt,
    CompareOption.EQUAL_TO: operator.eq,
    CompareOption.SMALL_THAN: operator.lt,
    CompareOption.SMALLER_OR_EQUAL_TO: operator.le,
}


def resolve_value(indicator_type: IndicatorType, name: str, figure_one: Optional[float], bar: Bar) -> Optional[float]:
    """Resolve one operand on a bar.

    Constants take their value from ``figure_one``; raw fields read the bar;
    everything else reads the baked indicator under its output name.
    """
    if indicator_type == IndicatorType.CONSTANT:
        return figure_one if figure_one is not None else 0.0
    if indicator_type in RAW_FIELD_TYPES:
        return bar.value(indicator_type.value)
    return bar.value(output_name(indicator_type, name))


def evaluate_rule(rule, bar: Bar) -> bool:
    """Evaluate a single rule; malformed or unresolved rules are False."""
    type_one = IndicatorType.parse(rule.indicator_one_type)
    type_two = IndicatorType.parse(rule.indicator_two_type)
    compare = CompareOption.parse(rule.compare)
    if (
        type_one is None
        or type_two is None
        or compare is None
        or rule.indicator_one_name is None
        or rule.indicator_two_name is None
    ):
        logger.debug(f"Malformed rule treated as false: {rule!r}")
        return False

    value_one = resolve_value(type_one, rule.indicator_one_name, rule.indicator_one_figure_one, bar)
    value_two = resolve_value(type_two, rule.indicator_two_name, rule.indicator_two_figure_one, bar)
    if value_one is None or value_two is None:
        return False
    return bool(_OPERATORS[compare](value_one, value_two))


def evaluate_rules(rules: Sequence, args: RuleParams) -> bool:
    """Logical AND of every rule on ``args.bar``.

    All rules are evaluated even after one fails. An empty rule list is True.
    """
    result = True
    for rule in rules:
        if not evaluate_rule(rule, args.bar):
            result = False
    return result


def get_checking_functions(entry_rules: List, exit_rules: List) -> Tuple[CheckFn, CheckFn]:
    """Build (entry_check, exit_check) closures over the two rule lists."""
    entry_rules = list(entry_rules)
    exit_rules = list(exit_rules)

    def entry_check(args: RuleParams) -> bool:
        return evaluate_rules(entry_rules, args)

    def exit_check(args: RuleParams) -> bool:
        return evaluate_rules(exit_rules, args)

    return entry_check, exit_check
