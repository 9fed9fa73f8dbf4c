"""Tests for rule evaluation."""

import pandas as pd

from config.schema import SimulationRule
from engine.indicators import IndicatorType
from engine.rules import (
    CompareOption,
    evaluate_rule,
    evaluate_rules,
    get_checking_functions,
    resolve_value,
)
from engine.types import Bar, RuleParams


def _bar(close=100.0, **indicators):
    return Bar(
        time=pd.Timestamp('2024-01-01'),
        open=close,
        high=close + 1.0,
        low=close - 1.0,
        close=close,
        indicators=dict(indicators),
    )


def _params(bar):
    return RuleParams(bar=bar, lookback=[bar], parameters={})


def _close_vs(compare, two_type='sma', two_name='sma', figure=None):
    return SimulationRule(
        indicator_one_type='close',
        indicator_one_name='close',
        compare=compare,
        indicator_two_type=two_type,
        indicator_two_name=two_name,
        indicator_two_figure_one=figure,
    )


def test_compare_option_parse():
    assert CompareOption.parse('smallThan') == CompareOption.SMALL_THAN
    assert CompareOption.parse('bigger') is None
    assert CompareOption.parse(None) is None


def test_resolve_value():
    bar = _bar(close=50.0, sma=48.0, bbUpper=55.0)
    assert resolve_value(IndicatorType.CONSTANT, 'level', 30.0, bar) == 30.0
    assert resolve_value(IndicatorType.CLOSE, 'close', None, bar) == 50.0
    assert resolve_value(IndicatorType.SMA, 'sma', 10, bar) == 48.0
    assert resolve_value(IndicatorType.BOLLINGER_UPPER, 'bb', 20, bar) == 55.0


def test_resolve_raw_fields():
    bar = _bar(close=50.0)
    assert resolve_value(IndicatorType.OPEN, 'open', None, bar) == 50.0
    assert resolve_value(IndicatorType.HIGH, 'high', None, bar) == 51.0
    assert resolve_value(IndicatorType.LOW, 'low', None, bar) == 49.0
    assert resolve_value(IndicatorType.VOLUME, 'volume', None, bar) == 0.0


def test_high_versus_constant_rule():
    rule = SimulationRule(
        indicator_one_type='high',
        indicator_one_name='high',
        compare='largerThan',
        indicator_two_type='constant',
        indicator_two_name='level',
        indicator_two_figure_one=100.5,
    )
    assert evaluate_rule(rule, _bar(close=100.0))
    assert not evaluate_rule(rule, _bar(close=99.0))


def test_each_comparison():
    bar = _bar(close=100.0, sma=100.0)
    assert evaluate_rule(_close_vs('largerOrEqualTo'), bar)
    assert not evaluate_rule(_close_vs('largerThan'), bar)
    assert evaluate_rule(_close_vs('equalTo'), bar)
    assert not evaluate_rule(_close_vs('smallThan'), bar)
    assert evaluate_rule(_close_vs('smallerOrEqualTo'), bar)


def test_constant_operand():
    bar = _bar(close=25.0)
    assert evaluate_rule(_close_vs('smallThan', 'constant', 'level', 30.0), bar)


def test_malformed_rule_is_false():
    bar = _bar(close=100.0, sma=90.0)
    assert not evaluate_rule(_close_vs('bigger'), bar)
    assert not evaluate_rule(_close_vs('largerThan', two_type='unknown'), bar)
    assert not evaluate_rule(SimulationRule(compare='largerThan'), bar)


def test_missing_indicator_value_is_false():
    assert not evaluate_rule(_close_vs('largerThan'), _bar(close=100.0))


def test_rules_are_anded():
    bar = _bar(close=100.0, sma=90.0)
    rules = [_close_vs('largerThan'), _close_vs('smallThan', 'constant', 'cap', 120.0)]
    assert evaluate_rules(rules, _params(bar))
    rules.append(_close_vs('largerThan', 'constant', 'floor', 150.0))
    assert not evaluate_rules(rules, _params(bar))


def test_one_malformed_rule_fails_the_set():
    bar = _bar(close=100.0, sma=90.0)
    assert not evaluate_rules([_close_vs('largerThan'), _close_vs('bigger')], _params(bar))


def test_empty_rule_list_is_true():
    assert evaluate_rules([], _params(_bar()))


def test_checking_functions():
    entry, exit_ = get_checking_functions([_close_vs('largerThan')], [_close_vs('smallThan')])
    above = _params(_bar(close=100.0, sma=90.0))
    below = _params(_bar(close=80.0, sma=90.0))
    assert entry(above) and not exit_(above)
    assert exit_(below) and not entry(below)


def test_camel_case_rule_keys():
    rule = SimulationRule(**{
        'indicatorOneType': 'close',
        'indicatorOneName': 'close',
        'compare': 'largerThan',
        'indicatorTwoType': 'sma',
        'indicatorTwoName': 'sma',
        'indicatorTwoFigureOne': 10,
    })
    assert rule.indicator_two_figure_one == 10.0
    assert evaluate_rule(rule, _bar(close=100.0, sma=90.0))
