"""Preset rule sets for the built-in simulation policies.

Each builder maps a parameter dict to (entry_rules, exit_rules); missing
parameters fall back to the defaults in ``PRESET_PARAMETERS``.
"""

from typing import Dict, List, Optional, Tuple

from config.schema import SimulationConfig, SimulationPolicy, SimulationRule
from strategies.base import Strategy
from strategies.factory import RuleBuilder, get_parametric_strategy

Rules = Tuple[List[SimulationRule], List[SimulationRule]]


def _rule(
    one_type: str,
    one_name: str,
    compare: str,
    two_type: str,
    two_name: str,
    one_figures: Tuple[float, ...] = (),
    two_figures: Tuple[float, ...] = (),
) -> SimulationRule:
    one = list(one_figures) + [None] * (3 - len(one_figures))
    two = list(two_figures) + [None] * (3 - len(two_figures))
    return SimulationRule(
        indicator_one_type=one_type,
        indicator_one_name=one_name,
        indicator_one_figure_one=one[0],
        indicator_one_figure_two=one[1],
        indicator_one_figure_three=one[2],
        compare=compare,
        indicator_two_type=two_type,
        indicator_two_name=two_name,
        indicator_two_figure_one=two[0],
        indicator_two_figure_two=two[1],
        indicator_two_figure_three=two[2],
    )


def _close_vs_average(kind: str):
    def build(p: Dict[str, float]) -> Rules:
        period = (p['period'],)
        entry = [_rule('close', 'close', 'largerThan', kind, kind, two_figures=period)]
        exit_ = [_rule('close', 'close', 'smallThan', kind, kind, two_figures=period)]
        return entry, exit_
    return build


def _crossover(kind: str):
    def build(p: Dict[str, float]) -> Rules:
        fast, slow = (p['fast'],), (p['slow'],)
        entry = [_rule(kind, f"{kind}Fast", 'largerThan', kind, f"{kind}Slow", fast, slow)]
        exit_ = [_rule(kind, f"{kind}Fast", 'smallThan', kind, f"{kind}Slow", fast, slow)]
        return entry, exit_
    return build


def _mean_reversion(kind: str):
    def build(p: Dict[str, float]) -> Rules:
        period = (p['period'],)
        entry = [
            _rule('close', 'close', 'smallThan', kind, kind, two_figures=period),
            _rule('rsi', 'rsi', 'smallThan', 'constant', 'oversold', (p['rsi_period'],), (p['oversold'],)),
        ]
        exit_ = [_rule('close', 'close', 'largerThan', kind, kind, two_figures=period)]
        return entry, exit_
    return build


def _macd_figures(p: Dict[str, float]) -> Tuple[float, float, float]:
    return p['short'], p['long'], p['signal']


def _macd(p: Dict[str, float]) -> Rules:
    figures = _macd_figures(p)
    entry = [_rule('macd', 'macd', 'largerThan', 'constant', 'zero', figures, (0.0,))]
    exit_ = [_rule('macd', 'macd', 'smallThan', 'constant', 'zero', figures, (0.0,))]
    return entry, exit_


def _macd_with(kind: str):
    def build(p: Dict[str, float]) -> Rules:
        entry, exit_ = _macd(p)
        entry = entry + [_rule('close', 'close', 'largerThan', kind, kind, two_figures=(p['period'],))]
        return entry, exit_
    return build


def _bollinger(p: Dict[str, float]) -> Rules:
    figures = (p['period'], p['width'], p['width'])
    entry = [_rule('close', 'close', 'smallThan', 'bollingerLower', 'bb', two_figures=figures)]
    exit_ = [_rule('close', 'close', 'largerThan', 'bollingerMiddle', 'bb', two_figures=figures)]
    return entry, exit_


def _stochastic(prefix: str):
    def build(p: Dict[str, float]) -> Rules:
        if prefix == 'stochasticSlow':
            figures = (p['k_period'], p['d_period'], p['smoothing'])
        else:
            figures = (p['k_period'], p['d_period'])
        k_type = f"{prefix}PercentK"
        entry = [_rule(k_type, 'stoch', 'smallThan', 'constant', 'oversold', figures, (p['oversold'],))]
        exit_ = [_rule(k_type, 'stoch', 'largerThan', 'constant', 'overbought', figures, (p['overbought'],))]
        return entry, exit_
    return build


PRESET_BUILDERS: Dict[SimulationPolicy, RuleBuilder] = {
    SimulationPolicy.SMA: _close_vs_average('sma'),
    SimulationPolicy.EMA: _close_vs_average('ema'),
    SimulationPolicy.MACD: _macd,
    SimulationPolicy.STOCHASTIC_SLOW: _stochastic('stochasticSlow'),
    SimulationPolicy.STOCHASTIC_FAST: _stochastic('stochasticFast'),
    SimulationPolicy.BOLLINGER: _bollinger,
    SimulationPolicy.MACD_SMA: _macd_with('sma'),
    SimulationPolicy.MACD_EMA: _macd_with('ema'),
    SimulationPolicy.SMA_CROSSOVER: _crossover('sma'),
    SimulationPolicy.EMA_CROSSOVER: _crossover('ema'),
    SimulationPolicy.SMA_MEAN_REVERSION: _mean_reversion('sma'),
    SimulationPolicy.EMA_MEAN_REVERSION: _mean_reversion('ema'),
}

_MACD_DEFAULTS = {'short': 12.0, 'long': 26.0, 'signal': 9.0}
_STOCH_DEFAULTS = {'k_period': 14.0, 'd_period': 3.0, 'oversold': 20.0, 'overbought': 80.0}
_MEAN_REVERSION_DEFAULTS = {'period': 20.0, 'rsi_period': 14.0, 'oversold': 30.0}

PRESET_PARAMETERS: Dict[SimulationPolicy, Dict[str, float]] = {
    SimulationPolicy.SMA: {'period': 20.0},
    SimulationPolicy.EMA: {'period': 20.0},
    SimulationPolicy.MACD: dict(_MACD_DEFAULTS),
    SimulationPolicy.STOCHASTIC_SLOW: dict(_STOCH_DEFAULTS, smoothing=3.0),
    SimulationPolicy.STOCHASTIC_FAST: dict(_STOCH_DEFAULTS),
    SimulationPolicy.BOLLINGER: {'period': 20.0, 'width': 2.0},
    SimulationPolicy.MACD_SMA: dict(_MACD_DEFAULTS, period=50.0),
    SimulationPolicy.MACD_EMA: dict(_MACD_DEFAULTS, period=50.0),
    SimulationPolicy.SMA_CROSSOVER: {'fast': 10.0, 'slow': 30.0},
    SimulationPolicy.EMA_CROSSOVER: {'fast': 10.0, 'slow': 30.0},
    SimulationPolicy.SMA_MEAN_REVERSION: dict(_MEAN_REVERSION_DEFAULTS),
    SimulationPolicy.EMA_MEAN_REVERSION: dict(_MEAN_REVERSION_DEFAULTS),
}


def _resolve(policy: SimulationPolicy, parameters: Optional[Dict[str, float]]) -> Dict[str, float]:
    if policy not in PRESET_BUILDERS:
        raise ValueError(f"No preset rules for policy {policy.value!r}")
    resolved = dict(PRESET_PARAMETERS[policy])
    if parameters:
        unknown = sorted(set(parameters) - set(resolved))
        if unknown:
            raise ValueError(f"Unknown parameter(s) {unknown} for policy {policy.value!r}")
        resolved.update(parameters)
    return resolved


def preset_rules(policy: SimulationPolicy, parameters: Optional[Dict[str, float]] = None) -> Rules:
    """Entry and exit rules for a built-in policy."""
    resolved = _resolve(policy, parameters)
    return PRESET_BUILDERS[policy](resolved)


def preset_strategy(
    policy: SimulationPolicy,
    parameters: Optional[Dict[str, float]] = None,
    config: Optional[SimulationConfig] = None,
) -> Strategy:
    """Parametric strategy for a built-in policy, ready for optimization."""
    resolved = _resolve(policy, parameters)
    return get_parametric_strategy(PRESET_BUILDERS[policy], resolved, config)
