"""Indicator baking: compute the indicator columns a rule set refers to.

Each rule names up to two operands (type, name, figures). For every operand
the matching indicator is computed on the bar series and written into each
bar's ``indicators`` mapping under the operand's output name. Bars are never
mutated; a new list of bars is returned together with the largest warm-up
(lookback) any operand needs.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from engine.series import Series, stochastic_fast, stochastic_slow
from engine.types import Bar

logger = logging.getLogger(__name__)


class IndicatorType(Enum):
    """Operand types understood by indicator baking and the rule evaluator."""
    SMA = "sma"
    EMA = "ema"
    MACD = "macd"
    RSI = "rsi"
    BOLLINGER_UPPER = "bollingerUpper"
    BOLLINGER_MIDDLE = "bollingerMiddle"
    BOLLINGER_LOWER = "bollingerLower"
    STOCHASTIC_FAST_PERCENT_K = "stochasticFastPercentK"
    STOCHASTIC_FAST_PERCENT_D = "stochasticFastPercentD"
    STOCHASTIC_SLOW_PERCENT_K = "stochasticSlowPercentK"
    STOCHASTIC_SLOW_PERCENT_D = "stochasticSlowPercentD"
    OPEN = "open"
    HIGH = "high"
    LOW = "low"
    CLOSE = "close"
    VOLUME = "volume"
    CONSTANT = "constant"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["IndicatorType"]:
        """Return the matching member, or None for unknown/missing values."""
        if raw is None:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


OUTPUT_SUFFIXES = {
    IndicatorType.BOLLINGER_UPPER: "Upper",
    IndicatorType.BOLLINGER_MIDDLE: "Middle",
    IndicatorType.BOLLINGER_LOWER: "Lower",
    IndicatorType.STOCHASTIC_FAST_PERCENT_K: "percentK",
    IndicatorType.STOCHASTIC_SLOW_PERCENT_K: "percentK",
    IndicatorType.STOCHASTIC_FAST_PERCENT_D: "percentD",
    IndicatorType.STOCHASTIC_SLOW_PERCENT_D: "percentD",
}


BOLLINGER_TYPES = (
    IndicatorType.BOLLINGER_UPPER,
    IndicatorType.BOLLINGER_MIDDLE,
    IndicatorType.BOLLINGER_LOWER,
)

# Operands read straight off the bar
RAW_FIELD_TYPES = (
    IndicatorType.OPEN,
    IndicatorType.HIGH,
    IndicatorType.LOW,
    IndicatorType.CLOSE,
    IndicatorType.VOLUME,
)


def output_name(indicator_type: IndicatorType, name: str) -> str:
    """Name under which an operand's values are stored on each bar."""
    return name + OUTPUT_SUFFIXES.get(indicator_type, "")


def figure_to_period(figure: Optional[float]) -> int:
    """Round half up and clamp at zero."""
    if figure is None:
        return 0
    return max(int(np.floor(figure + 0.5)), 0)


def indicator_lookback(indicator_type: IndicatorType, p1: int, p2: int, p3: int) -> int:
    """Warm-up bars consumed by an indicator."""
    if indicator_type in RAW_FIELD_TYPES or indicator_type == IndicatorType.CONSTANT:
        return 0
    if indicator_type == IndicatorType.MACD:
        return p2 + p3
    if indicator_type in (IndicatorType.STOCHASTIC_FAST_PERCENT_K, IndicatorType.STOCHASTIC_FAST_PERCENT_D):
        return p1 + p2
    if indicator_type in (IndicatorType.STOCHASTIC_SLOW_PERCENT_K, IndicatorType.STOCHASTIC_SLOW_PERCENT_D):
        return p1 + p2 + p3
    return p1


def compute_indicator(
    bars: List[Bar],
    indicator_type: IndicatorType,
    p1: int,
    p2: int,
    p3: int,
    figure_two: float = 0.0,
    figure_three: float = 0.0,
) -> Optional[Series]:
    """Compute one indicator column indexed by bar position.

    Returns None for operand types that need no column (raw fields, constant).
    """
    positions = list(range(len(bars)))
    closes = Series(positions, [b.close for b in bars])

    if indicator_type == IndicatorType.SMA:
        return closes.sma(p1)
    if indicator_type == IndicatorType.EMA:
        return closes.ema(p1)
    if indicator_type == IndicatorType.RSI:
        return closes.rsi(p1)
    if indicator_type == IndicatorType.MACD:
        return closes.macd(p1, p2, p3).column(lambda row: row.histogram)
    if indicator_type in BOLLINGER_TYPES:
        # Figures two and three are the band multipliers, not periods
        bands = closes.bollinger(p1, figure_two, figure_three)
        attr = OUTPUT_SUFFIXES[indicator_type].lower()
        return bands.column(lambda row: getattr(row, attr))

    highs = [b.high for b in bars]
    lows = [b.low for b in bars]
    close_values = closes.values
    if indicator_type in (IndicatorType.STOCHASTIC_FAST_PERCENT_K, IndicatorType.STOCHASTIC_FAST_PERCENT_D):
        frame = stochastic_fast(positions, highs, lows, close_values, p1, p2)
    elif indicator_type in (IndicatorType.STOCHASTIC_SLOW_PERCENT_K, IndicatorType.STOCHASTIC_SLOW_PERCENT_D):
        frame = stochastic_slow(positions, highs, lows, close_values, p1, p2, p3)
    else:
        return None
    if OUTPUT_SUFFIXES[indicator_type] == "percentK":
        return frame.column(lambda row: row.percent_k)
    return frame.column(lambda row: row.percent_d)


def _operands(rule) -> Iterable[Tuple[Optional[str], Optional[str], Optional[float], Optional[float], Optional[float]]]:
    yield (
        rule.indicator_one_type,
        rule.indicator_one_name,
        rule.indicator_one_figure_one,
        rule.indicator_one_figure_two,
        rule.indicator_one_figure_three,
    )
    yield (
        rule.indicator_two_type,
        rule.indicator_two_name,
        rule.indicator_two_figure_one,
        rule.indicator_two_figure_two,
        rule.indicator_two_figure_three,
    )


def bake_indicators(bars: List[Bar], entry_rules: List, exit_rules: List) -> Tuple[List[Bar], int]:
    """Bake every indicator referenced by the entry and exit rules.

    Args:
        bars: Raw bars in chronological order
        entry_rules: SimulationRule objects for entry
        exit_rules: SimulationRule objects for exit

    Returns:
        Tuple of (baked bars with the first ``max_lookback`` bars dropped
        when enough bars exist, max_lookback). Operands with an unknown type
        or no name are skipped.
    """
    columns: Dict[str, Series] = {}
    cache: Dict[str, Series] = {}
    max_lookback = 0

    for rule in list(entry_rules) + list(exit_rules):
        for raw_type, name, f1, f2, f3 in _operands(rule):
            indicator_type = IndicatorType.parse(raw_type)
            if indicator_type is None or not name:
                if raw_type is not None:
                    logger.debug(f"Skipping operand with unknown indicator type {raw_type!r}")
                continue
            p1, p2, p3 = figure_to_period(f1), figure_to_period(f2), figure_to_period(f3)
            max_lookback = max(max_lookback, indicator_lookback(indicator_type, p1, p2, p3))
            if indicator_type in RAW_FIELD_TYPES or indicator_type == IndicatorType.CONSTANT:
                continue

            if indicator_type in BOLLINGER_TYPES:
                # Band multipliers are not rounded
                cache_key = f"{indicator_type.value}|{name}|{p1}|{f2}|{f3}"
            else:
                cache_key = f"{indicator_type.value}|{name}|{p1}|{p2}|{p3}"
            if cache_key not in cache:
                column = compute_indicator(bars, indicator_type, p1, p2, p3, f2 or 0.0, f3 or 0.0)
                if column is None:
                    continue
                cache[cache_key] = column
            columns[output_name(indicator_type, name)] = cache[cache_key]

    baked = list(bars)
    if columns:
        per_bar: List[Dict[str, float]] = [{} for _ in bars]
        for column_name, column in columns.items():
            for position, value in column:
                per_bar[position][column_name] = value
        baked = [bar.with_indicators(values) if values else bar for bar, values in zip(bars, per_bar)]

    if max_lookback > 0 and len(baked) > max_lookback:
        baked = baked[max_lookback:]
    return baked, max_lookback
