"""Ordered index/value containers and the indicator formulas built on them.

Every windowed output is tagged with the index of the last element of the
window that produced it, and columns are only ever combined by joining on
index. Insufficient data yields an empty result, never an exception.
"""

import sys
from dataclasses import asdict, dataclass
from typing import Callable, Generic, Iterator, List, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd


I = TypeVar("I")
V = TypeVar("V")
W = TypeVar("W")
R = TypeVar("R")

EPSILON = sys.float_info.epsilon


class Window(Generic[I, V]):
    """Fixed-size contiguous slice of a Series."""

    def __init__(self, indices: Sequence[I], values: Sequence[V]):
        self.indices = list(indices)
        self.values = list(values)

    @property
    def index_last(self) -> I:
        return self.indices[-1]

    @property
    def value_last(self) -> V:
        return self.values[-1]

    def __len__(self) -> int:
        return len(self.values)

    def average(self) -> float:
        return float(np.mean(self.values)) if self.values else 0.0

    def variance(self) -> float:
        """Population variance (divides by N)."""
        return float(np.var(self.values)) if self.values else 0.0

    def std(self) -> float:
        return float(np.std(self.values)) if self.values else 0.0

    def min(self) -> float:
        return float(np.min(self.values)) if self.values else 0.0

    def max(self) -> float:
        return float(np.max(self.values)) if self.values else 0.0


class Series(Generic[I, V]):
    """Ordered pair of equal-length index and value lists.

    Construction truncates to the shorter input so ``len(indices) ==
    len(values)`` always holds.
    """

    def __init__(self, indices: Sequence[I] = (), values: Sequence[V] = ()):
        n = min(len(indices), len(values))
        self.indices: List[I] = list(indices[:n])
        self.values: List[V] = list(values[:n])

    @classmethod
    def from_values(cls, values: Sequence[V]) -> "Series[int, V]":
        """Series indexed by position."""
        return cls(list(range(len(values))), values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Tuple[I, V]]:
        return iter(zip(self.indices, self.values))

    def __repr__(self) -> str:
        return f"Series(n={len(self)}, indices={self.indices[:3]}..., values={self.values[:3]}...)"

    @property
    def is_empty(self) -> bool:
        return not self.values

    def first(self) -> Tuple[I, V]:
        return self.indices[0], self.values[0]

    def last(self) -> Tuple[I, V]:
        return self.indices[-1], self.values[-1]

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------

    def skip(self, count: int) -> "Series[I, V]":
        count = max(count, 0)
        return Series(self.indices[count:], self.values[count:])

    def take(self, count: int) -> "Series[I, V]":
        count = max(count, 0)
        return Series(self.indices[:count], self.values[:count])

    def map(self, fn: Callable[[V], W]) -> "Series[I, W]":
        return Series(self.indices, [fn(v) for v in self.values])

    def filter(self, predicate: Callable[[V], bool]) -> "Series[I, V]":
        kept = [(i, v) for i, v in self if predicate(v)]
        return Series([i for i, _ in kept], [v for _, v in kept])

    def zip(self, other: "Series[I, W]", fn: Callable[[V, W], R]) -> "Series[I, R]":
        """Positional combination; keeps this series' indices."""
        n = min(len(self), len(other))
        return Series(self.indices[:n], [fn(self.values[k], other.values[k]) for k in range(n)])

    def zip_aligned(self, other: "Series[I, W]", fn: Callable[[V, W], R]) -> "Series[I, R]":
        """Inner join on index, in this series' order.

        Duplicate indices in ``other`` resolve to their last value.
        """
        lookup = dict(zip(other.indices, other.values))
        indices: List[I] = []
        values: List[R] = []
        for index, value in self:
            if index in lookup:
                indices.append(index)
                values.append(fn(value, lookup[index]))
        return Series(indices, values)

    def rolling_window(self, period: int) -> "Series[I, Window[I, V]]":
        """One Window per position ``i >= period - 1`` covering ``[i-period+1, i]``."""
        if period <= 0 or len(self) < period:
            return Series()
        windows = [
            Window(self.indices[end - period + 1:end + 1], self.values[end - period + 1:end + 1])
            for end in range(period - 1, len(self))
        ]
        return Series([w.index_last for w in windows], windows)

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------

    def average(self) -> float:
        return float(np.mean(self.values)) if self.values else 0.0

    def variance(self) -> float:
        return float(np.var(self.values)) if self.values else 0.0

    def std(self) -> float:
        return float(np.std(self.values)) if self.values else 0.0

    def min(self) -> float:
        return float(np.min(self.values)) if self.values else 0.0

    def max(self) -> float:
        return float(np.max(self.values)) if self.values else 0.0

    def amount_change(self, period: int = 1) -> "Series[I, float]":
        """Difference between each value and the one ``period`` positions earlier."""
        if period <= 0 or len(self) <= period:
            return Series()
        return Series(
            self.indices[period:],
            [self.values[k] - self.values[k - period] for k in range(period, len(self))],
        )

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    def sma(self, period: int) -> "Series[I, float]":
        """Simple moving average."""
        return self.rolling_window(period).map(lambda w: w.average())

    def ema(self, period: int) -> "Series[I, float]":
        """Exponential moving average.

        Seeded with the mean of the first ``period`` values at index
        ``period - 1``; every later value smooths against the previous EMA
        with multiplier ``2 / (period + 1)``.
        """
        if period <= 0 or len(self) < period:
            return Series()
        multiplier = 2.0 / (period + 1)
        current = float(np.mean(self.values[:period]))
        indices = [self.indices[period - 1]]
        values = [current]
        for k in range(period, len(self)):
            current = (self.values[k] - current) * multiplier + current
            indices.append(self.indices[k])
            values.append(current)
        return Series(indices, values)

    def rsi(self, period: int) -> "Series[I, float]":
        """Relative strength index with Wilder smoothing.

        The first value sits at position ``period`` and needs
        ``period + 1`` observations.
        """
        if period <= 0 or len(self) < period + 1:
            return Series()
        deltas = [self.values[k] - self.values[k - 1] for k in range(1, len(self))]
        gains = [d if d >= 0 else 0.0 for d in deltas]
        losses = [-d if d < 0 else 0.0 for d in deltas]

        avg_gain = float(np.mean(gains[:period]))
        avg_loss = float(np.mean(losses[:period]))
        indices = [self.indices[period]]
        values = [_rsi_value(avg_gain, avg_loss)]
        for k in range(period, len(deltas)):
            avg_gain = (avg_gain * (period - 1) + gains[k]) / period
            avg_loss = (avg_loss * (period - 1) + losses[k]) / period
            indices.append(self.indices[k + 1])
            values.append(_rsi_value(avg_gain, avg_loss))
        return Series(indices, values)

    def bollinger(self, period: int, upper_mult: float = 2.0, lower_mult: float = 2.0) -> "Frame[I, BollingerRow]":
        """Bollinger bands using the population standard deviation."""
        rows = []
        windows = self.rolling_window(period)
        for window in windows.values:
            middle = window.average()
            stddev = window.std()
            rows.append(BollingerRow(
                value=float(window.value_last),
                upper=middle + upper_mult * stddev,
                middle=middle,
                lower=middle - lower_mult * stddev,
                stddev=stddev,
            ))
        return Frame(windows.indices, rows)

    def macd(self, short_period: int, long_period: int, signal_period: int) -> "Frame[I, MacdRow]":
        """MACD line, signal and histogram on the histogram's index range."""
        short_ema = self.ema(short_period)
        long_ema = self.ema(long_period)
        macd_line = short_ema.zip_aligned(long_ema, lambda s, l: s - l)
        signal = macd_line.ema(signal_period)
        histogram = macd_line.zip_aligned(signal, lambda m, s: m - s)

        short_lookup = dict(short_ema)
        long_lookup = dict(long_ema)
        macd_lookup = dict(macd_line)
        signal_lookup = dict(signal)
        rows = [
            MacdRow(
                short_ema=short_lookup[index],
                long_ema=long_lookup[index],
                macd=macd_lookup[index],
                signal=signal_lookup[index],
                histogram=value,
            )
            for index, value in histogram
        ]
        return Frame(histogram.indices, rows)

    def to_pandas(self, name: str = None) -> pd.Series:
        return pd.Series(self.values, index=self.indices, name=name, dtype=float)


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss <= EPSILON and avg_gain <= EPSILON:
        return 50.0
    if avg_loss <= EPSILON:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


# ============================================================================
# Frames
# ============================================================================

@dataclass
class BollingerRow:
    value: float
    upper: float
    middle: float
    lower: float
    stddev: float


@dataclass
class MacdRow:
    short_ema: float
    long_ema: float
    macd: float
    signal: float
    histogram: float


@dataclass
class StochasticRow:
    percent_k: float
    percent_d: float


class Frame(Generic[I, R]):
    """Ordered rows sharing one index list (truncated like Series)."""

    def __init__(self, indices: Sequence[I] = (), rows: Sequence[R] = ()):
        n = min(len(indices), len(rows))
        self.indices: List[I] = list(indices[:n])
        self.rows: List[R] = list(rows[:n])

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Tuple[I, R]]:
        return iter(zip(self.indices, self.rows))

    def column(self, fn: Callable[[R], V]) -> Series[I, V]:
        """Extract one column as a Series."""
        return Series(self.indices, [fn(row) for row in self.rows])

    def to_pandas(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(row) for row in self.rows], index=self.indices)


# ============================================================================
# Stochastic oscillators (need high/low/close)
# ============================================================================

def stochastic_percent_k(
    indices: Sequence[I],
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int,
) -> Series[I, float]:
    """%K = 100 * (close - lowest low) / (highest high - lowest low).

    Zero when the window's range is zero.
    """
    n = min(len(indices), len(highs), len(lows), len(closes))
    if period <= 0 or n < period:
        return Series()
    out_indices = []
    out_values = []
    for end in range(period - 1, n):
        start = end - period + 1
        highest = max(highs[start:end + 1])
        lowest = min(lows[start:end + 1])
        span = highest - lowest
        out_indices.append(indices[end])
        out_values.append(0.0 if span == 0 else 100.0 * (closes[end] - lowest) / span)
    return Series(out_indices, out_values)


def _join_stochastic(k: Series, d: Series) -> Frame:
    pairs = k.zip_aligned(d, lambda kv, dv: StochasticRow(percent_k=kv, percent_d=dv))
    return Frame(pairs.indices, pairs.values)


def stochastic_fast(
    indices: Sequence[I],
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int,
    d_period: int,
) -> Frame[I, StochasticRow]:
    """Fast stochastic: raw %K and %D = SMA(%K, d_period)."""
    percent_k = stochastic_percent_k(indices, highs, lows, closes, k_period)
    return _join_stochastic(percent_k, percent_k.sma(d_period))


def stochastic_slow(
    indices: Sequence[I],
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int,
    d_period: int,
    smoothing: int,
) -> Frame[I, StochasticRow]:
    """Slow stochastic: %K = SMA(fast %K, d_period), %D = SMA(slow %K, smoothing)."""
    slow_k = stochastic_percent_k(indices, highs, lows, closes, k_period).sma(d_period)
    return _join_stochastic(slow_k, slow_k.sma(smoothing))
