"""Conversion between OHLCV DataFrames and Bar lists.

Parsing and cleaning raw files is left to the caller; this module only
expects a frame with a datetime index (or a ``timestamp``/``time``/``date``
column) and lowercase ``open``, ``high``, ``low``, ``close`` columns.
"""

import logging
from pathlib import Path
from typing import List

import pandas as pd

from engine.types import ADJUSTED_CLOSE_ALIASES, Bar

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['open', 'high', 'low', 'close']
TIME_COLUMNS = ['timestamp', 'time', 'date', 'datetime']


def _with_datetime_index(df: pd.DataFrame) -> pd.DataFrame:
    if isinstance(df.index, pd.DatetimeIndex):
        return df
    for column in TIME_COLUMNS:
        if column in df.columns:
            out = df.copy()
            out.index = pd.to_datetime(out.pop(column))
            return out
    raise ValueError(f"DataFrame needs a DatetimeIndex or one of the columns {TIME_COLUMNS}")


def bars_from_frame(df: pd.DataFrame) -> List[Bar]:
    """Convert an OHLCV DataFrame into chronologically sorted bars.

    Args:
        df: OHLCV frame. ``volume`` and an adjusted-close column are optional;
            any other numeric columns are carried over as indicators.

    Returns:
        List of Bar objects
    """
    df = _with_datetime_index(df)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    df = df.sort_index()
    adjusted_column = next((c for c in ADJUSTED_CLOSE_ALIASES if c in df.columns), None)
    known = set(REQUIRED_COLUMNS) | {'volume', adjusted_column}
    extra = [c for c in df.columns if c not in known and pd.api.types.is_numeric_dtype(df[c])]

    bars = []
    for timestamp, row in df.iterrows():
        indicators = {c: float(row[c]) for c in extra if pd.notna(row[c])}
        adjusted = row[adjusted_column] if adjusted_column else None
        bars.append(Bar(
            time=timestamp,
            open=float(row['open']),
            high=float(row['high']),
            low=float(row['low']),
            close=float(row['close']),
            volume=float(row['volume']) if 'volume' in df.columns else 0.0,
            adjusted_close=float(adjusted) if adjusted is not None and pd.notna(adjusted) else None,
            indicators=indicators,
        ))
    return bars


def bars_to_frame(bars: List[Bar]) -> pd.DataFrame:
    """Inverse of bars_from_frame; indicator values become extra columns."""
    records = []
    for bar in bars:
        record = {
            'open': bar.open,
            'high': bar.high,
            'low': bar.low,
            'close': bar.close,
            'volume': bar.volume,
            'adj_close': bar.adjusted_close,
        }
        record.update(bar.indicators)
        records.append(record)
    index = pd.DatetimeIndex([bar.time for bar in bars], name='timestamp')
    return pd.DataFrame(records, index=index)


def load_bars_csv(path: Path, **kwargs) -> List[Bar]:
    """Read an already-clean OHLCV CSV with pandas and convert it to bars."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    df = pd.read_csv(path, **kwargs)
    df.columns = [str(c).strip().lower() if str(c).strip().lower() in REQUIRED_COLUMNS + TIME_COLUMNS + ['volume'] else c
                  for c in df.columns]
    bars = bars_from_frame(df)
    logger.info(f"Loaded {len(bars)} bars from {path}")
    return bars
