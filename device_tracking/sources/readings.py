"""
Readings file adapter.

The collector appends one CSV row per meter reading:

    device_id, timestamp (unix s), reading_id,
    a/b/c voltage, a/b/c current, n current,
    a/b/c active power, a/b/c apparent power, a/b/c angle, a/b/c pf

Rows with fewer than 15 fields are skipped.  Per-phase power is computed as
voltage x current; missing numeric values count as 0.
"""
import logging
from pathlib import Path
from typing import Iterator, Union

import pandas as pd

from ..core.config import PHASES
from ..core.models import Sample

logger = logging.getLogger(__name__)

READING_COLUMNS = [
    'device_id', 'timestamp', 'reading_id',
    'voltage_a', 'voltage_b', 'voltage_c',
    'current_a', 'current_b', 'current_c', 'current_n',
    'apower_a', 'apower_b', 'apower_c',
    'aprtpower_a', 'aprtpower_b', 'aprtpower_c',
    'angle_a', 'angle_b', 'angle_c',
    'pf_a', 'pf_b', 'pf_c',
]
MIN_FIELDS = 15

_NUMERIC_COLUMNS = READING_COLUMNS[3:]


def load_readings(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a readings CSV.

    Returns:
        DataFrame with a ``timestamp`` column in epoch ms and ``power_a``,
        ``power_b``, ``power_c`` columns in watts, sorted by time.
    """
    try:
        raw = pd.read_csv(
            path,
            header=None,
            names=READING_COLUMNS,
            dtype=str,
            keep_default_na=False,
            on_bad_lines='skip',
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"Readings file {path} is empty")
        raw = pd.DataFrame(columns=READING_COLUMNS)

    short = raw[READING_COLUMNS[MIN_FIELDS - 1]].isna()
    if short.any():
        logger.warning(f"Skipping {int(short.sum())} rows with fewer than {MIN_FIELDS} fields")
    df = raw[~short].copy()

    df['timestamp'] = pd.to_numeric(df['timestamp'], errors='coerce')
    invalid = df['timestamp'].isna()
    if invalid.any():
        # the collector's header row lands here
        logger.debug(f"Dropping {int(invalid.sum())} rows without a numeric timestamp")
    df = df[~invalid].copy()
    df['timestamp'] = (df['timestamp'].astype('int64') * 1000)

    for col in _NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors='coerce').fillna(0.0)

    for phase in PHASES:
        suffix = phase.lower()
        df[f'power_{suffix}'] = df[f'voltage_{suffix}'] * df[f'current_{suffix}']

    df = df.sort_values('timestamp', kind='stable').reset_index(drop=True)
    logger.info(f"Loaded {len(df)} readings from {path}")
    return df


def readings_to_samples(df: pd.DataFrame) -> Iterator[Sample]:
    """Yield per-phase samples row by row (A, B, C within a row)."""
    for row in df.itertuples(index=False):
        for phase in PHASES:
            suffix = phase.lower()
            yield Sample(
                phase=phase,
                timestamp=int(row.timestamp),
                power=float(getattr(row, f'power_{suffix}')),
                raw_readings={
                    f'voltage_{suffix}': float(getattr(row, f'voltage_{suffix}')),
                    f'current_{suffix}': float(getattr(row, f'current_{suffix}')),
                    f'pf_{suffix}': float(getattr(row, f'pf_{suffix}')),
                },
            )


def iter_samples(path: Union[str, Path]) -> Iterator[Sample]:
    return readings_to_samples(load_readings(path))
