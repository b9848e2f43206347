"""
Consumption analytics.

Per-device statistics over recorded device events within a time range.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from ..core.config import MS_PER_HOUR, TIME_RANGES_MS
from ..core.models import DeviceEvent, DeviceInfo

logger = logging.getLogger(__name__)


def _empty_stats(device: Optional[DeviceInfo]) -> Dict[str, Any]:
    return {
        'device': device.to_dict() if device is not None else None,
        'event_count': 0,
        'total_consumption': 0.0,
        'total_duration': 0,
        'average_duration': 0.0,
        'average_power': 0.0,
        'events': [],
    }


def resolve_cutoff(time_range: Optional[str], now: int) -> int:
    """Earliest start time included for ``time_range``; 0 means everything."""
    if time_range is None:
        return 0
    range_ms = TIME_RANGES_MS.get(time_range)
    if range_ms is None:
        logger.warning(f"Unknown time range '{time_range}', analysing all events")
        return 0
    return now - range_ms


def get_consumption_analysis(
    device_events: Sequence[DeviceEvent],
    devices: Sequence[DeviceInfo],
    time_range: Optional[str] = None,
    now: int = 0,
) -> Dict[str, Any]:
    """
    Aggregate device events per device.

    Args:
        device_events: Recorded device events
        devices: Registry devices; each gets an entry even without activity
        time_range: '1h', '24h', '7d', '30d' or None for all events
        now: Current time in epoch ms

    Returns:
        Dictionary with time_range, total_events, total_consumption,
        device_stats (keyed by device id) and the filtered events
    """
    cutoff = resolve_cutoff(time_range, now)
    filtered = [
        e for e in device_events
        if e.start_time >= cutoff and e.total_consumption > 0
    ]

    device_stats: Dict[str, Dict[str, Any]] = {d.id: _empty_stats(d) for d in devices}

    if filtered:
        df = pd.DataFrame({
            'device_id': [e.device_id for e in filtered],
            'total_consumption': [e.total_consumption for e in filtered],
            'duration': [e.duration or 0 for e in filtered],
        })
        grouped = df.groupby('device_id', sort=False).agg(
            event_count=('total_consumption', 'size'),
            total_consumption=('total_consumption', 'sum'),
            total_duration=('duration', 'sum'),
        )

        for device_id, row in grouped.iterrows():
            stats = device_stats.setdefault(device_id, _empty_stats(None))
            event_count = int(row['event_count'])
            total_duration = int(row['total_duration'])
            stats['event_count'] = event_count
            stats['total_consumption'] = float(row['total_consumption'])
            stats['total_duration'] = total_duration
            stats['average_duration'] = total_duration / event_count
            stats['average_power'] = (
                stats['total_consumption'] / (total_duration / MS_PER_HOUR) if total_duration > 0 else 0.0
            )

        for event in filtered:
            device_stats[event.device_id]['events'].append(event.to_dict())

    total_consumption = float(sum(s['total_consumption'] for s in device_stats.values()))
    logger.debug(
        f"Consumption analysis ({time_range or 'all'}): {len(filtered)} events, {total_consumption:.2f} Wh"
    )
    return {
        'time_range': time_range or 'all',
        'total_events': len(filtered),
        'total_consumption': total_consumption,
        'device_stats': device_stats,
        'events': [e.to_dict() for e in filtered],
    }


def analysis_to_dataframe(analysis: Dict[str, Any]) -> pd.DataFrame:
    """Flatten ``device_stats`` into one row per device."""
    rows = []
    for device_id, stats in analysis['device_stats'].items():
        device = stats['device'] or {}
        rows.append({
            'device_id': device_id,
            'name': device.get('name'),
            'type': device.get('type'),
            'phase': device.get('phase'),
            'event_count': stats['event_count'],
            'total_consumption': stats['total_consumption'],
            'total_duration': stats['total_duration'],
            'average_duration': stats['average_duration'],
            'average_power': stats['average_power'],
        })
    columns = ['device_id', 'name', 'type', 'phase', 'event_count', 'total_consumption',
               'total_duration', 'average_duration', 'average_power']
    return pd.DataFrame(rows, columns=columns)
