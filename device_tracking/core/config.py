"""
Tracker configuration management.

Store-level constants live here; the scoring constants of the inference
engine live in ``identification/config.py``.  ``TrackerConfig`` carries the
runtime-overridable settings and round-trips through JSON.
"""
from dataclasses import dataclass, fields
from typing import Dict, Any, Optional
import json
import logging

logger = logging.getLogger(__name__)

# ============================================================================
# Phases and event types
# ============================================================================
PHASES = ['A', 'B', 'C']

EVENT_TYPES = ['peak', 'valley', 'start']
NODE_TYPES = ['normal', 'peak', 'valley']

DEVICE_EVENT_TYPES = ['usage', 'standby', 'peak', 'manual_start']
DEVICE_EVENT_SOURCES = ['manual', 'manual_start', 'auto']
ASSOCIATION_SOURCES = ['manual', 'auto']

# ============================================================================
# Threshold segmenter
# ============================================================================
DEFAULT_LOW_THRESHOLD = 300         # watts, max power of a LOW episode
DEFAULT_MEDIUM_THRESHOLD = 1000     # watts, max power of a MEDIUM episode
NOISE_FLOOR_WATTS = 10              # episode opens above, closes at or below
TREND_THRESHOLD_WATTS = 5           # change needed to flip rising/falling

EPISODE_TYPES = ['LOW', 'MEDIUM', 'HIGH']

# ============================================================================
# Association / event store
# ============================================================================
EVENT_HISTORY_LIMIT = 1000          # raw events kept (FIFO)
EXPORT_HISTORY_LIMIT = 100          # raw events included in an export
PATTERN_BUFFER_SIZE = 10            # observations kept per ring buffer

REMOVAL_DEVICE_WINDOW_MS = 30000    # strategy (b): device + time window + phase
REMOVAL_TIMESTAMP_TOLERANCE_MS = 5000  # strategy (c): timestamp + phase + type

EXPORT_FORMAT_VERSION = '1.0'

# ============================================================================
# Analytics
# ============================================================================
MS_PER_HOUR = 60 * 60 * 1000

TIME_RANGES_MS = {
    '1h': MS_PER_HOUR,
    '24h': 24 * MS_PER_HOUR,
    '7d': 7 * 24 * MS_PER_HOUR,
    '30d': 30 * 24 * MS_PER_HOUR,
}

# ============================================================================
# Environment defaults
# ============================================================================
DEFAULT_DEVICE_TYPES = [
    'computer',
    'cucina a induzione',
    'dispositivo generico',
    'forno microonde',
    'lampada da tavolo',
    'luce a soffitto',
    'split',
    'stampante',
]


@dataclass
class TrackerConfig:
    """Runtime configuration for a :class:`DeviceTracker`."""
    data_dir: Optional[str] = None
    low_threshold: float = DEFAULT_LOW_THRESHOLD
    medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD
    noise_floor: float = NOISE_FLOOR_WATTS
    trend_threshold: float = TREND_THRESHOLD_WATTS
    history_limit: int = EVENT_HISTORY_LIMIT
    export_history_limit: int = EXPORT_HISTORY_LIMIT
    timezone: Optional[str] = None  # IANA name for time-of-day scoring; None = local time
    appliances_csv: Optional[str] = None
    appliances_url: Optional[str] = None

    def __post_init__(self):
        if self.low_threshold >= self.medium_threshold:
            raise ValueError(
                f"low_threshold ({self.low_threshold}) must be below "
                f"medium_threshold ({self.medium_threshold})"
            )
        if self.history_limit <= 0 or self.export_history_limit <= 0:
            raise ValueError("history limits must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            'data_dir': self.data_dir,
            'low_threshold': self.low_threshold,
            'medium_threshold': self.medium_threshold,
            'noise_floor': self.noise_floor,
            'trend_threshold': self.trend_threshold,
            'history_limit': self.history_limit,
            'export_history_limit': self.export_history_limit,
            'timezone': self.timezone,
            'appliances_csv': self.appliances_csv,
            'appliances_url': self.appliances_url,
        }

    def to_json(self, file_path: str):
        """Save config to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrackerConfig':
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_json(cls, file_path: str) -> 'TrackerConfig':
        """Load config from JSON file."""
        with open(file_path, 'r') as f:
            return cls.from_dict(json.load(f))
