"""Core infrastructure for device tracking."""

# Config
from .config import (
    TrackerConfig,
    PHASES,
    EVENT_TYPES,
    NODE_TYPES,
    EPISODE_TYPES,
    TIME_RANGES_MS,
    MS_PER_HOUR,
)

# Paths
from .paths import (
    StoragePaths,
    DATA_DIR,
    LOGS_DIRECTORY,
    APPLIANCES_CSV,
    READINGS_CSV,
    TRACKING_COLLECTION,
    ENVIRONMENT_COLLECTION,
    EPISODES_COLLECTION,
)

# Logging
from .logging_setup import (
    setup_logging,
    PhaseLogger,
)

# Records
from .models import (
    Sample,
    PowerEvent,
    DeviceInfo,
    EnvironmentConfig,
    ConsumptionPattern,
    DeviceAssociation,
    LearningRecord,
    PatternAnalysis,
    DeviceEvent,
    ThresholdEpisode,
    Suggestion,
)

__all__ = [
    # Config
    'TrackerConfig',
    'PHASES',
    'EVENT_TYPES',
    'NODE_TYPES',
    'EPISODE_TYPES',
    'TIME_RANGES_MS',
    'MS_PER_HOUR',
    # Paths
    'StoragePaths',
    'DATA_DIR',
    'LOGS_DIRECTORY',
    'APPLIANCES_CSV',
    'READINGS_CSV',
    'TRACKING_COLLECTION',
    'ENVIRONMENT_COLLECTION',
    'EPISODES_COLLECTION',
    # Logging
    'setup_logging',
    'PhaseLogger',
    # Records
    'Sample',
    'PowerEvent',
    'DeviceInfo',
    'EnvironmentConfig',
    'ConsumptionPattern',
    'DeviceAssociation',
    'LearningRecord',
    'PatternAnalysis',
    'DeviceEvent',
    'ThresholdEpisode',
    'Suggestion',
]
