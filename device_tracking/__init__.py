"""
Device tracking for a three-phase power meter.

Detects power transitions per phase, suggests which registered appliance
caused them, and keeps the associations, usage events and learned
consumption patterns that confirm those suggestions.
"""
from .core import (
    TrackerConfig,
    setup_logging,
    Sample,
    PowerEvent,
    DeviceInfo,
    EnvironmentConfig,
    ConsumptionPattern,
    DeviceAssociation,
    DeviceEvent,
    ThresholdEpisode,
    Suggestion,
)
from .tracking import JsonCollectionStore, InMemoryCollectionStore, TrackingStore
from .identification import DeviceInferenceEngine, NullAIAnalyzer
from .sources import ApplianceReference
from .tracker import DeviceTracker

__version__ = '1.0.0'

__all__ = [
    'TrackerConfig',
    'setup_logging',
    'Sample',
    'PowerEvent',
    'DeviceInfo',
    'EnvironmentConfig',
    'ConsumptionPattern',
    'DeviceAssociation',
    'DeviceEvent',
    'ThresholdEpisode',
    'Suggestion',
    'JsonCollectionStore',
    'InMemoryCollectionStore',
    'TrackingStore',
    'DeviceInferenceEngine',
    'NullAIAnalyzer',
    'ApplianceReference',
    'DeviceTracker',
]
