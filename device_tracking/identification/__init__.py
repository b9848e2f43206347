"""
Device identification module.

Consumption-pattern model, per-type profiles, scoring signals and the
inference engine that ranks candidate devices for a detected event.
"""
from .patterns import ConsumptionPatternModel
from .profiles import default_pattern, pattern_from_reference, type_power_range
from .scoring import (
    classify_pattern_type,
    match_consumption_pattern,
    power_ratio_confidence,
    device_type_confidence,
    time_based_confidence,
    recent_activity_confidence,
    find_historical_matches,
)
from .ai import AIAnalyzer, NullAIAnalyzer
from .engine import consolidate_suggestions, DeviceInferenceEngine

__all__ = [
    'ConsumptionPatternModel',
    'default_pattern',
    'pattern_from_reference',
    'type_power_range',
    'classify_pattern_type',
    'match_consumption_pattern',
    'power_ratio_confidence',
    'device_type_confidence',
    'time_based_confidence',
    'recent_activity_confidence',
    'find_historical_matches',
    'AIAnalyzer',
    'NullAIAnalyzer',
    'consolidate_suggestions',
    'DeviceInferenceEngine',
]
