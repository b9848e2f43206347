"""
Hardcoded per-device-type electrical profiles.

Fallback tables used when the appliance reference has no entry for a type.
Type names are the ones used by the dashboard's device registry (Italian
names for the built-in types, English names from the appliance catalogue).
"""
from typing import Dict, Optional, Tuple

from ..core.models import ConsumptionPattern

# ============================================================================
# Timing and standby tables (lower-cased type names)
# ============================================================================

TURN_ON_DURATIONS_MS = {
    'computer': 30000,
    'split': 60000,
    'forno microonde': 5000,
    'microwave oven': 5000,
    'cucina a induzione': 10000,
    'lampada da tavolo': 1000,
    'luce a soffitto': 1000,
    'stampante': 15000,
    'printer (inkjet)': 10000,
    'printer (laser)': 15000,
    'television': 3000,
    'refrigerator': 5000,
    'dishwasher': 10000,
    'clothes washer': 15000,
    'clothes dryer': 20000,
}
DEFAULT_TURN_ON_DURATION_MS = 10000

STABILIZATION_DURATIONS_MS = {
    'computer': 3600000,             # 1 hour
    'split': 7200000,                # 2 hours
    'forno microonde': 300000,       # 5 minutes
    'microwave oven': 300000,
    'cucina a induzione': 1800000,   # 30 minutes
    'lampada da tavolo': 14400000,   # 4 hours
    'luce a soffitto': 18000000,     # 5 hours
    'stampante': 600000,             # 10 minutes
    'printer (inkjet)': 600000,
    'printer (laser)': 600000,
    'television': 10800000,          # 3 hours
    'refrigerator': 86400000,        # continuous
    'dishwasher': 3600000,
    'clothes washer': 2700000,       # 45 minutes
    'clothes dryer': 3600000,
}
DEFAULT_STABILIZATION_DURATION_MS = 1800000

TURN_OFF_DURATIONS_MS = {
    'computer': 10000,
    'split': 30000,
    'forno microonde': 2000,
    'microwave oven': 2000,
    'cucina a induzione': 5000,
    'lampada da tavolo': 1000,
    'luce a soffitto': 1000,
    'stampante': 10000,
    'printer (inkjet)': 5000,
    'printer (laser)': 10000,
    'television': 2000,
    'refrigerator': 5000,
    'dishwasher': 5000,
    'clothes washer': 10000,
    'clothes dryer': 15000,
}
DEFAULT_TURN_OFF_DURATION_MS = 5000

STANDBY_POWERS = {
    'computer': 5,
    'split': 10,
    'forno microonde': 2,
    'microwave oven': 2,
    'cucina a induzione': 0,
    'lampada da tavolo': 0,
    'luce a soffitto': 0,
    'stampante': 5,
    'printer (inkjet)': 3,
    'printer (laser)': 5,
    'television': 1,
    'refrigerator': 0,
    'dishwasher': 1,
    'clothes washer': 1,
    'clothes dryer': 1,
}
DEFAULT_STANDBY_POWER = 2

POWER_FACTOR_RANGES = {
    'computer': (0.6, 0.9),
    'split': (0.8, 0.95),
    'forno microonde': (0.9, 1.0),
    'microwave oven': (0.9, 1.0),
    'cucina a induzione': (0.95, 1.0),
    'lampada da tavolo': (0.5, 1.0),
    'luce a soffitto': (0.5, 1.0),
    'stampante': (0.6, 0.8),
    'printer (inkjet)': (0.6, 0.8),
    'printer (laser)': (0.6, 0.8),
    'television': (0.7, 0.9),
    'refrigerator': (0.8, 0.95),
    'dishwasher': (0.8, 0.95),
    'clothes washer': (0.8, 0.95),
    'clothes dryer': (0.8, 0.95),
}
DEFAULT_POWER_FACTOR_RANGE = (0.7, 0.9)

# ============================================================================
# Default consumption patterns (exact type names)
# ============================================================================

DEFAULT_PATTERNS = {
    'computer': dict(turn_on_duration=30000, stabilization_duration=3600000, turn_off_duration=10000,
                     peak_power=300, average_power=150, standby_power=5, power_factor_range=(0.6, 0.9)),
    'split': dict(turn_on_duration=60000, stabilization_duration=7200000, turn_off_duration=30000,
                  peak_power=2000, average_power=1500, standby_power=10, power_factor_range=(0.8, 0.95)),
    'forno microonde': dict(turn_on_duration=5000, stabilization_duration=300000, turn_off_duration=2000,
                            peak_power=1200, average_power=1000, standby_power=2, power_factor_range=(0.9, 1.0)),
    'cucina a induzione': dict(turn_on_duration=10000, stabilization_duration=1800000, turn_off_duration=5000,
                               peak_power=3000, average_power=2000, standby_power=0, power_factor_range=(0.95, 1.0)),
    'lampada da tavolo': dict(turn_on_duration=1000, stabilization_duration=14400000, turn_off_duration=1000,
                              peak_power=60, average_power=50, standby_power=0, power_factor_range=(0.5, 1.0)),
    'luce a soffitto': dict(turn_on_duration=1000, stabilization_duration=18000000, turn_off_duration=1000,
                            peak_power=100, average_power=80, standby_power=0, power_factor_range=(0.5, 1.0)),
    'stampante': dict(turn_on_duration=15000, stabilization_duration=600000, turn_off_duration=10000,
                      peak_power=200, average_power=50, standby_power=5, power_factor_range=(0.6, 0.8)),
}
FALLBACK_PATTERN_TYPE = 'computer'

REFERENCE_AVERAGE_FACTOR = 0.8      # average power = 80% of the reference wattage

# ============================================================================
# Power ranges per type (peak / valley deltas, watts)
# ============================================================================

TYPE_POWER_RANGES = {
    'computer': {'peak_range': (100, 500), 'valley_range': (50, 300), 'typical_delta': 200},
    'split': {'peak_range': (800, 3000), 'valley_range': (800, 3000), 'typical_delta': 1500},
    'forno microonde': {'peak_range': (800, 1500), 'valley_range': (800, 1500), 'typical_delta': 1000},
    'cucina a induzione': {'peak_range': (1000, 3500), 'valley_range': (1000, 3500), 'typical_delta': 2000},
    'lampada da tavolo': {'peak_range': (5, 100), 'valley_range': (5, 100), 'typical_delta': 25},
    'luce a soffitto': {'peak_range': (10, 200), 'valley_range': (10, 200), 'typical_delta': 50},
    'stampante': {'peak_range': (20, 300), 'valley_range': (5, 50), 'typical_delta': 100},
}

# ============================================================================
# Usage hours per type
# ============================================================================

TIME_PATTERNS = {
    'computer': {'work_hours': (8, 22)},
    'split': {},
    'forno microonde': {'meal_times': [7, 9, 12, 14, 19, 21]},
    'cucina a induzione': {'meal_times': [7, 9, 12, 14, 19, 21]},
    'lampada da tavolo': {'evening_hours': (18, 23)},
    'luce a soffitto': {},
}


def typical_turn_on_duration(device_type: str) -> int:
    return TURN_ON_DURATIONS_MS.get(device_type.lower(), DEFAULT_TURN_ON_DURATION_MS)


def typical_stabilization_duration(device_type: str) -> int:
    return STABILIZATION_DURATIONS_MS.get(device_type.lower(), DEFAULT_STABILIZATION_DURATION_MS)


def typical_turn_off_duration(device_type: str) -> int:
    return TURN_OFF_DURATIONS_MS.get(device_type.lower(), DEFAULT_TURN_OFF_DURATION_MS)


def typical_standby_power(device_type: str) -> float:
    return STANDBY_POWERS.get(device_type.lower(), DEFAULT_STANDBY_POWER)


def typical_power_factor_range(device_type: str) -> Tuple[float, float]:
    return POWER_FACTOR_RANGES.get(device_type.lower(), DEFAULT_POWER_FACTOR_RANGE)


def default_pattern(device_type: str) -> ConsumptionPattern:
    """Hardcoded pattern for a type; unknown types get the computer pattern."""
    values = DEFAULT_PATTERNS.get(device_type, DEFAULT_PATTERNS[FALLBACK_PATTERN_TYPE])
    return ConsumptionPattern(**values)


def pattern_from_reference(device_type: str, expected_watts: float) -> ConsumptionPattern:
    """Pattern seeded from a reference wattage, timings from the tables above."""
    return ConsumptionPattern(
        turn_on_duration=typical_turn_on_duration(device_type),
        stabilization_duration=typical_stabilization_duration(device_type),
        turn_off_duration=typical_turn_off_duration(device_type),
        peak_power=float(expected_watts),
        average_power=float(round(expected_watts * REFERENCE_AVERAGE_FACTOR)),
        standby_power=typical_standby_power(device_type),
        power_factor_range=typical_power_factor_range(device_type),
    )


def type_power_range(device_type: str, event_type: str) -> Optional[Tuple[float, float]]:
    """Peak range for peak/start events, valley range otherwise; None for unknown types."""
    entry = TYPE_POWER_RANGES.get(device_type)
    if entry is None:
        return None
    return entry['peak_range'] if event_type in ('peak', 'start') else entry['valley_range']


def usage_windows(device_type: str) -> Dict[str, object]:
    return TIME_PATTERNS.get(device_type, {})