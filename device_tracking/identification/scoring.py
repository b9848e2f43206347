"""
Scoring signals for device identification.

Each function scores one candidate device against one event and returns
``(score, reasoning)``; ``reasoning`` is None when the signal contributed
nothing.  The engine sums or pools these signals.
"""
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.clock import local_time
from ..core.models import ConsumptionPattern, DeviceAssociation, DeviceInfo, PowerEvent
from ..sources.appliances import ApplianceReference
from . import config as cfg
from .profiles import type_power_range, usage_windows

Score = Tuple[float, Optional[str]]

PATTERN_TURN_ON = 'turn_on'
PATTERN_TURN_OFF = 'turn_off'
PATTERN_STABILIZATION = 'stabilization'
PATTERN_UNKNOWN = 'unknown'


# ============================================================================
# Pattern shape
# ============================================================================

def classify_pattern_type(event: PowerEvent) -> str:
    """turn_on / turn_off / stabilization / unknown from the delta and current power."""
    if event.power_delta > cfg.TURN_ON_MIN_DELTA:
        return PATTERN_TURN_ON
    if event.power_delta < cfg.TURN_OFF_MAX_DELTA:
        return PATTERN_TURN_OFF
    if abs(event.power_delta) < cfg.STABLE_MAX_DELTA and event.current_power > cfg.STABLE_MIN_POWER:
        return PATTERN_STABILIZATION
    return PATTERN_UNKNOWN


def _banded(value: float, low: float, high: float,
            wide_low: float, wide_high: float,
            match: float, wide: float) -> float:
    if low <= value <= high:
        return match
    if low * wide_low <= value <= high * wide_high:
        return wide
    return 0.0


def match_consumption_pattern(event: PowerEvent, pattern: ConsumptionPattern, pattern_type: str) -> float:
    """Confidence that ``event`` fits the device's pattern for the given shape."""
    if pattern_type in (PATTERN_TURN_ON, PATTERN_TURN_OFF):
        return _banded(
            abs(event.power_delta),
            pattern.average_power * cfg.SWITCH_RANGE_LOW_FACTOR,
            pattern.peak_power * cfg.SWITCH_RANGE_HIGH_FACTOR,
            cfg.SWITCH_WIDE_LOW_FACTOR, cfg.SWITCH_WIDE_HIGH_FACTOR,
            cfg.SWITCH_MATCH_CONFIDENCE, cfg.SWITCH_WIDE_CONFIDENCE,
        )
    if pattern_type == PATTERN_STABILIZATION:
        return _banded(
            event.current_power,
            pattern.average_power * cfg.STABLE_RANGE_LOW_FACTOR,
            pattern.average_power * cfg.STABLE_RANGE_HIGH_FACTOR,
            cfg.STABLE_WIDE_LOW_FACTOR, cfg.STABLE_WIDE_HIGH_FACTOR,
            cfg.STABLE_MATCH_CONFIDENCE, cfg.STABLE_WIDE_CONFIDENCE,
        )
    return 0.0


# ============================================================================
# Local algorithm signals
# ============================================================================

def expected_power(device: DeviceInfo, event: PowerEvent) -> float:
    return device.peak_power if event.type in ('peak', 'start') else device.average_power


def power_ratio_confidence(device: DeviceInfo, event: PowerEvent) -> Score:
    observed = abs(event.power_delta)
    expected = expected_power(device, event)
    if observed <= 0 or expected <= 0:
        return 0.0, None

    ratio = min(observed, expected) / max(observed, expected)
    if ratio > cfg.POWER_RATIO_STRONG:
        return cfg.POWER_RATIO_STRONG_SCORE, f"Power match: {observed:.1f}W vs expected {expected:g}W"
    if ratio > cfg.POWER_RATIO_PARTIAL:
        return cfg.POWER_RATIO_PARTIAL_SCORE, f"Partial power match: {observed:.1f}W vs expected {expected:g}W"
    return 0.0, None


def reference_confidence(expected: float, observed: float, match_type: str) -> Score:
    """Closeness of the observed delta to a reference wattage."""
    tolerance = expected * cfg.REFERENCE_TOLERANCE
    difference = abs(observed - expected)
    detail = f"({expected:g}W expected, {observed:g}W observed)"

    if difference <= tolerance * 0.5:
        return cfg.REFERENCE_CLOSE_SCORE, f"{match_type} match from appliance reference {detail}"
    if difference <= tolerance:
        return cfg.REFERENCE_TOLERANCE_SCORE, f"{match_type} match from appliance reference with tolerance {detail}"
    if difference <= tolerance * 2:
        return cfg.REFERENCE_WEAK_SCORE, f"Weak {match_type} match from appliance reference {detail}"
    return 0.0, None


def type_range_confidence(device_type: str, event: PowerEvent) -> Score:
    """Hardcoded per-type power ranges; unknown types score nothing."""
    power_range = type_power_range(device_type, event.type)
    if power_range is None:
        return 0.0, None

    observed = abs(event.power_delta)
    low, high = power_range
    if low <= observed <= high:
        return cfg.TYPE_RANGE_SCORE, f"{device_type} typical power range"
    if low * cfg.TYPE_EXTENDED_LOW_FACTOR <= observed <= high * cfg.TYPE_EXTENDED_HIGH_FACTOR:
        return cfg.TYPE_EXTENDED_SCORE, f"{device_type} extended power range"
    return 0.0, None


def device_type_confidence(
    device_type: str,
    event: PowerEvent,
    reference: Optional[ApplianceReference] = None,
) -> Score:
    """Reference wattage when the type is listed, otherwise the hardcoded ranges."""
    if reference is not None:
        exact = reference.table.get(device_type)
        expected = exact or reference.lookup(device_type)
        if expected:
            match_type = 'exact' if exact else 'similar'
            return reference_confidence(float(expected), abs(event.power_delta), match_type)
    return type_range_confidence(device_type, event)


def time_based_confidence(device: DeviceInfo, event: PowerEvent, timezone: Optional[str] = None) -> Score:
    """Usage-hour bonus for types with a known daily rhythm."""
    windows = usage_windows(device.type)
    if not windows:
        return 0.0, None

    hour = local_time(event.timestamp, timezone).hour
    score = 0.0
    reasons: List[str] = []

    work_hours = windows.get('work_hours')
    if work_hours and work_hours[0] <= hour <= work_hours[1]:
        score += cfg.WORK_HOURS_SCORE
        reasons.append('Work hours usage pattern')

    meal_times = windows.get('meal_times')
    if meal_times and any(abs(hour - meal) <= cfg.MEAL_TIME_TOLERANCE_HOURS for meal in meal_times):
        score += cfg.MEAL_TIME_SCORE
        reasons.append('Meal time usage pattern')

    evening_hours = windows.get('evening_hours')
    if evening_hours and evening_hours[0] <= hour <= evening_hours[1]:
        score += cfg.EVENING_HOURS_SCORE
        reasons.append('Evening usage pattern')

    return score, ('; '.join(reasons) if reasons else None)


def recent_activity_confidence(event: PowerEvent, history: Sequence[PowerEvent]) -> Score:
    """Bonus when a complementary event hit the same phase just before this one."""
    complementary = 'valley' if event.type == 'peak' else 'peak'
    window_start = event.timestamp - cfg.CORRELATION_WINDOW_MS

    for past in history:
        if (past.phase == event.phase
                and past.type == complementary
                and window_start < past.timestamp < event.timestamp):
            seconds = (event.timestamp - past.timestamp) / 1000
            return cfg.CORRELATION_SCORE, f"Complementary {complementary} event {seconds:.1f}s ago"
    return 0.0, None


# ============================================================================
# Historical associations
# ============================================================================

def find_historical_matches(event: PowerEvent, associations: Sequence[DeviceAssociation]) -> List[Dict[str, object]]:
    """
    Devices previously associated with similar events.

    Returns:
        [{'device_id', 'occurrences', 'confidence'}] sorted by confidence, highest first
    """
    matches: Dict[str, Dict[str, object]] = {}
    for association in associations:
        if (association.phase != event.phase
                or association.type != event.type
                or abs(association.power_delta - event.power_delta) > cfg.HISTORY_POWER_TOLERANCE):
            continue

        match = matches.get(association.device_id)
        if match is None:
            matches[association.device_id] = {
                'device_id': association.device_id,
                'occurrences': 1,
                'confidence': cfg.HISTORY_BASE_CONFIDENCE,
            }
        else:
            match['occurrences'] += 1
            match['confidence'] = min(
                round(match['confidence'] + cfg.HISTORY_STEP_CONFIDENCE, 10), cfg.HISTORY_MAX_CONFIDENCE
            )

    return sorted(matches.values(), key=lambda m: m['confidence'], reverse=True)
