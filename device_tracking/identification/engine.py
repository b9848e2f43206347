"""
Device inference engine.

Scores every registered device on the event's phase with independent
signals, pools the candidates and keeps the best five:

    pattern_enhanced - event shape vs the device's consumption pattern
    local            - power ratio + appliance type + time of day + recent activity
    pattern          - devices previously associated with similar events
    ai               - optional learned analyzer (no-op by default)
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.models import DeviceInfo, EnvironmentConfig, PowerEvent, Suggestion
from ..sources.appliances import ApplianceReference
from . import config as cfg
from .ai import AIAnalyzer, NullAIAnalyzer
from .patterns import ConsumptionPatternModel
from .scoring import (
    PATTERN_UNKNOWN,
    classify_pattern_type,
    device_type_confidence,
    find_historical_matches,
    match_consumption_pattern,
    power_ratio_confidence,
    recent_activity_confidence,
    time_based_confidence,
)

logger = logging.getLogger(__name__)


def consolidate_suggestions(suggestions: Sequence[Suggestion], limit: int = cfg.MAX_SUGGESTIONS) -> List[Suggestion]:
    """
    Merge suggestions per device and rank them.

    The merged confidence is the maximum, reasoning lines are concatenated
    and contributing algorithms are listed once each in arrival order.
    Ties keep their arrival order.
    """
    merged: Dict[str, Suggestion] = {}
    for suggestion in suggestions:
        device_id = suggestion.device.id
        existing = merged.get(device_id)
        if existing is None:
            merged[device_id] = Suggestion(
                device=suggestion.device,
                confidence=suggestion.confidence,
                reasoning=list(suggestion.reasoning),
                algorithm=suggestion.algorithm,
                algorithms=[suggestion.algorithm],
                pattern_type=suggestion.pattern_type,
            )
            continue

        existing.confidence = max(existing.confidence, suggestion.confidence)
        existing.reasoning.extend(suggestion.reasoning)
        if suggestion.algorithm not in existing.algorithms:
            existing.algorithms.append(suggestion.algorithm)
        if existing.pattern_type is None:
            existing.pattern_type = suggestion.pattern_type

    ranked = sorted(merged.values(), key=lambda s: s.confidence, reverse=True)
    return ranked[:limit]


class DeviceInferenceEngine:
    """
    Ranks candidate devices for detected power events.

    Args:
        environment: Callable returning the current EnvironmentConfig (or None)
        patterns: Per-device consumption patterns
        history: Object exposing ``associations`` and ``event_history``
        reference: Appliance wattage table
        ai: Learned analyzer; defaults to the no-op one
        timezone: Zone for time-of-day scoring, None for local time
    """

    def __init__(
        self,
        environment: Callable[[], Optional[EnvironmentConfig]],
        patterns: ConsumptionPatternModel,
        history: Any,
        reference: Optional[ApplianceReference] = None,
        ai: Optional[AIAnalyzer] = None,
        timezone: Optional[str] = None,
    ):
        self.environment = environment
        self.patterns = patterns
        self.history = history
        self.reference = reference
        self.ai = ai or NullAIAnalyzer()
        self.timezone = timezone

    def analyze_event(self, event) -> List[Suggestion]:
        """
        Suggest the devices most likely to have caused ``event``.

        Args:
            event: PowerEvent or its dict form

        Returns:
            Up to five suggestions, highest confidence first; [] on invalid
            input or when no devices are registered on the phase.
        """
        try:
            event = PowerEvent.coerce(event)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring invalid event: {e}")
            return []

        environment = self.environment()
        if environment is None or not environment.devices:
            logger.debug("No environment configuration, no suggestions")
            return []

        candidates = environment.devices_on_phase(event.phase)
        if not candidates:
            return []

        suggestions: List[Suggestion] = []
        suggestions.extend(self.pattern_analysis(event, candidates))
        suggestions.extend(self.local_analysis(event, candidates))
        suggestions.extend(self.historical_analysis(event, candidates))
        suggestions.extend(self.ai.analyze(event, candidates))

        ranked = consolidate_suggestions(suggestions)
        logger.debug(
            f"Event {event.type} {event.power_delta:+.0f}W on phase {event.phase}: "
            f"{len(suggestions)} raw suggestions, {len(ranked)} ranked"
        )
        return ranked

    def pattern_analysis(self, event: PowerEvent, candidates: Sequence[DeviceInfo]) -> List[Suggestion]:
        pattern_type = classify_pattern_type(event)
        if pattern_type == PATTERN_UNKNOWN:
            return []

        suggestions = []
        for device in candidates:
            confidence = match_consumption_pattern(event, self.patterns.get(device), pattern_type)
            if confidence > cfg.PATTERN_MIN_CONFIDENCE:
                suggestions.append(Suggestion(
                    device=device,
                    confidence=confidence,
                    reasoning=[f"Consumption pattern match: {pattern_type} ({confidence:.2f})"],
                    algorithm=cfg.ALGORITHM_PATTERN_ENHANCED,
                    pattern_type=pattern_type,
                ))
        return suggestions

    def local_analysis(self, event: PowerEvent, candidates: Sequence[DeviceInfo]) -> List[Suggestion]:
        history = list(self.history.event_history)
        suggestions = []
        for device in candidates:
            signals = [
                power_ratio_confidence(device, event),
                device_type_confidence(device.type, event, self.reference),
                time_based_confidence(device, event, self.timezone),
                recent_activity_confidence(event, history),
            ]
            confidence = sum(score for score, _ in signals)
            if confidence > cfg.LOCAL_MIN_CONFIDENCE:
                suggestions.append(Suggestion(
                    device=device,
                    confidence=min(confidence, cfg.MAX_CONFIDENCE),
                    reasoning=[reason for _, reason in signals if reason],
                    algorithm=cfg.ALGORITHM_LOCAL,
                ))
        return suggestions

    def historical_analysis(self, event: PowerEvent, candidates: Sequence[DeviceInfo]) -> List[Suggestion]:
        by_id = {device.id: device for device in candidates}
        suggestions = []
        for match in find_historical_matches(event, self.history.associations):
            device = by_id.get(match['device_id'])
            if device is None:
                continue
            suggestions.append(Suggestion(
                device=device,
                confidence=match['confidence'],
                reasoning=[f"Historical pattern match ({match['occurrences']} similar events)"],
                algorithm=cfg.ALGORITHM_PATTERN,
            ))
        return suggestions

    def train(self) -> bool:
        return self.ai.train(getattr(self.history, 'learning_data', []))
