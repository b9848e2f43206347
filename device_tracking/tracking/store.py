"""
Association and device-event store.

Holds everything the tracker learns over time:

    - associations:   device <-> detected event links (manual or auto)
    - learning_data:  associations plus extracted features
    - event_history:  raw detected events, most recent last (capped)
    - device_events:  usage episodes with start/stop times and consumption
    - patterns:       per-device consumption patterns

The whole document is written in one atomic persist after every mutation.
"""
import json
import logging
import uuid
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from ..core.clock import Clock, local_time, now_ms, time_of_day
from ..core.config import EXPORT_FORMAT_VERSION, MS_PER_HOUR, PHASES, TrackerConfig
from ..core.models import (
    DeviceAssociation,
    DeviceEvent,
    LearningRecord,
    PatternAnalysis,
    PowerEvent,
)
from ..core.paths import TRACKING_COLLECTION
from ..identification.patterns import ConsumptionPatternModel
from .persistence import CollectionStore
from .removal import (
    RemovalReport,
    RemovalRequest,
    apply_strategy,
    drop_indices,
    find_removal_matches,
)

logger = logging.getLogger(__name__)

TURN_ON_WINDOW_MS = 30000
STABILIZATION_MIN_DURATION_MS = 300000
STABILIZATION_MAX_DELTA_DIFF = 50
POWER_FACTOR_STABILITY = 0.1


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_records(raw: Any, parser: Callable[[Dict], Any], label: str) -> List[Any]:
    """Parse a list of records, dropping (and logging) malformed entries."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.error(f"Expected a list of {label}, got {type(raw).__name__}; ignoring")
        return []
    records = []
    for entry in raw:
        try:
            records.append(parser(entry))
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.error(f"Dropping malformed {label} entry: {e}")
    return records


def _section(data: Dict[str, Any], snake: str, camel: str) -> Any:
    return data[snake] if snake in data else data.get(camel)


# ============================================================================
# Device event calculations
# ============================================================================

def calculate_peak_power(start: PowerEvent, end: Optional[PowerEvent]) -> float:
    if end is None:
        return abs(start.power_delta)
    return max(abs(start.power_delta), abs(end.power_delta))


def calculate_average_power(start: PowerEvent, end: Optional[PowerEvent]) -> float:
    if end is None:
        return abs(start.power_delta)
    return (abs(start.power_delta) + abs(end.power_delta)) / 2


def calculate_total_consumption(start: PowerEvent, end: Optional[PowerEvent]) -> float:
    """Energy in Wh; 0 while the event is still open."""
    if end is None:
        return 0.0
    hours = (end.timestamp - start.timestamp) / MS_PER_HOUR
    return calculate_average_power(start, end) * hours


def detect_stabilization(start: PowerEvent, end: Optional[PowerEvent]) -> bool:
    if end is None:
        return False
    duration = end.timestamp - start.timestamp
    difference = abs(abs(start.power_delta) - abs(end.power_delta))
    return duration > STABILIZATION_MIN_DURATION_MS and difference < STABILIZATION_MAX_DELTA_DIFF


def calculate_power_efficiency(start: PowerEvent, end: Optional[PowerEvent]) -> Optional[Dict[str, Any]]:
    """Power-factor summary from the ``pf_<phase>`` readings of both ends."""
    if end is None or not start.readings or not end.readings:
        return None
    start_pf = start.readings.get(f"pf_{start.phase.lower()}") or 0
    end_pf = end.readings.get(f"pf_{end.phase.lower()}") or start_pf
    return {
        'average_power_factor': (start_pf + end_pf) / 2,
        'power_factor_stable': abs(start_pf - end_pf) < POWER_FACTOR_STABILITY,
    }


class TrackingStore:
    """
    Persistent store of associations, device events and learned patterns.

    Args:
        store: Collection backend
        patterns: Pattern model updated by ``record_device_event``
        config: Tracker configuration (history caps, timezone)
        clock: Callable returning epoch milliseconds
    """

    def __init__(
        self,
        store: CollectionStore,
        patterns: Optional[ConsumptionPatternModel] = None,
        config: Optional[TrackerConfig] = None,
        clock: Clock = now_ms,
        collection: str = TRACKING_COLLECTION,
    ):
        self.store = store
        self.patterns = patterns if patterns is not None else ConsumptionPatternModel()
        self.config = config or TrackerConfig()
        self.clock = clock
        self.collection = collection

        self.associations: List[DeviceAssociation] = []
        self.learning_data: List[LearningRecord] = []
        self.event_history: List[PowerEvent] = []
        self.device_events: List[DeviceEvent] = []

        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self):
        """Load the tracking document; malformed data falls back to empty defaults."""
        data = self.store.load(self.collection)
        if data is None:
            return
        if not isinstance(data, dict):
            logger.error(f"Tracking document has unexpected shape ({type(data).__name__}), starting empty")
            return

        self.associations = _parse_records(
            _section(data, 'associations', 'deviceAssociations'), DeviceAssociation.from_dict, 'association')
        self.learning_data = _parse_records(
            _section(data, 'learning_data', 'learningData'), LearningRecord.from_dict, 'learning record')
        self.event_history = _parse_records(
            _section(data, 'event_history', 'eventHistory'), PowerEvent.from_dict, 'history event')
        self._cap_history()
        self.device_events = _parse_records(
            _section(data, 'device_events', 'deviceEvents'), DeviceEvent.from_dict, 'device event')
        self.patterns.load(_section(data, 'consumption_patterns', 'consumptionPatterns') or {})

        logger.info(
            f"Loaded tracking data: {len(self.associations)} associations, "
            f"{len(self.device_events)} device events, {len(self.event_history)} history events"
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            'associations': [a.to_dict() for a in self.associations],
            'learning_data': [r.to_dict() for r in self.learning_data],
            'event_history': [e.to_dict() for e in self.event_history],
            'device_events': [e.to_dict() for e in self.device_events],
            'consumption_patterns': self.patterns.to_dict(),
            'saved_at': self.clock(),
        }

    def save(self):
        self.store.persist(self.collection, self.to_document())

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def add_event_to_history(self, event: PowerEvent):
        """Append a detected event; only the most recent ``history_limit`` are kept."""
        event = PowerEvent.coerce(event)
        self.event_history.append(event)
        self._cap_history()
        self.save()

    def _cap_history(self):
        overflow = len(self.event_history) - self.config.history_limit
        if overflow > 0:
            del self.event_history[:overflow]

    def record_device_event(
        self,
        device_id: str,
        start_event: PowerEvent,
        end_event: Optional[PowerEvent] = None,
        event_type: str = 'usage',
        source: str = 'manual',
        confidence: float = 1.0,
    ) -> DeviceEvent:
        """
        Record a device usage episode and refine the device's pattern.

        Args:
            device_id: Device the episode belongs to
            start_event: Transition that started the episode
            end_event: Transition that ended it; None leaves the episode open
            event_type: usage | standby | peak | manual_start
            source: manual | manual_start | auto
            confidence: Confidence of the attribution

        Returns:
            The stored DeviceEvent

        Raises:
            ValueError: if the end event is on another phase or precedes the start
        """
        start_event = PowerEvent.coerce(start_event)
        end_event = PowerEvent.coerce(end_event) if end_event is not None else None
        if end_event is not None:
            if end_event.phase != start_event.phase:
                raise ValueError(
                    f"End event on phase {end_event.phase} does not match start phase {start_event.phase}")
            if end_event.timestamp < start_event.timestamp:
                raise ValueError(
                    f"End event at {end_event.timestamp} precedes start event at {start_event.timestamp}")
        duration =end_event.timestamp - start_event.timestamp if end_event is not None else None

        device_event = DeviceEvent(
            id=_new_id(),
            device_id=device_id,
            event_type=event_type,
            start_time=start_event.timestamp,
            end_time=end_event.timestamp if end_event is not None else None,
            duration=duration,
            phase=start_event.phase,
            start_power_delta=start_event.power_delta,
            end_power_delta=end_event.power_delta if end_event is not None else None,
            peak_power=calculate_peak_power(start_event, end_event),
            average_power=calculate_average_power(start_event, end_event),
            total_consumption=calculate_total_consumption(start_event, end_event),
            confidence=confidence,
            source=source,
            start_readings=start_event.readings,
            end_readings=end_event.readings if end_event is not None else None,
            pattern_analysis=PatternAnalysis(
                turn_on_duration=min(TURN_ON_WINDOW_MS, duration) if duration is not None else None,
                stabilization_detected=detect_stabilization(start_event, end_event),
                power_efficiency=calculate_power_efficiency(start_event, end_event),
            ),
            event_id=start_event.id,
            start_event_type=start_event.type,
        )

        self.device_events.append(device_event)
        self.patterns.learn(device_event.device_id, device_event.duration, device_event.average_power)
        self.save()

        logger.info(
            f"Recorded {event_type} event for device {device_event.device_id} on phase {device_event.phase}"
            + (f" ({duration / 1000:.0f}s, {device_event.total_consumption:.2f} Wh)" if duration is not None else " (open)")
        )
        return device_event

    def extract_features(self, event: PowerEvent) -> Dict[str, Any]:
        """Feature vector kept alongside a manual association."""
        suffix = event.phase.lower()
        when = local_time(event.timestamp, self.config.timezone)
        day_of_week = int(when.dayofweek)
        return {
            'power_delta': event.power_delta,
            'phase': event.phase,
            'type': event.type,
            'voltage': event.readings.get(f"voltage_{suffix}"),
            'current': event.readings.get(f"current_{suffix}"),
            'power_factor': event.readings.get(f"pf_{suffix}"),
            'hour': int(when.hour),
            'day_of_week': day_of_week,
            'is_weekend': day_of_week >= 5,
            'time_of_day': time_of_day(int(when.hour)),
        }

    def record_device_association(
        self,
        event: PowerEvent,
        device_id: str,
        confidence: float = 1.0,
        source: str = 'manual',
    ) -> DeviceAssociation:
        """Link a device to a detected event and keep a learning record for it."""
        event = PowerEvent.coerce(event)
        association = DeviceAssociation(
            id=_new_id(),
            event_id=event.id,
            device_id=device_id,
            timestamp=event.timestamp,
            phase=event.phase,
            type=event.type,
            power_delta=event.power_delta,
            confidence=confidence,
            source=source,
            readings=event.readings,
        )
        self.associations.append(association)
        self.learning_data.append(LearningRecord(association=association, features=self.extract_features(event)))
        self.save()

        logger.info(
            f"Associated device {association.device_id} with {event.type} on phase {event.phase} "
            f"({event.power_delta:+.0f} W, {source})"
        )
        return association

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_device_association(self, event: PowerEvent, device_id: str) -> RemovalReport:
        """Detach one device from an event (associations, learning records and device events)."""
        request = RemovalRequest.from_event(PowerEvent.coerce(event), device_id)
        return self._remove(request)

    def remove_all_event_associations(self, event: PowerEvent) -> RemovalReport:
        """Detach every device from an event."""
        request = RemovalRequest.from_event(PowerEvent.coerce(event))
        return self._remove(request)

    def _remove(self, request: RemovalRequest) -> RemovalReport:
        strategy, matches = find_removal_matches(self.associations, request)
        if strategy is not None:
            event_matches = apply_strategy(strategy, self.device_events, request)
        else:
            strategy, event_matches = find_removal_matches(self.device_events, request)

        if strategy is None:
            logger.info(
                f"No associations matched {request.type} at {request.timestamp} on phase {request.phase}"
                + (f" for device {request.device_id}" if request.device_id else "")
            )
            return RemovalReport()

        removed_ids = {self.associations[i].id for i in matches}
        learning_before = len(self.learning_data)

        self.associations = drop_indices(self.associations, matches)
        self.learning_data = [r for r in self.learning_data if r.association.id not in removed_ids]
        self.device_events = drop_indices(self.device_events, event_matches)

        report = RemovalReport(
            strategy=strategy,
            associations_removed=len(matches),
            learning_records_removed=learning_before - len(self.learning_data),
            device_events_removed=len(event_matches),
        )
        self.save()
        logger.info(
            f"Removed {report.associations_removed} association(s) and "
            f"{report.device_events_removed} device event(s) using '{strategy}' strategy"
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_associations(self, device_id: Optional[str] = None, phase: Optional[str] = None) -> List[DeviceAssociation]:
        return [
            a for a in self.associations
            if (device_id is None or a.device_id == str(device_id))
            and (phase is None or a.phase == phase)
        ]

    def get_device_events(self, device_id: Optional[str] = None) -> List[DeviceEvent]:
        return [e for e in self.device_events if device_id is None or e.device_id == str(device_id)]

    def get_learning_data(self) -> List[LearningRecord]:
        return list(self.learning_data)

    def get_tracking_stats(self) -> Dict[str, Any]:
        """Association totals and breakdowns by device, phase and type."""
        sources = Counter(a.source for a in self.associations)
        phase_breakdown = {phase: 0 for phase in PHASES}
        type_breakdown = {'peak': 0, 'valley': 0}
        for a in self.associations:
            phase_breakdown[a.phase] += 1
            type_breakdown[a.type] = type_breakdown.get(a.type, 0) + 1

        return {
            'total_associations': len(self.associations),
            'manual_associations': sources.get('manual', 0),
            'auto_associations': sources.get('auto', 0),
            'device_breakdown': dict(Counter(a.device_id for a in self.associations)),
            'phase_breakdown': phase_breakdown,
            'type_breakdown': type_breakdown,
            'total_device_events': len(self.device_events),
            'open_device_events': sum(1 for e in self.device_events if e.is_open),
            'learning_records': len(self.learning_data),
            'history_events': len(self.event_history),
        }

    # ------------------------------------------------------------------
    # Export / import / reset
    # ------------------------------------------------------------------

    def export_tracking_data(self) -> str:
        """JSON backup; only the most recent history events are included."""
        history = self.event_history[-self.config.export_history_limit:]
        export = {
            'associations': [a.to_dict() for a in self.associations],
            'learning_data': [r.to_dict() for r in self.learning_data],
            'event_history': [e.to_dict() for e in history],
            'device_events': [e.to_dict() for e in self.device_events],
            'exported_at': pd.Timestamp(self.clock(), unit='ms', tz='UTC').isoformat(),
            'version': EXPORT_FORMAT_VERSION,
        }
        return json.dumps(export, indent=2)

    def import_tracking_data(self, json_data: str) -> bool:
        """
        Restore a backup produced by ``export_tracking_data`` or the legacy dashboard.

        Sections missing from the backup are left untouched.  Returns False
        (and changes nothing) when the backup cannot be parsed.
        """
        try:
            data = json.loads(json_data)
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")

            sections = {}
            raw = _section(data, 'associations', 'deviceAssociations')
            if raw is not None:
                sections['associations'] = [DeviceAssociation.from_dict(r) for r in raw]
            raw = _section(data, 'learning_data', 'learningData')
            if raw is not None:
                sections['learning_data'] = [LearningRecord.from_dict(r) for r in raw]
            raw = _section(data, 'event_history', 'eventHistory')
            if raw is not None:
                sections['event_history'] = [PowerEvent.from_dict(r) for r in raw]
            raw = _section(data, 'device_events', 'deviceEvents')
            if raw is not None:
                sections['device_events'] = [DeviceEvent.from_dict(r) for r in raw]
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.error(f"Error importing tracking data: {e}")
            return False

        for name, records in sections.items():
            setattr(self, name, records)
        self._cap_history()
        self.save()
        logger.info(f"Imported tracking data sections: {sorted(sections)}")
        return True

    def clear_tracking_data(self) -> bool:
        """Drop all learned data; the environment configuration is kept."""
        self.associations = []
        self.learning_data = []
        self.event_history = []
        self.device_events = []
        self.patterns.clear()
        self.save()
        logger.info("All tracking data cleared")
        return True

    def __repr__(self) -> str:
        return (
            f"TrackingStore(associations={len(self.associations)}, "
            f"device_events={len(self.device_events)}, history={len(self.event_history)})"
        )
