"""
Data structures shared by detection, identification and tracking.

Every persisted record serialises to snake_case keys through ``to_dict`` and
is rebuilt with ``from_dict``, which also accepts the camelCase keys written
by the legacy dashboard.  Construction validates required fields and raises
``ValueError``, so malformed input is rejected at the boundary instead of
deep inside the scoring code.
"""
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import (
    PHASES,
    EVENT_TYPES,
    DEVICE_EVENT_TYPES,
    DEVICE_EVENT_SOURCES,
    ASSOCIATION_SOURCES,
    EPISODE_TYPES,
    PATTERN_BUFFER_SIZE,
    DEFAULT_DEVICE_TYPES,
)

logger = logging.getLogger(__name__)

_MISSING = object()


# ============================================================================
# Field helpers
# ============================================================================

def _pick(data: Dict[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    """Return the first present key (snake_case first, then legacy camelCase)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    if default is _MISSING:
        raise ValueError(f"Missing required field '{keys[0]}'")
    return default


def _to_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Field '{name}' must be numeric, got {value!r}")
    if math.isnan(result):
        raise ValueError(f"Field '{name}' must not be NaN")
    return result


def _to_ms(value: Any, name: str) -> int:
    """Epoch milliseconds from an int/float or an ISO timestamp string."""
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            pass
        try:
            ts = pd.Timestamp(value)
        except ValueError:
            raise ValueError(f"Field '{name}' is not a timestamp: {value!r}")
        if ts.tzinfo is None:
            ts = ts.tz_localize('UTC')
        return int(ts.value // 1_000_000)
    return int(_to_float(value, name))


def _optional_ms(value: Any, name: str) -> Optional[int]:
    return None if value is None else _to_ms(value, name)


def _optional_float(value: Any, name: str) -> Optional[float]:
    return None if value is None else _to_float(value, name)


def _check_phase(phase: Any) -> str:
    if phase not in PHASES:
        raise ValueError(f"Invalid phase {phase!r}, expected one of {PHASES}")
    return phase


def _readings(value: Any) -> Dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Readings must be a mapping, got {type(value).__name__}")
    return dict(value)


# ============================================================================
# Samples and events
# ============================================================================

@dataclass(frozen=True)
class Sample:
    """A single per-phase power reading."""
    phase: str
    timestamp: int              # epoch ms
    power: float                # watts
    raw_readings: Dict[str, float] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        _check_phase(self.phase)


@dataclass
class PowerEvent:
    """A momentary transition detected in the sample stream."""
    type: str                   # peak | valley | start
    phase: str
    power_delta: float          # signed watts
    timestamp: int              # epoch ms
    current_power: float = 0.0
    readings: Dict[str, float] = field(default_factory=dict)
    id: Optional[str] = None    # upstream event id, when the stream carries one

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Invalid event type {self.type!r}, expected one of {EVENT_TYPES}")
        _check_phase(self.phase)
        self.power_delta = _to_float(self.power_delta, 'power_delta')
        self.current_power = _to_float(self.current_power, 'current_power')
        self.timestamp = _to_ms(self.timestamp, 'timestamp')
        self.readings = _readings(self.readings)
        if self.id is not None:
            self.id = str(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PowerEvent':
        if not isinstance(data, dict):
            raise ValueError(f"Event must be a mapping, got {type(data).__name__}")
        return cls(
            type=_pick(data, 'type'),
            phase=_pick(data, 'phase'),
            power_delta=_pick(data, 'power_delta', 'powerDelta'),
            timestamp=_pick(data, 'timestamp'),
            current_power=_pick(data, 'current_power', 'currentPower', default=0.0),
            readings=_pick(data, 'readings', default={}),
            id=_pick(data, 'id', 'event_id', 'eventId', default=None),
        )

    @classmethod
    def coerce(cls, value: Any) -> 'PowerEvent':
        """Accept either a PowerEvent or its dict form."""
        return value if isinstance(value, cls) else cls.from_dict(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'phase': self.phase,
            'power_delta': self.power_delta,
            'current_power': self.current_power,
            'timestamp': self.timestamp,
            'readings': dict(self.readings),
        }


# ============================================================================
# Environment
# ============================================================================

@dataclass
class DeviceInfo:
    """A registered appliance."""
    id: str
    type: str
    phase: str
    peak_power: float = 0.0
    average_power: float = 0.0
    name: Optional[str] = None
    room: Optional[str] = None

    def __post_init__(self):
        self.id = str(self.id)
        if not self.type:
            raise ValueError(f"Device {self.id} has no type")
        _check_phase(self.phase)
        self.peak_power = _to_float(self.peak_power, 'peak_power')
        self.average_power = _to_float(self.average_power, 'average_power')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeviceInfo':
        return cls(
            id=_pick(data, 'id'),
            type=_pick(data, 'type'),
            phase=_pick(data, 'phase'),
            peak_power=_pick(data, 'peak_power', 'peakPower', default=0.0),
            average_power=_pick(data, 'average_power', 'averagePower', default=0.0),
            name=_pick(data, 'name', default=None),
            room=_pick(data, 'room', default=None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'phase': self.phase,
            'peak_power': self.peak_power,
            'average_power': self.average_power,
            'name': self.name,
            'room': self.room,
        }


@dataclass
class EnvironmentConfig:
    """The candidate-device universe: devices, rooms and known device types."""
    devices: List[DeviceInfo] = field(default_factory=list)
    rooms: List[Any] = field(default_factory=list)
    device_types: List[str] = field(default_factory=lambda: list(DEFAULT_DEVICE_TYPES))

    def devices_on_phase(self, phase: str) -> List[DeviceInfo]:
        return [d for d in self.devices if d.phase == phase]

    def get_device(self, device_id: str) -> Optional[DeviceInfo]:
        device_id = str(device_id)
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnvironmentConfig':
        """Build the environment; invalid device entries are skipped."""
        devices = []
        for raw in data.get('devices') or []:
            try:
                devices.append(DeviceInfo.from_dict(raw))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping invalid device entry {raw!r}: {e}")
        return cls(
            devices=devices,
            rooms=list(data.get('rooms') or []),
            device_types=list(_pick(data, 'device_types', 'deviceTypes', default=DEFAULT_DEVICE_TYPES)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'devices': [d.to_dict() for d in self.devices],
            'rooms': list(self.rooms),
            'device_types': list(self.device_types),
        }


# ============================================================================
# Consumption patterns
# ============================================================================

def _ring(values=()) -> Deque[float]:
    return deque(values, maxlen=PATTERN_BUFFER_SIZE)


@dataclass
class ConsumptionPattern:
    """Expected electrical behaviour of one device, refined by observations."""
    turn_on_duration: int           # ms
    stabilization_duration: int     # ms
    turn_off_duration: int          # ms
    peak_power: float
    average_power: float
    standby_power: float
    power_factor_range: Tuple[float, float]
    observed_durations: Deque[float] = field(default_factory=_ring)
    observed_average_powers: Deque[float] = field(default_factory=_ring)
    average_duration: Optional[float] = None
    learned_average_power: Optional[float] = None

    def __post_init__(self):
        # Re-wrap so buffers built from lists keep the bound
        self.observed_durations = _ring(self.observed_durations)
        self.observed_average_powers = _ring(self.observed_average_powers)
        self.power_factor_range = tuple(self.power_factor_range)

    def observe(self, duration: Optional[float], average_power: Optional[float]):
        """Append one observation to the ring buffers and refresh the means."""
        if duration and duration > 0:
            self.observed_durations.append(float(duration))
            self.average_duration = float(np.mean(self.observed_durations))
        if average_power:
            self.observed_average_powers.append(float(average_power))
            self.learned_average_power = float(np.mean(self.observed_average_powers))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConsumptionPattern':
        return cls(
            turn_on_duration=int(_pick(data, 'turn_on_duration', 'turnOnDuration')),
            stabilization_duration=int(_pick(data, 'stabilization_duration', 'stabilizationDuration')),
            turn_off_duration=int(_pick(data, 'turn_off_duration', 'turnOffDuration')),
            peak_power=_to_float(_pick(data, 'peak_power', 'peakPower'), 'peak_power'),
            average_power=_to_float(_pick(data, 'average_power', 'averagePower'), 'average_power'),
            standby_power=_to_float(_pick(data, 'standby_power', 'standbyPower', default=0), 'standby_power'),
            power_factor_range=tuple(_pick(data, 'power_factor_range', 'powerFactorRange', default=(0.7, 0.9))),
            observed_durations=_ring(_pick(data, 'observed_durations', 'observedDurations', default=[])),
            observed_average_powers=_ring(_pick(data, 'observed_average_powers', 'observedAveragePowers', default=[])),
            average_duration=_optional_float(_pick(data, 'average_duration', 'averageDuration', default=None), 'average_duration'),
            learned_average_power=_optional_float(
                _pick(data, 'learned_average_power', 'learnedAveragePower', default=None), 'learned_average_power'
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'turn_on_duration': self.turn_on_duration,
            'stabilization_duration': self.stabilization_duration,
            'turn_off_duration': self.turn_off_duration,
            'peak_power': self.peak_power,
            'average_power': self.average_power,
            'standby_power': self.standby_power,
            'power_factor_range': list(self.power_factor_range),
            'observed_durations': list(self.observed_durations),
            'observed_average_powers': list(self.observed_average_powers),
            'average_duration': self.average_duration,
            'learned_average_power': self.learned_average_power,
        }


# ============================================================================
# Associations and device events
# ============================================================================

@dataclass
class DeviceAssociation:
    """A device confirmed (or inferred) as the cause of one detected event."""
    id: str
    device_id: str
    timestamp: int
    phase: str
    type: str
    power_delta: float
    confidence: float = 1.0
    source: str = 'manual'
    readings: Dict[str, float] = field(default_factory=dict)
    event_id: Optional[str] = None

    def __post_init__(self):
        self.id = str(self.id)
        self.device_id = str(self.device_id)
        self.timestamp = _to_ms(self.timestamp, 'timestamp')
        _check_phase(self.phase)
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Invalid association type {self.type!r}")
        self.power_delta = _to_float(self.power_delta, 'power_delta')
        self.confidence = _to_float(self.confidence, 'confidence')
        if self.source not in ASSOCIATION_SOURCES:
            raise ValueError(f"Invalid association source {self.source!r}")
        self.readings = _readings(self.readings)
        if self.event_id is not None:
            self.event_id = str(self.event_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeviceAssociation':
        return cls(
            id=_pick(data, 'id'),
            device_id=_pick(data, 'device_id', 'deviceId'),
            timestamp=_pick(data, 'timestamp'),
            phase=_pick(data, 'phase'),
            type=_pick(data, 'type'),
            power_delta=_pick(data, 'power_delta', 'powerDelta'),
            confidence=_pick(data, 'confidence', default=1.0),
            source=_pick(data, 'source', default='manual'),
            readings=_pick(data, 'readings', default={}),
            event_id=_pick(data, 'event_id', 'eventId', default=None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'device_id': self.device_id,
            'timestamp': self.timestamp,
            'phase': self.phase,
            'type': self.type,
            'power_delta': self.power_delta,
            'confidence': self.confidence,
            'source': self.source,
            'readings': dict(self.readings),
        }


@dataclass
class LearningRecord:
    """An association plus the feature vector kept for future model training."""
    association: DeviceAssociation
    features: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LearningRecord':
        return cls(
            association=DeviceAssociation.from_dict(data),
            features=dict(data.get('features') or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = self.association.to_dict()
        result['features'] = dict(self.features)
        return result


@dataclass
class PatternAnalysis:
    turn_on_duration: Optional[int] = None
    stabilization_detected: bool = False
    power_efficiency: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PatternAnalysis':
        data = data or {}
        return cls(
            turn_on_duration=_optional_ms(_pick(data, 'turn_on_duration', 'turnOnDuration', default=None), 'turn_on_duration'),
            stabilization_detected=bool(_pick(data, 'stabilization_detected', 'stabilizationDetected', default=False)),
            power_efficiency=_pick(data, 'power_efficiency', 'powerEfficiency', default=None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'turn_on_duration': self.turn_on_duration,
            'stabilization_detected': self.stabilization_detected,
            'power_efficiency': self.power_efficiency,
        }


@dataclass
class DeviceEvent:
    """A device usage episode with start and (optionally) end transitions."""
    id: str
    device_id: str
    event_type: str
    start_time: int
    phase: str
    start_power_delta: float
    peak_power: float
    average_power: float
    total_consumption: float        # Wh
    end_time: Optional[int] = None
    duration: Optional[int] = None
    end_power_delta: Optional[float] = None
    confidence: float = 1.0
    source: str = 'manual'
    start_readings: Dict[str, float] = field(default_factory=dict)
    end_readings: Optional[Dict[str, float]] = None
    pattern_analysis: PatternAnalysis = field(default_factory=PatternAnalysis)
    event_id: Optional[str] = None
    start_event_type: Optional[str] = None

    def __post_init__(self):
        self.id = str(self.id)
        self.device_id = str(self.device_id)
        if self.event_type not in DEVICE_EVENT_TYPES:
            raise ValueError(f"Invalid device event type {self.event_type!r}")
        if self.source not in DEVICE_EVENT_SOURCES:
            raise ValueError(f"Invalid device event source {self.source!r}")
        _check_phase(self.phase)
        self.start_time = _to_ms(self.start_time, 'start_time')
        self.end_time = _optional_ms(self.end_time, 'end_time')
        self.duration = _optional_ms(self.duration, 'duration')
        if self.start_event_type is not None and self.start_event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid start event type {self.start_event_type!r}")
        if self.event_id is not None:
            self.event_id = str(self.event_id)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeviceEvent':
        return cls(
            id=_pick(data, 'id'),
            device_id=_pick(data, 'device_id', 'deviceId'),
            event_type=_pick(data, 'event_type', 'eventType', default='usage'),
            start_time=_pick(data, 'start_time', 'startTime'),
            end_time=_pick(data, 'end_time', 'endTime', default=None),
            duration=_pick(data, 'duration', default=None),
            phase=_pick(data, 'phase'),
            start_power_delta=_to_float(_pick(data, 'start_power_delta', 'startPowerDelta'), 'start_power_delta'),
            end_power_delta=_optional_float(_pick(data, 'end_power_delta', 'endPowerDelta', default=None), 'end_power_delta'),
            peak_power=_to_float(_pick(data, 'peak_power', 'peakPower', default=0), 'peak_power'),
            average_power=_to_float(_pick(data, 'average_power', 'averagePower', default=0), 'average_power'),
            total_consumption=_to_float(_pick(data, 'total_consumption', 'totalConsumption', default=0), 'total_consumption'),
            confidence=_to_float(_pick(data, 'confidence', default=1.0), 'confidence'),
            source=_pick(data, 'source', default='manual'),
            start_readings=_readings(_pick(data, 'start_readings', 'startReadings', default={})),
            end_readings=_pick(data, 'end_readings', 'endReadings', default=None),
            pattern_analysis=PatternAnalysis.from_dict(_pick(data, 'pattern_analysis', 'patternAnalysis', default=None)),
            event_id=_pick(data, 'event_id', 'eventId', default=None),
            start_event_type=_pick(data, 'start_event_type', 'startEventType', default=None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'device_id': self.device_id,
            'event_type': self.event_type,
            'start_event_type': self.start_event_type,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'phase': self.phase,
            'start_power_delta': self.start_power_delta,
            'end_power_delta': self.end_power_delta,
            'peak_power': self.peak_power,
            'average_power': self.average_power,
            'total_consumption': self.total_consumption,
            'confidence': self.confidence,
            'source': self.source,
            'start_readings': dict(self.start_readings),
            'end_readings': dict(self.end_readings) if self.end_readings is not None else None,
            'pattern_analysis': self.pattern_analysis.to_dict(),
        }


# ============================================================================
# Threshold episodes
# ============================================================================

@dataclass
class ThresholdEpisode:
    """A contiguous above-noise-floor interval on one phase."""
    id: int
    phase: str
    type: str                   # LOW | MEDIUM | HIGH
    start_time: int
    end_time: int
    duration: int
    min_power: float
    max_power: float
    average_power: float
    total_energy: float         # Wh

    def __post_init__(self):
        _check_phase(self.phase)
        if self.type not in EPISODE_TYPES:
            raise ValueError(f"Invalid episode type {self.type!r}")

    @property
    def key(self) -> Tuple[str, int, int]:
        """De-duplication key: identical keys replace each other."""
        return (self.phase, self.start_time, self.end_time)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThresholdEpisode':
        # Legacy files store ISO times and toFixed() strings for the numbers
        return cls(
            id=int(_to_float(_pick(data, 'id'), 'id')),
            phase=_pick(data, 'phase'),
            type=_pick(data, 'type'),
            start_time=_to_ms(_pick(data, 'start_time', 'startTime'), 'start_time'),
            end_time=_to_ms(_pick(data, 'end_time', 'endTime'), 'end_time'),
            duration=int(_to_float(_pick(data, 'duration'), 'duration')),
            min_power=_to_float(_pick(data, 'min_power', 'minPower'), 'min_power'),
            max_power=_to_float(_pick(data, 'max_power', 'maxPower'), 'max_power'),
            average_power=_to_float(_pick(data, 'average_power', 'averagePower'), 'average_power'),
            total_energy=_to_float(_pick(data, 'total_energy', 'totalEnergy'), 'total_energy'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'phase': self.phase,
            'type': self.type,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'min_power': self.min_power,
            'max_power': self.max_power,
            'average_power': self.average_power,
            'total_energy': self.total_energy,
        }


# ============================================================================
# Suggestions
# ============================================================================

@dataclass
class Suggestion:
    """A scored candidate device for one event. Never persisted."""
    device: DeviceInfo
    confidence: float
    reasoning: List[str] = field(default_factory=list)
    algorithm: str = 'local'
    algorithms: List[str] = field(default_factory=list)
    pattern_type: Optional[str] = None

    def __post_init__(self):
        if not self.algorithms:
            self.algorithms = [self.algorithm]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device': self.device.to_dict(),
            'confidence': self.confidence,
            'reasoning': list(self.reasoning),
            'algorithm': self.algorithm,
            'algorithms': list(self.algorithms),
            'pattern_type': self.pattern_type,
        }
