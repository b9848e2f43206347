"""
Association removal strategies.

A removal request describes the detected event the caller wants to detach
devices from.  Four strategies are tried in order and the first one that
matches anything wins:

    1. event_id       - records linked to the event by id
    2. device_window  - same device, same phase, within 30 s
    3. timestamp      - same phase and event type, within 5 s
    4. association_id - the event id is the id of the record itself

Each strategy is a pure function ``(records, request) -> [index]`` and works
on both :class:`DeviceAssociation` and :class:`DeviceEvent` records.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.config import REMOVAL_DEVICE_WINDOW_MS, REMOVAL_TIMESTAMP_TOLERANCE_MS
from ..core.models import DeviceAssociation, DeviceEvent, PowerEvent

logger = logging.getLogger(__name__)

Record = Union[DeviceAssociation, DeviceEvent]

STRATEGY_EVENT_ID = 'event_id'
STRATEGY_DEVICE_WINDOW = 'device_window'
STRATEGY_TIMESTAMP = 'timestamp'
STRATEGY_ASSOCIATION_ID = 'association_id'


@dataclass
class RemovalRequest:
    """What to detach: the event's identity, plus an optional device filter."""
    phase: str
    timestamp: int
    type: Optional[str] = None
    event_id: Optional[str] = None
    device_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: PowerEvent, device_id: Optional[str] = None) -> 'RemovalRequest':
        return cls(
            phase=event.phase,
            timestamp=event.timestamp,
            type=event.type,
            event_id=event.id,
            device_id=str(device_id) if device_id is not None else None,
        )


@dataclass
class RemovalReport:
    strategy: Optional[str] = None
    associations_removed: int = 0
    learning_records_removed: int = 0
    device_events_removed: int = 0

    @property
    def removed(self) -> bool:
        return (self.associations_removed + self.device_events_removed) > 0

    def to_dict(self) -> Dict[str, object]:
        return {
            'strategy': self.strategy,
            'associations_removed': self.associations_removed,
            'learning_records_removed': self.learning_records_removed,
            'device_events_removed': self.device_events_removed,
        }


# ============================================================================
# Record accessors
# ============================================================================

def _timestamp(record: Record) -> int:
    return record.start_time if isinstance(record, DeviceEvent) else record.timestamp


def _event_type(record: Record) -> Optional[str]:
    return record.start_event_type if isinstance(record, DeviceEvent) else record.type


def _device_filter(record: Record, request: RemovalRequest) -> bool:
    return request.device_id is None or record.device_id == request.device_id


# ============================================================================
# Strategies
# ============================================================================

def match_by_event_id(records: Sequence[Record], request: RemovalRequest) -> List[int]:
    if request.event_id is None:
        return []
    return [
        i for i, r in enumerate(records)
        if r.event_id == request.event_id and _device_filter(r, request)
    ]


def match_by_device_window(records: Sequence[Record], request: RemovalRequest) -> List[int]:
    if request.device_id is None:
        return []
    return [
        i for i, r in enumerate(records)
        if r.device_id == request.device_id
        and r.phase == request.phase
        and abs(_timestamp(r) - request.timestamp) <= REMOVAL_DEVICE_WINDOW_MS
    ]


def match_by_timestamp(records: Sequence[Record], request: RemovalRequest) -> List[int]:
    return [
        i for i, r in enumerate(records)
        if r.phase == request.phase
        and _event_type(r) == request.type
        and abs(_timestamp(r) - request.timestamp) <= REMOVAL_TIMESTAMP_TOLERANCE_MS
        and _device_filter(r, request)
    ]


def match_by_association_id(records: Sequence[Record], request: RemovalRequest) -> List[int]:
    if request.event_id is None:
        return []
    return [
        i for i, r in enumerate(records)
        if r.id == request.event_id and _device_filter(r, request)
    ]


STRATEGIES: List[Tuple[str, Callable[[Sequence[Record], RemovalRequest], List[int]]]] = [
    (STRATEGY_EVENT_ID, match_by_event_id),
    (STRATEGY_DEVICE_WINDOW, match_by_device_window),
    (STRATEGY_TIMESTAMP, match_by_timestamp),
    (STRATEGY_ASSOCIATION_ID, match_by_association_id),
]

_STRATEGY_BY_NAME = dict(STRATEGIES)


def find_removal_matches(
    records: Sequence[Record],
    request: RemovalRequest,
) -> Tuple[Optional[str], List[int]]:
    """
    Run the strategies in order until one matches.

    Returns:
        (strategy_name, indices); (None, []) when nothing matched.
    """
    for name, strategy in STRATEGIES:
        matches = strategy(records, request)
        if matches:
            logger.debug(f"Removal strategy '{name}' matched {len(matches)} record(s)")
            return name, matches
    return None, []


def apply_strategy(name: str, records: Sequence[Record], request: RemovalRequest) -> List[int]:
    """Run one named strategy."""
    return _STRATEGY_BY_NAME[name](records, request)


def drop_indices(records: List, indices: Sequence[int]) -> List:
    """Return ``records`` without the given positions."""
    skip = set(indices)
    return [r for i, r in enumerate(records) if i not in skip]
