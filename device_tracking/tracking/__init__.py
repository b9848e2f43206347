"""
Tracking module.

Persistence backends, the association/device-event store, removal strategies
and the consumption-episode collection.
"""
from .persistence import (
    CollectionStore,
    JsonCollectionStore,
    InMemoryCollectionStore,
)
from .removal import (
    RemovalRequest,
    RemovalReport,
    match_by_event_id,
    match_by_device_window,
    match_by_timestamp,
    match_by_association_id,
    find_removal_matches,
)
from .store import TrackingStore
from .episodes import merge_episodes, EpisodeStore

__all__ = [
    'CollectionStore',
    'JsonCollectionStore',
    'InMemoryCollectionStore',
    'RemovalRequest',
    'RemovalReport',
    'match_by_event_id',
    'match_by_device_window',
    'match_by_timestamp',
    'match_by_association_id',
    'find_removal_matches',
    'TrackingStore',
    'merge_episodes',
    'EpisodeStore',
]
