"""
Consumption episode collection.

Episodes are appended to their own collection.  A newly computed episode
whose ``(phase, start_time, end_time)`` matches a stored one replaces it in
place instead of being added twice.
"""
import logging
from typing import List, Tuple

from ..core.models import ThresholdEpisode
from ..core.paths import EPISODES_COLLECTION
from .persistence import CollectionStore

logger = logging.getLogger(__name__)


def merge_episodes(
    existing: List[ThresholdEpisode],
    new: List[ThresholdEpisode],
) -> Tuple[List[ThresholdEpisode], int]:
    """
    Merge new episodes into an existing list.

    Returns:
        (merged, replaced_count); ``existing`` is not modified.
    """
    merged = list(existing)
    index_by_key = {episode.key: i for i, episode in enumerate(merged)}
    replaced = 0

    for episode in new:
        idx = index_by_key.get(episode.key)
        if idx is not None:
            logger.debug(f"Replaced episode {merged[idx].id} with {episode.id} for phase {episode.phase}")
            merged[idx] = episode
            replaced += 1
        else:
            index_by_key[episode.key] = len(merged)
            merged.append(episode)

    return merged, replaced


class EpisodeStore:
    """Episode collection backed by a :class:`CollectionStore`."""

    def __init__(self, store: CollectionStore, collection: str = EPISODES_COLLECTION):
        self.store = store
        self.collection = collection

    def load(self) -> List[ThresholdEpisode]:
        raw = self.store.load(self.collection)
        if raw is None:
            return []
        if isinstance(raw, dict):
            raw = raw.get('events', [])
        if not isinstance(raw, list):
            logger.error(f"Episode collection has unexpected shape ({type(raw).__name__}), starting fresh")
            return []

        episodes = []
        for entry in raw:
            try:
                episodes.append(ThresholdEpisode.from_dict(entry))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed episode {entry!r}: {e}")
        return episodes

    def save(self, new_episodes: List[ThresholdEpisode]) -> Tuple[int, int]:
        """
        Merge and persist episodes.

        Returns:
            (total_stored, replaced_count)
        """
        merged, replaced = merge_episodes(self.load(), new_episodes)
        self.store.persist(self.collection, [e.to_dict() for e in merged])
        logger.info(
            f"Saved {len(new_episodes)} episodes ({replaced} replaced), {len(merged)} stored"
        )
        return len(merged), replaced

    def clear(self) -> None:
        self.store.persist(self.collection, [])
        logger.info("Cleared all consumption episodes")
