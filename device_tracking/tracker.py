"""
DeviceTracker: one object owning every tracking component.

    tracker = DeviceTracker.from_config(TrackerConfig(data_dir='data'))
    suggestions = tracker.analyze_event(event)
    tracker.record_device_association(event, suggestions[0].device.id)

Components (each injectable for tests):
    - store:      collection backend (JSON files by default)
    - reference:  appliance wattage table
    - patterns:   per-device consumption patterns
    - tracking:   associations, device events, history
    - engine:     device inference
    - episodes:   threshold episode collection
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .analytics.consumption import get_consumption_analysis
from .core.clock import Clock, now_ms
from .core.config import TrackerConfig
from .core.models import (
    DeviceAssociation,
    DeviceEvent,
    EnvironmentConfig,
    PowerEvent,
    Sample,
    Suggestion,
    ThresholdEpisode,
)
from .core.paths import APPLIANCES_CSV
from .detection.node_classifier import NodeClassifier
from .detection.threshold_segmenter import ThresholdSegmenter, segment_samples
from .identification.ai import AIAnalyzer
from .identification.engine import DeviceInferenceEngine
from .identification.patterns import ConsumptionPatternModel
from .sources.appliances import ApplianceReference
from .sources.environment import load_environment_config, save_environment_config
from .tracking.episodes import EpisodeStore
from .tracking.persistence import CollectionStore, JsonCollectionStore
from .tracking.removal import RemovalReport
from .tracking.store import TrackingStore

logger = logging.getLogger(__name__)


class DeviceTracker:
    """Facade over detection, identification, tracking and analytics."""

    def __init__(
        self,
        store: CollectionStore,
        config: Optional[TrackerConfig] = None,
        reference: Optional[ApplianceReference] = None,
        ai: Optional[AIAnalyzer] = None,
        clock: Clock = now_ms,
    ):
        self.config = config or TrackerConfig()
        self.store = store
        self.clock = clock
        self.reference = reference if reference is not None else ApplianceReference()

        self.patterns = ConsumptionPatternModel(reference=self.reference, device_lookup=self._lookup_device)
        self.tracking = TrackingStore(store, patterns=self.patterns, config=self.config, clock=clock)
        self.engine = DeviceInferenceEngine(
            environment=self.get_environment_config,
            patterns=self.patterns,
            history=self.tracking,
            reference=self.reference,
            ai=ai,
            timezone=self.config.timezone,
        )
        self.episodes = EpisodeStore(store)
        self.classifier = NodeClassifier()

    @classmethod
    def from_config(cls, config: Optional[TrackerConfig] = None, **kwargs) -> 'DeviceTracker':
        """Tracker on JSON files under ``config.data_dir`` with the configured appliance source."""
        config = config or TrackerConfig()
        store = JsonCollectionStore(Path(config.data_dir) if config.data_dir else None)
        if 'reference' not in kwargs:
            csv_path = config.appliances_csv
            if csv_path is None and config.data_dir is None:
                csv_path = APPLIANCES_CSV
            kwargs['reference'] = ApplianceReference(csv_path=csv_path, url=config.appliances_url)
        return cls(store, config=config, **kwargs)

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def get_environment_config(self) -> Optional[EnvironmentConfig]:
        return load_environment_config(self.store)

    def save_environment_config(self, environment: EnvironmentConfig):
        save_environment_config(self.store, environment)

    def _lookup_device(self, device_id: str):
        environment = self.get_environment_config()
        return environment.get_device(device_id) if environment is not None else None

    def refresh_appliances(self) -> int:
        """Reload the appliance reference (after device types change)."""
        count = self.reference.refresh()
        logger.info(f"Appliance reference refreshed: {count} entries")
        return count

    # ------------------------------------------------------------------
    # Inference and ingestion
    # ------------------------------------------------------------------

    def analyze_event(self, event) -> List[Suggestion]:
        return self.engine.analyze_event(event)

    def ingest_sample(self, sample: Sample) -> List[Tuple[PowerEvent, List[Suggestion]]]:
        """
        Feed one live sample through the node classifier.

        A peak or valley finalized by this sample is added to the event
        history and analysed.

        Returns:
            [(event, suggestions)] for each finalized peak/valley (0 or 1 items)
        """
        results = []
        for node in self.classifier.push(sample):
            event = node.to_power_event()
            if event is None:
                continue
            suggestions = self.analyze_event(event)
            self.tracking.add_event_to_history(event)
            results.append((event, suggestions))
        return results

    def train_ai_model(self) -> bool:
        return self.engine.train()

    # ------------------------------------------------------------------
    # Recording and removal
    # ------------------------------------------------------------------

    def record_device_event(self, device_id: str, start_event, end_event=None,
                            event_type: str = 'usage', source: str = 'manual',
                            confidence: float = 1.0) -> DeviceEvent:
        return self.tracking.record_device_event(
            device_id, start_event, end_event, event_type=event_type, source=source, confidence=confidence,
        )

    def record_device_association(self, event, device_id: str, confidence: float = 1.0,
                                  source: str = 'manual') -> DeviceAssociation:
        return self.tracking.record_device_association(event, device_id, confidence=confidence, source=source)

    def add_event_to_history(self, event):
        self.tracking.add_event_to_history(event)

    def remove_device_association(self, event, device_id: str) -> RemovalReport:
        return self.tracking.remove_device_association(event, device_id)

    def remove_all_event_associations(self, event) -> RemovalReport:
        return self.tracking.remove_all_event_associations(event)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_associations(self, device_id: Optional[str] = None) -> List[DeviceAssociation]:
        return self.tracking.get_associations(device_id=device_id)

    def get_device_events(self, device_id: Optional[str] = None) -> List[DeviceEvent]:
        return self.tracking.get_device_events(device_id=device_id)

    def get_tracking_stats(self) -> Dict[str, Any]:
        return self.tracking.get_tracking_stats()

    def get_consumption_analysis(self, time_range: Optional[str] = None) -> Dict[str, Any]:
        environment = self.get_environment_config()
        devices = environment.devices if environment is not None else []
        return get_consumption_analysis(self.tracking.device_events, devices, time_range, now=self.clock())

    def export_tracking_data(self) -> str:
        return self.tracking.export_tracking_data()

    def import_tracking_data(self, json_data: str) -> bool:
        return self.tracking.import_tracking_data(json_data)

    def clear_tracking_data(self) -> bool:
        self.classifier.reset()
        return self.tracking.clear_tracking_data()

    # ------------------------------------------------------------------
    # Threshold episodes
    # ------------------------------------------------------------------

    def _segmenter(self) -> ThresholdSegmenter:
        stored = self.episodes.load()
        next_id = max((e.id for e in stored), default=0) + 1
        return ThresholdSegmenter(
            low_threshold=self.config.low_threshold,
            medium_threshold=self.config.medium_threshold,
            noise_floor=self.config.noise_floor,
            trend_threshold=self.config.trend_threshold,
            first_id=next_id,
        )

    def segment_samples(self, samples: Iterable[Sample], end_timestamp: Optional[int] = None,
                        show_progress: bool = False, total: Optional[int] = None) -> List[ThresholdEpisode]:
        """Segment a sample stream; still-open episodes close at ``end_timestamp`` (default: now)."""
        close_at = end_timestamp if end_timestamp is not None else self.clock()
        return segment_samples(
            samples, segmenter=self._segmenter(), end_timestamp=close_at,
            show_progress=show_progress, total=total,
        )

    def save_episodes(self, episodes: List[ThresholdEpisode]) -> Tuple[int, int]:
        return self.episodes.save(episodes)

    def get_episodes(self) -> List[ThresholdEpisode]:
        return self.episodes.load()

    def clear_episodes(self):
        self.episodes.clear()

    def __repr__(self) -> str:
        return f"DeviceTracker(store={self.store!r}, tracking={self.tracking!r}, reference={self.reference!r})"
