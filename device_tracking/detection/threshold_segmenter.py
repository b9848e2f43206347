"""
Threshold-based consumption episode segmentation.

An episode opens when a phase rises above the noise floor and closes when it
falls back to (or below) it.  Closed episodes are classified by the highest
power reached: LOW, MEDIUM or HIGH.
"""
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pandas as pd
from tqdm import tqdm

from ..core.config import (
    DEFAULT_LOW_THRESHOLD,
    DEFAULT_MEDIUM_THRESHOLD,
    NOISE_FLOOR_WATTS,
    TREND_THRESHOLD_WATTS,
    MS_PER_HOUR,
)
from ..core.logging_setup import PhaseLogger
from ..core.models import Sample, ThresholdEpisode

logger = logging.getLogger(__name__)


@dataclass
class _OpenEpisode:
    id: int
    phase: str
    start_time: int
    min_power: float
    max_power: float
    total_power: float
    data_points: int
    last_power: float
    trend: str = 'rising'


def classify_episode(max_power: float, low_threshold: float, medium_threshold: float) -> str:
    """Episode type from the peak power reached."""
    if max_power <= low_threshold:
        return 'LOW'
    if max_power <= medium_threshold:
        return 'MEDIUM'
    return 'HIGH'


class ThresholdSegmenter:
    """
    Per-phase episode tracker.

    Usage:
        segmenter = ThresholdSegmenter()
        for sample in samples:
            closed = segmenter.process(sample)
        closed_at_end = segmenter.close_all(last_timestamp)
    """

    def __init__(
        self,
        low_threshold: float = DEFAULT_LOW_THRESHOLD,
        medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
        noise_floor: float = NOISE_FLOOR_WATTS,
        trend_threshold: float = TREND_THRESHOLD_WATTS,
        first_id: int = 1,
    ):
        if low_threshold >= medium_threshold:
            raise ValueError("low_threshold must be below medium_threshold")
        self.low_threshold = low_threshold
        self.medium_threshold = medium_threshold
        self.noise_floor = noise_floor
        self.trend_threshold = trend_threshold
        self._ids = itertools.count(first_id)
        self._open: Dict[str, _OpenEpisode] = {}
        self._loggers: Dict[str, PhaseLogger] = {}

    def _log(self, phase: str) -> PhaseLogger:
        if phase not in self._loggers:
            self._loggers[phase] = PhaseLogger(__name__, phase)
        return self._loggers[phase]

    @property
    def open_phases(self) -> List[str]:
        return sorted(self._open)

    def trend(self, phase: str) -> Optional[str]:
        """Current trend of the open episode on ``phase``, if any."""
        episode = self._open.get(phase)
        return episode.trend if episode else None

    def process(self, sample: Sample) -> Optional[ThresholdEpisode]:
        """Feed one sample; returns the episode it closed, if any."""
        return self.process_power(sample.phase, sample.power, sample.timestamp)

    def process_power(self, phase: str, power: float, timestamp: int) -> Optional[ThresholdEpisode]:
        episode = self._open.get(phase)

        if episode is None:
            if power > self.noise_floor:
                self._open[phase] = _OpenEpisode(
                    id=next(self._ids),
                    phase=phase,
                    start_time=timestamp,
                    min_power=power,
                    max_power=power,
                    total_power=power,
                    data_points=1,
                    last_power=power,
                )
                self._log(phase).debug(f"Opened episode at {timestamp} ({power:.1f}W)")
            return None

        episode.min_power = min(episode.min_power, power)
        episode.max_power = max(episode.max_power, power)
        episode.total_power += power
        episode.data_points += 1

        power_diff = power - episode.last_power
        if abs(power_diff) > self.trend_threshold:
            episode.trend = 'rising' if power_diff > 0 else 'falling'
        episode.last_power = power

        if power <= self.noise_floor:
            return self._close(phase, timestamp)
        return None

    def close_all(self, timestamp: int) -> List[ThresholdEpisode]:
        """Force-close every open episode (end of stream)."""
        closed = [self._close(phase, timestamp) for phase in list(self._open)]
        if closed:
            logger.info(f"Force-closed {len(closed)} open episodes at {timestamp}")
        return closed

    def _close(self, phase: str, timestamp: int) -> ThresholdEpisode:
        episode = self._open.pop(phase)
        duration = timestamp - episode.start_time
        average_power = episode.total_power / episode.data_points
        episode_type = classify_episode(episode.max_power, self.low_threshold, self.medium_threshold)

        closed = ThresholdEpisode(
            id=episode.id,
            phase=phase,
            type=episode_type,
            start_time=episode.start_time,
            end_time=timestamp,
            duration=duration,
            min_power=episode.min_power,
            max_power=episode.max_power,
            average_power=average_power,
            total_energy=average_power * duration / MS_PER_HOUR,
        )
        self._log(phase).debug(
            f"Closed episode {closed.id}: {episode_type}, {duration}ms, max {episode.max_power:.1f}W"
        )
        return closed


def segment_samples(
    samples: Iterable[Sample],
    segmenter: Optional[ThresholdSegmenter] = None,
    end_timestamp: Optional[int] = None,
    show_progress: bool = False,
    total: Optional[int] = None,
) -> List[ThresholdEpisode]:
    """
    Run a whole stream through a segmenter and close what is left open.

    Args:
        samples: Samples in time order (phases interleaved is fine)
        segmenter: Segmenter to use, defaults to one with default thresholds
        end_timestamp: Timestamp for force-closing; defaults to the last sample's
        show_progress: Show tqdm progress bar
        total: Sample count for the progress bar

    Returns:
        Closed episodes in closing order
    """
    segmenter = segmenter or ThresholdSegmenter()
    episodes: List[ThresholdEpisode] = []
    last_timestamp = None

    iterator = tqdm(samples, desc="Segmenting", total=total, leave=False) if show_progress else samples
    for sample in iterator:
        closed = segmenter.process(sample)
        if closed is not None:
            episodes.append(closed)
        last_timestamp = sample.timestamp

    close_at = end_timestamp if end_timestamp is not None else last_timestamp
    if close_at is not None:
        episodes.extend(segmenter.close_all(close_at))

    counts = pd.Series([e.type for e in episodes], dtype=object).value_counts().to_dict()
    logger.info(
        f"Segmentation: {len(episodes)} episodes "
        f"(LOW={counts.get('LOW', 0)}, MEDIUM={counts.get('MEDIUM', 0)}, HIGH={counts.get('HIGH', 0)})"
    )
    return episodes


def episodes_to_dataframe(episodes: List[ThresholdEpisode]) -> pd.DataFrame:
    """Tabular view of episodes, one row each."""
    columns = ['id', 'phase', 'type', 'start_time', 'end_time', 'duration',
               'min_power', 'max_power', 'average_power', 'total_energy']
    return pd.DataFrame([e.to_dict() for e in episodes], columns=columns)
