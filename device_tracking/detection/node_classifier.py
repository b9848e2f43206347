"""
Peak/valley node classification.

Each sample is labelled ``normal``, ``peak`` or ``valley`` from its
neighbours ``(prev, current, next)``.  The first and last samples of a
sequence have no complete window and are always ``normal``.

The streaming classifier keeps a two-sample window per phase.  A new sample
is labelled provisionally (it is the last one, so ``normal``) and the
previous sample, which now has a successor, gets its final label.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.models import Sample, PowerEvent

logger = logging.getLogger(__name__)

NORMAL = 'normal'
PEAK = 'peak'
VALLEY = 'valley'


def classify_node_type(prev: float, current: float, nxt: float) -> str:
    """Classify an interior sample from its neighbours."""
    if current == prev:
        return NORMAL if nxt >= current else PEAK
    if current < prev:
        return NORMAL if nxt <= current else VALLEY
    return NORMAL if nxt >= current else PEAK


def classify_series(powers: Sequence[float]) -> List[str]:
    """
    Label every sample of a complete sequence.

    Args:
        powers: Power values in time order

    Returns:
        One label per sample; edges are always ``normal``.
    """
    values = np.asarray(powers, dtype=float)
    labels = [NORMAL] * len(values)
    for i in range(1, len(values) - 1):
        labels[i] = classify_node_type(values[i - 1], values[i], values[i + 1])
    return labels


def classify_dataframe(data: pd.DataFrame, phase_col: str) -> pd.Series:
    """Label a DataFrame column (rows must already be in time order)."""
    return pd.Series(classify_series(data[phase_col].to_numpy()), index=data.index, name=f'{phase_col}_node')


@dataclass
class ClassifiedNode:
    """A sample with its current label. ``final`` is False while provisional."""
    sample: Sample
    node_type: str
    final: bool
    prev_power: Optional[float] = None

    def to_power_event(self) -> Optional[PowerEvent]:
        """Build the event for a finalized peak/valley, else None."""
        if not self.final or self.node_type == NORMAL or self.prev_power is None:
            return None
        return PowerEvent(
            type=self.node_type,
            phase=self.sample.phase,
            power_delta=self.sample.power - self.prev_power,
            current_power=self.sample.power,
            timestamp=self.sample.timestamp,
            readings=dict(self.sample.raw_readings),
        )


class NodeClassifier:
    """Streaming peak/valley classifier with a one-sample lag, one window per phase."""

    def __init__(self):
        self._windows: Dict[str, List[Sample]] = {}

    def push(self, sample: Sample) -> List[ClassifiedNode]:
        """
        Add a sample and return the labels it produced.

        Returns:
            The re-evaluated previous sample (final) when one exists, followed
            by the new sample (provisional ``normal``).
        """
        window = self._windows.setdefault(sample.phase, [])
        results: List[ClassifiedNode] = []

        if len(window) == 2:
            prev, current = window
            node_type = classify_node_type(prev.power, current.power, sample.power)
            results.append(ClassifiedNode(current, node_type, final=True, prev_power=prev.power))
        elif len(window) == 1:
            # First sample of the phase: it stays an edge
            results.append(ClassifiedNode(window[0], NORMAL, final=True))

        window.append(sample)
        if len(window) > 2:
            window.pop(0)

        prev_power = window[0].power if len(window) == 2 else None
        results.append(ClassifiedNode(sample, NORMAL, final=False, prev_power=prev_power))
        return results

    def reset(self, phase: Optional[str] = None):
        """Forget the window of one phase, or of every phase."""
        if phase is None:
            self._windows.clear()
        else:
            self._windows.pop(phase, None)
