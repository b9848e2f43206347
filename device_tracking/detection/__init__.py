"""
Event detection module.

Classifies per-phase samples as peak/valley/normal and segments the stream
into threshold episodes.
"""
from .node_classifier import (
    classify_node_type,
    classify_series,
    classify_dataframe,
    ClassifiedNode,
    NodeClassifier,
)
from .threshold_segmenter import (
    classify_episode,
    ThresholdSegmenter,
    segment_samples,
    episodes_to_dataframe,
)

__all__ = [
    'classify_node_type',
    'classify_series',
    'classify_dataframe',
    'ClassifiedNode',
    'NodeClassifier',
    'classify_episode',
    'ThresholdSegmenter',
    'segment_samples',
    'episodes_to_dataframe',
]
