"""Consumption analytics over recorded device events."""
from .consumption import get_consumption_analysis, analysis_to_dataframe, resolve_cutoff

__all__ = [
    'get_consumption_analysis',
    'analysis_to_dataframe',
    'resolve_cutoff',
]
