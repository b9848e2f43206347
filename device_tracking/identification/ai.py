"""
Hook for a learned device classifier.

No model ships with the package.  :class:`NullAIAnalyzer` is the default and
never suggests anything; a real analyzer can be passed to the engine later.
"""
import logging
from typing import List, Sequence

from ..core.models import DeviceInfo, LearningRecord, PowerEvent, Suggestion
from .config import AI_MIN_TRAINING_RECORDS

logger = logging.getLogger(__name__)


class AIAnalyzer:
    """Interface for learned analyzers."""

    def analyze(self, event: PowerEvent, candidates: Sequence[DeviceInfo]) -> List[Suggestion]:
        raise NotImplementedError

    def train(self, learning_data: Sequence[LearningRecord]) -> bool:
        raise NotImplementedError


class NullAIAnalyzer(AIAnalyzer):
    """No-op analyzer: no suggestions, training only checks the data volume."""

    def analyze(self, event: PowerEvent, candidates: Sequence[DeviceInfo]) -> List[Suggestion]:
        return []

    def train(self, learning_data: Sequence[LearningRecord]) -> bool:
        if len(learning_data) < AI_MIN_TRAINING_RECORDS:
            logger.info(
                f"Insufficient data for training: {len(learning_data)} records, "
                f"need at least {AI_MIN_TRAINING_RECORDS}"
            )
            return False
        logger.info(f"No model configured; {len(learning_data)} learning records available")
        return False
