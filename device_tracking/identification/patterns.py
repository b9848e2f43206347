"""
Per-device consumption patterns.

A pattern is created the first time a device is looked up: seeded from the
appliance reference when the device type is listed there, otherwise from the
hardcoded defaults.  Recorded device events refine it through
:meth:`ConsumptionPatternModel.learn`.
"""
import logging
from typing import Callable, Dict, Optional

from ..core.models import ConsumptionPattern, DeviceInfo
from ..sources.appliances import ApplianceReference
from .profiles import default_pattern, pattern_from_reference

logger = logging.getLogger(__name__)


class ConsumptionPatternModel:
    """Pattern cache keyed by device id."""

    def __init__(
        self,
        reference: Optional[ApplianceReference] = None,
        device_lookup: Optional[Callable[[str], Optional[DeviceInfo]]] = None,
    ):
        self.reference = reference
        self.device_lookup = device_lookup
        self.patterns: Dict[str, ConsumptionPattern] = {}

    def initial_pattern(self, device_type: Optional[str]) -> ConsumptionPattern:
        if device_type and self.reference is not None:
            expected = self.reference.lookup(device_type)
            if expected:
                return pattern_from_reference(device_type, expected)
        return default_pattern(device_type or '')

    def get(self, device: DeviceInfo) -> ConsumptionPattern:
        pattern = self.patterns.get(device.id)
        if pattern is None:
            pattern = self.initial_pattern(device.type)
            self.patterns[device.id] = pattern
            logger.debug(f"Created pattern for device {device.id} ({device.type})")
        return pattern

    def get_by_id(self, device_id: str) -> ConsumptionPattern:
        device_id = str(device_id)
        if device_id in self.patterns:
            return self.patterns[device_id]
        device = self.device_lookup(device_id) if self.device_lookup else None
        if device is None:
            logger.debug(f"Device {device_id} not in registry, using default pattern")
            pattern = self.initial_pattern(None)
            self.patterns[device_id] = pattern
            return pattern
        return self.get(device)

    def learn(self, device_id: str, duration: Optional[float], average_power: Optional[float]) -> ConsumptionPattern:
        pattern = self.get_by_id(device_id)
        pattern.observe(duration, average_power)
        return pattern

    def clear(self):
        self.patterns.clear()

    def to_dict(self) -> Dict[str, dict]:
        return {device_id: p.to_dict() for device_id, p in self.patterns.items()}

    def load(self, data) -> int:
        """
        Replace the cache from persisted data.

        Accepts a mapping or the legacy list of ``[device_id, pattern]`` pairs.
        Malformed entries are skipped.
        """
        if isinstance(data, list):
            pairs = [tuple(item) for item in data if isinstance(item, (list, tuple)) and len(item) == 2]
        elif isinstance(data, dict):
            pairs = list(data.items())
        else:
            pairs = []

        self.patterns = {}
        for device_id, raw in pairs:
            try:
                self.patterns[str(device_id)] = ConsumptionPattern.from_dict(raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.error(f"Skipping malformed pattern for device {device_id}: {e}")
        return len(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)
