"""Shared fixtures for device_tracking tests."""
import sys
from pathlib import Path

import pandas as pd
import pytest

# Make the package importable without installing it
_root_dir = str(Path(__file__).resolve().parent.parent)
if _root_dir not in sys.path:
    sys.path.insert(0, _root_dir)

from device_tracking.core.config import TrackerConfig
from device_tracking.core.models import DeviceInfo, EnvironmentConfig, PowerEvent
from device_tracking.core.paths import ENVIRONMENT_COLLECTION
from device_tracking.sources.appliances import ApplianceReference
from device_tracking.tracker import DeviceTracker
from device_tracking.tracking.persistence import InMemoryCollectionStore


def to_ms(when: str) -> int:
    """Epoch ms for a UTC wall-clock string."""
    return int(pd.Timestamp(when, tz='UTC').value // 1_000_000)


# Wednesday, 12:00 UTC
BASE_MS = to_ms('2024-01-10 12:00:00')


def make_event(power_delta, phase='A', event_type=None, timestamp=BASE_MS,
               current_power=None, readings=None, event_id=None):
    """PowerEvent with sensible defaults (peak for positive deltas, valley otherwise)."""
    if event_type is None:
        event_type = 'peak' if power_delta > 0 else 'valley'
    return PowerEvent(
        type=event_type,
        phase=phase,
        power_delta=power_delta,
        timestamp=timestamp,
        current_power=abs(power_delta) if current_power is None else current_power,
        readings=readings or {},
        id=event_id,
    )


def default_devices():
    return [
        DeviceInfo(id='1', type='split', phase='A', peak_power=2000, average_power=1500, name='Split soggiorno'),
        DeviceInfo(id='2', type='computer', phase='A', peak_power=300, average_power=150, name='PC'),
        DeviceInfo(id='3', type='lampada da tavolo', phase='B', peak_power=60, average_power=50, name='Lampada'),
        DeviceInfo(id='4', type='forno microonde', phase='C', peak_power=1200, average_power=1000, name='Microonde'),
    ]


class FixedClock:
    """Callable clock returning a settable epoch-ms value."""

    def __init__(self, now=BASE_MS):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def environment():
    return EnvironmentConfig(devices=default_devices(), rooms=['soggiorno', 'studio'])


@pytest.fixture
def memory_store(environment):
    return InMemoryCollectionStore({ENVIRONMENT_COLLECTION: environment.to_dict()})


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    return TrackerConfig(timezone='UTC')


@pytest.fixture
def tracker(memory_store, config, clock):
    return DeviceTracker(memory_store, config=config, reference=ApplianceReference(), clock=clock)
