"""
Tests for the DeviceTracker facade: live ingestion, episodes, environment.
"""
import pytest

from device_tracking.core.config import TrackerConfig
from device_tracking.core.models import DeviceInfo, EnvironmentConfig, Sample
from device_tracking.core.paths import TRACKING_COLLECTION
from device_tracking.sources.appliances import ApplianceReference
from device_tracking.tracker import DeviceTracker
from device_tracking.tracking.persistence import InMemoryCollectionStore

from conftest import BASE_MS, make_event

MINUTE_MS = 60_000


def _sample(power, offset_s, phase='A'):
    return Sample(phase=phase, timestamp=BASE_MS + offset_s * 1000, power=power,
                  raw_readings={f'voltage_{phase.lower()}': 230.0})


class TestIngestSample:

    def test_peak_is_analysed_and_kept(self, tracker, memory_store):
        assert tracker.ingest_sample(_sample(0, 0)) == []
        assert tracker.ingest_sample(_sample(1500, 1)) == []

        results = tracker.ingest_sample(_sample(1400, 2))

        assert len(results) == 1
        event, suggestions = results[0]
        assert event.type == 'peak'
        assert event.power_delta == 1500
        assert event.timestamp == BASE_MS + 1000
        assert event.readings == {'voltage_a': 230.0}
        assert suggestions[0].device.id == '1'

        assert tracker.tracking.event_history == [event]
        assert len(memory_store.load(TRACKING_COLLECTION)['event_history']) == 1

    def test_phases_are_independent(self, tracker):
        tracker.ingest_sample(_sample(0, 0, phase='A'))
        tracker.ingest_sample(_sample(60, 0, phase='B'))
        tracker.ingest_sample(_sample(0, 1, phase='B'))
        tracker.ingest_sample(_sample(1500, 1, phase='A'))

        results = tracker.ingest_sample(_sample(60, 2, phase='B'))

        event, suggestions = results[0]
        assert (event.type, event.phase, event.power_delta) == ('valley', 'B', -60)
        assert [s.device.id for s in suggestions] == ['3']

    def test_history_feeds_recent_activity(self, tracker):
        for power, offset in [(0, 0), (1500, 1), (0, 2), (1500, 3)]:
            tracker.ingest_sample(_sample(power, offset))
        assert [e.type for e in tracker.tracking.event_history] == ['peak', 'valley']

        # peak at 3 s, one second after the valley
        results = tracker.ingest_sample(_sample(1400, 4))
        event, suggestions = results[0]
        assert (event.type, event.timestamp) == ('peak', BASE_MS + 3000)
        assert suggestions[0].device.id == '1'
        assert any('Complementary valley' in r for r in suggestions[0].reasoning)

    def test_clear_resets_classifier(self, tracker):
        tracker.ingest_sample(_sample(0, 0))
        tracker.ingest_sample(_sample(1500, 1))
        tracker.clear_tracking_data()
        assert tracker.ingest_sample(_sample(1400, 2)) == []


class TestEpisodes:

    def _samples(self, start_s):
        return [
            _sample(0, start_s),
            _sample(50, start_s, phase='B'),
            _sample(500, start_s + 1),
            _sample(600, start_s + 2),
            _sample(0, start_s + 3),
        ]

    def test_segment_save_and_continue_ids(self, tracker):
        episodes = tracker.segment_samples(self._samples(0), end_timestamp=BASE_MS + 10_000)

        by_phase = {e.phase: e for e in episodes}
        assert by_phase['A'].type == 'MEDIUM'
        assert by_phase['A'].max_power == 600
        assert by_phase['A'].end_time == BASE_MS + 3000
        assert by_phase['B'].type == 'LOW'
        assert by_phase['B'].end_time == BASE_MS + 10_000

        assert tracker.save_episodes(episodes) == (2, 0)
        assert max(e.id for e in tracker.get_episodes()) == 2

        later = tracker.segment_samples(self._samples(100), end_timestamp=BASE_MS + 200_000)
        assert sorted(e.id for e in later) == [3, 4]

    def test_open_episode_closes_at_clock(self, tracker, clock):
        clock.advance(10 * MINUTE_MS)
        episodes = tracker.segment_samples([_sample(800, 0), _sample(900, 1)])
        assert len(episodes) == 1
        assert episodes[0].end_time == clock.now
        assert episodes[0].duration == clock.now - BASE_MS

    def test_resave_replaces(self, tracker):
        episodes = tracker.segment_samples(self._samples(0), end_timestamp=BASE_MS + 10_000)
        tracker.save_episodes(episodes)
        assert tracker.save_episodes(episodes) == (2, 2)

    def test_clear_episodes(self, tracker):
        tracker.save_episodes(tracker.segment_samples(self._samples(0), end_timestamp=BASE_MS + 10_000))
        tracker.clear_episodes()
        assert tracker.get_episodes() == []

    def test_thresholds_from_config(self, memory_store, clock):
        config = TrackerConfig(low_threshold=700, medium_threshold=2000, timezone='UTC')
        tracker = DeviceTracker(memory_store, config=config, reference=ApplianceReference(), clock=clock)
        episodes = tracker.segment_samples(self._samples(0), end_timestamp=BASE_MS + 10_000)
        assert {e.phase: e.type for e in episodes}['A'] == 'LOW'


class TestEnvironment:

    def test_save_and_reload(self, config, clock):
        tracker = DeviceTracker(InMemoryCollectionStore(), config=config, clock=clock)
        assert tracker.get_environment_config() is None

        tracker.save_environment_config(EnvironmentConfig(devices=[
            DeviceInfo(id='9', type='stampante', phase='C', peak_power=250, average_power=40),
        ]))
        environment = tracker.get_environment_config()
        assert [d.id for d in environment.devices] == ['9']
        assert tracker.patterns.get_by_id('9').peak_power == 200

    def test_refresh_appliances(self, tmp_path, memory_store, config, clock):
        csv_path = tmp_path / 'Appliances.csv'
        csv_path.write_text("name,watts\nsplit,1800\n", encoding='utf-8')
        tracker = DeviceTracker(memory_store, config=config, reference=ApplianceReference(csv_path=csv_path),
                                clock=clock)
        csv_path.write_text("name,watts\nsplit,1800\nstampante,250\n", encoding='utf-8')
        assert tracker.refresh_appliances() == 2

    def test_from_config_uses_data_dir(self, tmp_path):
        tracker = DeviceTracker.from_config(TrackerConfig(data_dir=str(tmp_path)))
        tracker.record_device_association(
            {'type': 'peak', 'phase': 'A', 'powerDelta': 100, 'timestamp': BASE_MS}, '1')
        assert (tmp_path / f'{TRACKING_COLLECTION}.json').exists()
        assert len(tracker.reference) == 0

    def test_repr(self, tracker):
        assert 'DeviceTracker' in repr(tracker)


@pytest.mark.parametrize('delta, expected_device', [
    (1450, '1'),
    (-150, '2'),
])
def test_analysis_after_manual_associations(tracker, delta, expected_device):
    for i in range(3):
        tracker.record_device_association(make_event(delta, timestamp=BASE_MS - (i + 1) * MINUTE_MS), expected_device)
    suggestions = tracker.analyze_event(make_event(delta))
    assert suggestions[0].device.id == expected_device
    assert 'pattern' in suggestions[0].algorithms
