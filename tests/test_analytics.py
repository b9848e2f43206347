"""
Tests for analytics.consumption: per-device consumption statistics.
"""
import pytest

from device_tracking.analytics.consumption import (
    analysis_to_dataframe,
    get_consumption_analysis,
    resolve_cutoff,
)
from device_tracking.core.models import DeviceEvent

from conftest import BASE_MS, default_devices

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS


def _event(device_id, minutes_ago, duration_min=10, consumption=250.0, phase='A'):
    start = BASE_MS - minutes_ago * MINUTE_MS
    duration = duration_min * MINUTE_MS if duration_min is not None else None
    return DeviceEvent(
        id=f'{device_id}-{minutes_ago}', device_id=device_id, event_type='usage',
        start_time=start, end_time=start + duration if duration is not None else None,
        duration=duration, phase=phase, start_power_delta=1500, peak_power=1500,
        average_power=1500, total_consumption=consumption,
    )


@pytest.fixture
def events():
    return [
        _event('1', 30),
        _event('1', 15),
        _event('4', 120, consumption=100.0, phase='C'),
        _event('2', 5, duration_min=None, consumption=0.0),
    ]


class TestResolveCutoff:

    def test_known_ranges(self):
        assert resolve_cutoff('1h', BASE_MS) == BASE_MS - HOUR_MS
        assert resolve_cutoff('7d', BASE_MS) == BASE_MS - 7 * 24 * HOUR_MS

    def test_all_and_unknown(self):
        assert resolve_cutoff(None, BASE_MS) == 0
        assert resolve_cutoff('forever', BASE_MS) == 0


class TestConsumptionAnalysis:

    def test_last_hour(self, events):
        analysis = get_consumption_analysis(events, default_devices(), '1h', now=BASE_MS)

        assert analysis['time_range'] == '1h'
        assert analysis['total_events'] == 2
        assert analysis['total_consumption'] == pytest.approx(500.0)

        split = analysis['device_stats']['1']
        assert split['device']['type'] == 'split'
        assert split['event_count'] == 2
        assert split['total_duration'] == 20 * MINUTE_MS
        assert split['average_duration'] == 10 * MINUTE_MS
        assert split['average_power'] == pytest.approx(1500.0)
        assert len(split['events']) == 2

    def test_idle_devices_are_listed(self, events):
        analysis = get_consumption_analysis(events, default_devices(), '1h', now=BASE_MS)
        for device_id in ('2', '3', '4'):
            stats = analysis['device_stats'][device_id]
            assert stats['event_count'] == 0
            assert stats['total_consumption'] == 0
            assert stats['events'] == []

    def test_all_events(self, events):
        analysis = get_consumption_analysis(events, default_devices(), now=BASE_MS)
        assert analysis['time_range'] == 'all'
        # the open event has no consumption yet
        assert analysis['total_events'] == 3
        assert analysis['total_consumption'] == pytest.approx(600.0)
        assert analysis['device_stats']['4']['event_count'] == 1

    def test_unknown_range_keeps_everything(self, events):
        analysis = get_consumption_analysis(events, default_devices(), 'fortnight', now=BASE_MS)
        assert analysis['total_events'] == 3

    def test_unregistered_device(self):
        analysis = get_consumption_analysis([_event('ghost', 5)], default_devices(), now=BASE_MS)
        ghost = analysis['device_stats']['ghost']
        assert ghost['device'] is None
        assert ghost['event_count'] == 1

    def test_no_devices_no_events(self):
        analysis = get_consumption_analysis([], [], '24h', now=BASE_MS)
        assert analysis == {
            'time_range': '24h',
            'total_events': 0,
            'total_consumption': 0.0,
            'device_stats': {},
            'events': [],
        }


class TestAnalysisDataFrame:

    def test_one_row_per_device(self, events):
        analysis = get_consumption_analysis(events, default_devices(), '1h', now=BASE_MS)
        df = analysis_to_dataframe(analysis)
        assert list(df['device_id']) == ['1', '2', '3', '4']
        assert df.loc[df['device_id'] == '1', 'event_count'].iloc[0] == 2
        assert df.loc[df['device_id'] == '3', 'name'].iloc[0] == 'Lampada'


class TestTrackerAnalysis:

    def test_uses_tracker_clock(self, tracker, clock):
        start = {'type': 'peak', 'phase': 'A', 'powerDelta': 1500, 'timestamp': BASE_MS}
        end = {'type': 'valley', 'phase': 'A', 'powerDelta': -1500, 'timestamp': BASE_MS + 10 * MINUTE_MS}
        tracker.record_device_event('1', start, end)

        clock.advance(30 * MINUTE_MS)
        assert tracker.get_consumption_analysis('1h')['total_events'] == 1

        clock.advance(2 * HOUR_MS)
        assert tracker.get_consumption_analysis('1h')['total_events'] == 0
        assert tracker.get_consumption_analysis('24h')['total_events'] == 1
