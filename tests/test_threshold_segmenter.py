"""
Unit tests for detection.threshold_segmenter: LOW/MEDIUM/HIGH episodes.
"""
import pytest

from device_tracking.core.models import Sample
from device_tracking.detection.threshold_segmenter import (
    ThresholdSegmenter,
    classify_episode,
    episodes_to_dataframe,
    segment_samples,
)

from conftest import BASE_MS


def _samples(powers, phase='A', step_s=60):
    return [
        Sample(phase=phase, timestamp=BASE_MS + i * step_s * 1000, power=p)
        for i, p in enumerate(powers)
    ]


class TestClassifyEpisode:

    @pytest.mark.parametrize('max_power, expected', [
        (11, 'LOW'),
        (300, 'LOW'),
        (300.5, 'MEDIUM'),
        (1000, 'MEDIUM'),
        (1000.1, 'HIGH'),
    ])
    def test_boundaries(self, max_power, expected):
        assert classify_episode(max_power, 300, 1000) == expected


class TestThresholdSegmenter:

    def test_below_floor_never_opens(self):
        segmenter = ThresholdSegmenter()
        for sample in _samples([0, 5, 10, 3]):
            assert segmenter.process(sample) is None
        assert segmenter.open_phases == []

    def test_episode_lifecycle(self):
        segmenter = ThresholdSegmenter()
        closed = [segmenter.process(s) for s in _samples([0, 200, 800, 400, 5])]
        episodes = [e for e in closed if e is not None]

        assert len(episodes) == 1
        episode = episodes[0]
        assert episode.phase == 'A'
        assert episode.type == 'MEDIUM'
        assert episode.start_time == BASE_MS + 60_000
        assert episode.end_time == BASE_MS + 240_000
        assert episode.duration == 180_000
        assert episode.max_power == 800
        assert episode.min_power == 5
        # closing sample counts toward the average
        assert episode.average_power == pytest.approx((200 + 800 + 400 + 5) / 4)
        assert episode.total_energy == pytest.approx(episode.average_power * 180_000 / 3_600_000)

    def test_type_uses_max_power_only(self):
        segmenter = ThresholdSegmenter()
        # average is low, but one spike above the medium threshold makes it HIGH
        episodes = segment_samples(_samples([50, 50, 1500, 50, 50, 0]), segmenter)
        assert [e.type for e in episodes] == ['HIGH']

    def test_trend_tracking(self):
        segmenter = ThresholdSegmenter()
        for s in _samples([100, 103]):
            segmenter.process(s)
        assert segmenter.trend('A') == 'rising'

        segmenter.process(Sample('A', BASE_MS + 200_000, 90))
        assert segmenter.trend('A') == 'falling'
        assert segmenter.trend('B') is None

    def test_one_open_episode_per_phase(self):
        segmenter = ThresholdSegmenter()
        segmenter.process(Sample('A', BASE_MS, 100))
        segmenter.process(Sample('B', BASE_MS, 2000))
        segmenter.process(Sample('A', BASE_MS + 1000, 150))
        assert segmenter.open_phases == ['A', 'B']

    def test_ids_increase(self):
        segmenter = ThresholdSegmenter(first_id=7)
        episodes = segment_samples(_samples([100, 0, 200, 0]), segmenter)
        assert [e.id for e in episodes] == [7, 8]

    def test_custom_thresholds(self):
        segmenter = ThresholdSegmenter(low_threshold=100, medium_threshold=200)
        episodes = segment_samples(_samples([150, 0]), segmenter)
        assert episodes[0].type == 'MEDIUM'

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            ThresholdSegmenter(low_threshold=1000, medium_threshold=300)


class TestSegmentSamples:

    def test_force_close_at_last_sample(self):
        episodes = segment_samples(_samples([100, 200, 300]))
        assert len(episodes) == 1
        assert episodes[0].end_time == BASE_MS + 120_000

    def test_force_close_at_given_timestamp(self):
        end = BASE_MS + 3_600_000
        episodes = segment_samples(_samples([2000, 2000]), end_timestamp=end)
        assert episodes[0].end_time == end
        assert episodes[0].duration == 3_600_000
        assert episodes[0].total_energy == pytest.approx(2000)

    def test_empty_stream(self):
        assert segment_samples([]) == []

    def test_interleaved_phases(self):
        samples = _samples([100, 0], phase='A') + _samples([50, 50, 0], phase='C')
        samples.sort(key=lambda s: s.timestamp)
        episodes = segment_samples(samples)
        assert sorted(e.phase for e in episodes) == ['A', 'C']

    def test_dataframe_view(self):
        df = episodes_to_dataframe(segment_samples(_samples([100, 0, 500, 0])))
        assert list(df['type']) == ['LOW', 'MEDIUM']
        assert 'total_energy' in df.columns
