"""
Tests for tracking.persistence and tracking.episodes.
"""
import json

import numpy as np
import pandas as pd

from device_tracking.core.models import ThresholdEpisode
from device_tracking.tracking.episodes import EpisodeStore, merge_episodes
from device_tracking.tracking.persistence import InMemoryCollectionStore, JsonCollectionStore

from conftest import BASE_MS


def make_episode(episode_id, start_offset_s, end_offset_s, phase='A', episode_type='LOW', max_power=200.0):
    start = BASE_MS + start_offset_s * 1000
    end = BASE_MS + end_offset_s * 1000
    return ThresholdEpisode(
        id=episode_id, phase=phase, type=episode_type, start_time=start, end_time=end,
        duration=end - start, min_power=20.0, max_power=max_power,
        average_power=100.0, total_energy=100.0 * (end - start) / 3_600_000,
    )


class TestJsonCollectionStore:

    def test_missing_collection_is_none(self, tmp_path):
        assert JsonCollectionStore(tmp_path).load('nothing-here') is None

    def test_round_trip(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.persist('things', {'a': [1, 2, 3]})
        assert store.load('things') == {'a': [1, 2, 3]}
        assert (tmp_path / 'things.json').exists()

    def test_no_temp_files_left(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.persist('things', {'a': 1})
        store.persist('things', {'a': 2})
        assert sorted(p.name for p in tmp_path.iterdir()) == ['things.json']

    def test_corrupt_file_is_none(self, tmp_path):
        (tmp_path / 'broken.json').write_text('{"unterminated": ', encoding='utf-8')
        assert JsonCollectionStore(tmp_path).load('broken') is None

    def test_numpy_and_pandas_values(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.persist('mixed', {
            'count': np.int64(3),
            'ratio': np.float32(0.5),
            'when': pd.Timestamp('2024-01-10 12:00:00'),
            'pair': (1, 2),
        })
        data = json.loads((tmp_path / 'mixed.json').read_text(encoding='utf-8'))
        assert data['count'] == 3
        assert data['ratio'] == 0.5
        assert data['when'].startswith('2024-01-10T12:00:00')
        assert data['pair'] == [1, 2]

    def test_delete(self, tmp_path):
        store = JsonCollectionStore(tmp_path)
        store.persist('gone', [])
        store.delete('gone')
        assert store.load('gone') is None


class TestInMemoryCollectionStore:

    def test_returns_copies(self):
        store = InMemoryCollectionStore()
        store.persist('c', {'items': [1]})
        loaded = store.load('c')
        loaded['items'].append(2)
        assert store.load('c') == {'items': [1]}
        assert 'c' in store


class TestEpisodes:

    def test_merge_replaces_identical_key(self):
        existing = [make_episode(1, 0, 60), make_episode(2, 100, 200)]
        new = [make_episode(9, 0, 60, max_power=900.0, episode_type='MEDIUM'), make_episode(10, 300, 400)]

        merged, replaced = merge_episodes(existing, new)

        assert replaced == 1
        assert [e.id for e in merged] == [9, 2, 10]
        assert merged[0].type == 'MEDIUM'
        assert [e.id for e in existing] == [1, 2]

    def test_same_times_other_phase_is_kept(self):
        merged, replaced = merge_episodes([make_episode(1, 0, 60, phase='A')], [make_episode(2, 0, 60, phase='B')])
        assert replaced == 0
        assert len(merged) == 2

    def test_store_save_load_clear(self):
        episodes = EpisodeStore(InMemoryCollectionStore())
        assert episodes.load() == []

        total, replaced = episodes.save([make_episode(1, 0, 60), make_episode(2, 100, 200)])
        assert (total, replaced) == (2, 0)

        total, replaced = episodes.save([make_episode(3, 100, 200)])
        assert (total, replaced) == (2, 1)
        assert [e.id for e in episodes.load()] == [1, 3]

        episodes.clear()
        assert episodes.load() == []

    def test_store_reads_legacy_document(self):
        legacy = {
            'events': [
                {'id': 1, 'phase': 'A', 'type': 'LOW', 'startTime': '2024-01-10T12:00:00.000Z',
                 'endTime': '2024-01-10T12:01:00.000Z', 'duration': 60000, 'minPower': '20.00',
                 'maxPower': '200.00', 'averagePower': '100.00', 'totalEnergy': '1.67'},
                {'id': 2, 'phase': 'A'},
            ],
        }
        store = InMemoryCollectionStore({'consumption-events': legacy})
        loaded = EpisodeStore(store).load()
        assert len(loaded) == 1
        assert loaded[0].start_time == BASE_MS
