"""
Tests for sources.readings: the collector CSV adapter.
"""
import pytest

from device_tracking.sources.readings import (
    READING_COLUMNS,
    iter_samples,
    load_readings,
    readings_to_samples,
)

from conftest import BASE_MS

BASE_S = BASE_MS // 1000


def reading_row(offset_s, voltages=(230, 231, 229), currents=(0, 0, 0), pfs=(0.9, 0.8, 0.7)):
    """One collector row with all 22 fields."""
    fields = ['shelly-1', BASE_S + offset_s, f'r{offset_s}']
    fields += list(voltages)
    fields += list(currents) + [0]
    fields += [v * i for v, i in zip(voltages, currents)]          # active power
    fields += [v * i for v, i in zip(voltages, currents)]          # apparent power
    fields += [0, 120, 240]                                        # angles
    fields += list(pfs)
    return ','.join(str(f) for f in fields)


def write_readings(path, rows, header=True):
    lines = [','.join(READING_COLUMNS)] if header else []
    lines.extend(rows)
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


class TestLoadReadings:

    def test_header_dropped_and_power_computed(self, tmp_path):
        path = write_readings(tmp_path / 'readings.csv', [
            reading_row(0),
            reading_row(1, currents=(5, 0.5, 0)),
        ])
        df = load_readings(path)

        assert len(df) == 2
        assert list(df['timestamp']) == [BASE_MS, BASE_MS + 1000]
        assert df['power_a'].iloc[1] == pytest.approx(1150)
        assert df['power_b'].iloc[1] == pytest.approx(115.5)
        assert df['power_c'].iloc[1] == 0

    def test_short_rows_skipped(self, tmp_path):
        path = write_readings(tmp_path / 'readings.csv', [
            reading_row(0),
            'shelly-1,1704888001,r1,230,231,229,1,1,1',
            reading_row(2),
        ], header=False)
        df = load_readings(path)
        assert list(df['timestamp']) == [BASE_MS, BASE_MS + 2000]

    def test_missing_values_count_as_zero(self, tmp_path):
        row = reading_row(0, currents=(2, 0, 0)).split(',')
        row[READING_COLUMNS.index('voltage_a')] = ''
        path = write_readings(tmp_path / 'readings.csv', [','.join(row)], header=False)
        df = load_readings(path)
        assert df['power_a'].iloc[0] == 0

    def test_rows_sorted_by_time(self, tmp_path):
        path = write_readings(tmp_path / 'readings.csv', [reading_row(5), reading_row(1)], header=False)
        assert list(load_readings(path)['timestamp']) == [BASE_MS + 1000, BASE_MS + 5000]

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'readings.csv'
        path.write_text('', encoding='utf-8')
        df = load_readings(path)
        assert df.empty
        assert 'power_a' in df.columns


class TestSamples:

    def test_three_samples_per_row(self, tmp_path):
        path = write_readings(tmp_path / 'readings.csv', [reading_row(0, currents=(5, 0, 1))])
        samples = list(readings_to_samples(load_readings(path)))

        assert [s.phase for s in samples] == ['A', 'B', 'C']
        assert all(s.timestamp == BASE_MS for s in samples)
        assert samples[0].power == pytest.approx(1150)
        assert samples[2].power == pytest.approx(229)
        assert samples[0].raw_readings == {'voltage_a': 230.0, 'current_a': 5.0, 'pf_a': 0.9}

    def test_iter_samples(self, tmp_path):
        path = write_readings(tmp_path / 'readings.csv', [reading_row(0), reading_row(1)])
        assert len(list(iter_samples(path))) == 6
