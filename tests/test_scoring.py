"""
Unit tests for identification.scoring: the individual confidence signals.
"""
import pytest

from device_tracking.core.models import DeviceAssociation, DeviceInfo
from device_tracking.identification.profiles import default_pattern
from device_tracking.identification.scoring import (
    classify_pattern_type,
    device_type_confidence,
    find_historical_matches,
    match_consumption_pattern,
    power_ratio_confidence,
    recent_activity_confidence,
    reference_confidence,
    time_based_confidence,
    type_range_confidence,
)
from device_tracking.sources.appliances import ApplianceReference

from conftest import BASE_MS, make_event, to_ms

SPLIT = DeviceInfo(id='1', type='split', phase='A', peak_power=2000, average_power=1500)


def _association(device_id, power_delta, phase='A', event_type='peak', offset_s=0):
    return DeviceAssociation(
        id=f'{device_id}-{power_delta}-{offset_s}', device_id=device_id,
        timestamp=BASE_MS - 86_400_000 + offset_s * 1000, phase=phase,
        type=event_type, power_delta=power_delta,
    )


class TestPatternShape:

    @pytest.mark.parametrize('delta, current, expected', [
        (51, 51, 'turn_on'),
        (50, 50, 'unknown'),
        (-51, 0, 'turn_off'),
        (-50, 0, 'unknown'),
        (10, 150, 'stabilization'),
        (10, 100, 'unknown'),
        (20, 500, 'unknown'),
    ])
    def test_classify(self, delta, current, expected):
        assert classify_pattern_type(make_event(delta, current_power=current)) == expected

    @pytest.mark.parametrize('delta, expected', [
        (1450, 0.8),     # inside [1050, 2400]
        (-1450, 0.8),    # turn-off uses the magnitude
        (600, 0.5),      # inside [525, 3600]
        (400, 0.0),
    ])
    def test_switch_bands(self, delta, expected):
        event = make_event(delta)
        pattern_type = classify_pattern_type(event)
        assert match_consumption_pattern(event, default_pattern('split'), pattern_type) == expected

    @pytest.mark.parametrize('current, expected', [
        (1500, 0.6),     # inside [1200, 1800]
        (800, 0.3),      # inside [720, 2520]
        (700, 0.0),
    ])
    def test_stabilization_bands(self, current, expected):
        event = make_event(5, current_power=current)
        assert match_consumption_pattern(event, default_pattern('split'), 'stabilization') == expected

    def test_unknown_is_not_scored(self):
        event = make_event(30, current_power=50)
        assert match_consumption_pattern(event, default_pattern('split'), 'unknown') == 0.0


class TestPowerRatio:

    def test_peak_compares_peak_power(self):
        score, reason = power_ratio_confidence(SPLIT, make_event(1450))
        assert score == 0.2
        assert reason.startswith('Partial power match')

    def test_valley_compares_average_power(self):
        score, reason = power_ratio_confidence(SPLIT, make_event(-1450))
        assert score == 0.4
        assert reason.startswith('Power match')

    def test_start_event_compares_peak_power(self):
        score, _ = power_ratio_confidence(SPLIT, make_event(1900, event_type='start'))
        assert score == 0.4

    def test_no_expected_power(self):
        device = DeviceInfo(id='9', type='split', phase='A')
        assert power_ratio_confidence(device, make_event(1450)) == (0.0, None)


class TestTypeConfidence:

    @pytest.mark.parametrize('observed, expected_score', [
        (1100, 0.4),     # 10% off
        (1250, 0.2),     # 25% off
        (1500, 0.1),     # 50% off
        (1700, 0.0),     # 70% off
    ])
    def test_reference_bands(self, observed, expected_score):
        score, _ = reference_confidence(1000, observed, 'exact')
        assert score == expected_score

    def test_closer_wattage_scores_higher(self):
        reference = ApplianceReference({'bollitore': 1100, 'stufa': 2000})
        event = make_event(1000)
        close, _ = device_type_confidence('bollitore', event, reference)
        far, _ = device_type_confidence('stufa', event, reference)
        assert close > far > 0

    def test_similar_name_lookup(self):
        reference = ApplianceReference({'Split Inverter': 1500})
        score, reason = device_type_confidence('split', make_event(1450), reference)
        assert score == 0.4
        assert reason.startswith('similar match')

    def test_fallback_ranges_without_reference(self):
        assert type_range_confidence('split', make_event(1450))[0] == 0.3
        assert type_range_confidence('split', make_event(700))[0] == 0.1
        assert type_range_confidence('split', make_event(500))[0] == 0.0
        assert device_type_confidence('split', make_event(1450), ApplianceReference())[0] == 0.3

    def test_unknown_type_scores_zero(self):
        assert device_type_confidence('acquario', make_event(100)) == (0.0, None)

    def test_valley_range_for_valleys(self):
        # stampante: peak range [20, 300], valley range [5, 50]
        assert type_range_confidence('stampante', make_event(-200))[0] == 0.0
        assert type_range_confidence('stampante', make_event(200))[0] == 0.3


class TestTimeConfidence:

    @pytest.mark.parametrize('device_type, when, expected', [
        ('computer', '2024-01-10 12:00', 0.1),
        ('computer', '2024-01-10 23:00', 0.0),
        ('forno microonde', '2024-01-10 13:00', 0.15),
        ('forno microonde', '2024-01-10 16:30', 0.0),
        ('lampada da tavolo', '2024-01-10 20:00', 0.1),
        ('split', '2024-01-10 12:00', 0.0),
        ('acquario', '2024-01-10 12:00', 0.0),
    ])
    def test_usage_hours(self, device_type, when, expected):
        device = DeviceInfo(id='x', type=device_type, phase='A')
        score, _ = time_based_confidence(device, make_event(100, timestamp=to_ms(when)), timezone='UTC')
        assert score == pytest.approx(expected)

    def test_timezone_shifts_hour(self):
        device = DeviceInfo(id='x', type='computer', phase='A')
        # 06:30 UTC is 08:30 in Athens (winter, UTC+2)
        event = make_event(100, timestamp=to_ms('2024-01-10 06:30'))
        assert time_based_confidence(device, event, timezone='UTC')[0] == 0.0
        assert time_based_confidence(device, event, timezone='Europe/Athens')[0] == pytest.approx(0.1)


class TestRecentActivity:

    def test_complementary_event_in_window(self):
        history = [make_event(-300, timestamp=BASE_MS - 1000)]
        score, reason = recent_activity_confidence(make_event(300), history)
        assert score == 0.2
        assert 'valley' in reason

    @pytest.mark.parametrize('past', [
        make_event(-300, timestamp=BASE_MS - 6000),           # too old
        make_event(-300, timestamp=BASE_MS - 5000),           # window is open at the start
        make_event(-300, timestamp=BASE_MS),                  # not before the event
        make_event(-300, phase='B', timestamp=BASE_MS - 1000),
        make_event(300, timestamp=BASE_MS - 1000),            # same type
    ])
    def test_no_correlation(self, past):
        assert recent_activity_confidence(make_event(300), [past]) == (0.0, None)

    def test_valley_looks_for_peak(self):
        history = [make_event(300, timestamp=BASE_MS - 2000)]
        assert recent_activity_confidence(make_event(-300), history)[0] == 0.2


class TestHistoricalMatches:

    def test_occurrences_raise_confidence(self):
        associations = [
            _association('1', 1400, offset_s=1),
            _association('1', 1460, offset_s=2),
            _association('1', 1500, offset_s=3),
            _association('2', 1300),
            _association('3', 1450, phase='B'),
            _association('4', 1450, event_type='valley'),
        ]
        matches = find_historical_matches(make_event(1450), associations)
        assert len(matches) == 1
        assert matches[0]['device_id'] == '1'
        assert matches[0]['occurrences'] == 3
        assert matches[0]['confidence'] == pytest.approx(0.7)

    def test_confidence_capped(self):
        associations = [_association('1', 1450, offset_s=i) for i in range(8)]
        matches = find_historical_matches(make_event(1450), associations)
        assert matches[0]['confidence'] == pytest.approx(0.9)

    def test_sorted_by_confidence(self):
        associations = [_association('2', 1450)] + [_association('1', 1450, offset_s=i) for i in range(3)]
        matches = find_historical_matches(make_event(1450), associations)
        assert [m['device_id'] for m in matches] == ['1', '2']
