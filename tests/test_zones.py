"""Tests for heart-rate zone classification."""

import math

import pytest

from zone_coach_mcp.models import ZoneThresholds
from zone_coach_mcp.zones import HeartRateStream, ZoneResult, classify_zones, zone_for_hr


def test_classifies_interval_by_later_sample(thresholds, steady_stream):
    result = classify_zones(steady_stream, thresholds)

    assert result.has_data
    # first interval ends at 160 bpm (>= z3 150, < z4 165), second at 190
    assert result.seconds == (0, 0, 60, 0, 60)
    assert result.minutes == (0, 0, 1, 0, 1)


def test_spec_style_payload_with_data_wrappers(thresholds):
    payload = {
        "time": {"data": [0, 60, 120]},
        "heartrate": {"data": [100, 170, 190]},
    }
    result = classify_zones(payload, thresholds)

    assert result.minutes == (0, 0, 0, 1, 1)


@pytest.mark.parametrize(
    "stream",
    [
        None,
        {},
        {"time": [0, 60]},
        {"time": [0], "heartrate": [150]},
        {"time": [0, 60, 120], "heartrate": [150, 150]},
        "not a stream",
    ],
)
def test_missing_or_invalid_stream_is_no_data(stream, thresholds):
    result = classify_zones(stream, thresholds)

    assert result == ZoneResult.no_data()
    assert not result.has_data
    assert result.minutes == (0, 0, 0, 0, 0)


def test_zero_effort_stream_is_distinct_from_no_data(thresholds):
    result = classify_zones(HeartRateStream(time=[0, 0, 0], heartrate=[100, 100, 100]), thresholds)

    assert result.has_data
    assert result.total_seconds == 0


def test_backwards_and_duplicate_timestamps_add_no_time(thresholds):
    stream = HeartRateStream(time=[0, 30, 30, 10, 70], heartrate=[140, 140, 140, 140, 140])
    result = classify_zones(stream, thresholds)

    # 0->30 counts 30s, 30->30 and 30->10 count 0, 10->70 counts 60s
    assert result.seconds[1] == 90


def test_gap_is_attributed_to_the_later_sample(thresholds):
    stream = HeartRateStream(time=[0, 10, 3610], heartrate=[120, 120, 185])
    result = classify_zones(stream, thresholds)

    assert result.seconds == (10, 0, 0, 0, 3600)
    assert result.minutes == (0, 0, 0, 0, 60)


def test_zone_seconds_sum_to_elapsed_time(thresholds):
    time = [0, 5, 9, 9, 20, 18, 40, 41, 100, 160]
    hr = [90, 135, 151, 166, 181, 129, 200, 150, 165, 180]
    result = classify_zones(HeartRateStream(time=time, heartrate=hr), thresholds)

    expected = sum(max(0, time[i] - time[i - 1]) for i in range(1, len(time)))
    assert result.total_seconds == expected


def test_minutes_are_rounded_once_from_total_seconds(thresholds):
    # 4 intervals of 20s in Z2 = 80s -> 1 minute; per-interval rounding would give 0
    stream = HeartRateStream(time=[0, 20, 40, 60, 80], heartrate=[140] * 5)

    assert classify_zones(stream, thresholds).minutes[1] == 1


def test_half_minute_rounds_up(thresholds):
    stream = HeartRateStream(time=[0, 90], heartrate=[140, 140])

    assert classify_zones(stream, thresholds).minutes[1] == 2


def test_non_numeric_samples_fall_back_to_zero(thresholds):
    stream = HeartRateStream(time=[0, 60, None, 120], heartrate=[None, "x", 190, math.nan])
    result = classify_zones(stream, thresholds)

    # 0->60 at hr 0 (Z1); 60->None(0) is backwards; 0->120 at hr 0 (Z1)
    assert result.seconds == (180, 0, 0, 0, 0)


def test_oversized_integer_samples_fall_back_to_zero(thresholds):
    result = classify_zones(HeartRateStream(time=[0, 60], heartrate=[10**400, 10**400]), thresholds)

    assert result.seconds == (60, 0, 0, 0, 0)


@pytest.mark.parametrize(
    ("bpm", "zone"),
    [(0, 1), (129.9, 1), (130, 2), (149, 2), (150, 3), (164, 3), (165, 4), (179, 4), (180, 5), (250, 5)],
)
def test_zone_boundaries_are_inclusive_lower_bounds(bpm, zone, thresholds):
    assert zone_for_hr(bpm, thresholds) == zone


def test_every_bpm_falls_in_exactly_one_zone():
    t = ZoneThresholds(z2_low=120, z3_low=140, z4_low=140, z5_low=170)
    bands = [(0, t.z2_low), (t.z2_low, t.z3_low), (t.z3_low, t.z4_low), (t.z4_low, t.z5_low), (t.z5_low, math.inf)]

    for bpm in range(0, 230):
        containing = [i + 1 for i, (lo, hi) in enumerate(bands) if lo <= bpm < hi]
        assert containing == [zone_for_hr(bpm, t)]
