"""Tests for WPM, raw WPM and accuracy."""

import pytest

from speedtype.errors import InvalidMetrics
from speedtype.services.scoring import (
    accuracy,
    compute_metrics,
    raw_wpm,
    validate_counters,
    wpm,
)


class TestWPM:
    def test_fifty_chars_in_a_minute_is_ten_wpm(self):
        assert wpm(50, 60) == 10.0

    def test_half_minute_doubles_rate(self):
        # 100 chars = 20 words in 0.5 minutes
        assert wpm(100, 30) == pytest.approx(40.0)

    @pytest.mark.parametrize("elapsed", [0, -5])
    def test_no_elapsed_time_is_zero(self, elapsed):
        assert wpm(100, elapsed) == 0.0
        assert raw_wpm(100, elapsed) == 0.0

    def test_raw_wpm_counts_every_char(self):
        assert raw_wpm(260, 60) == pytest.approx(52.0)

    def test_negative_chars_rejected(self):
        with pytest.raises(InvalidMetrics):
            wpm(-1, 60)
        with pytest.raises(InvalidMetrics):
            raw_wpm(-1, 60)


class TestAccuracy:
    def test_perfect(self):
        assert accuracy(5, 0) == 100.0

    def test_empty_test_is_perfect(self):
        assert accuracy(0, 0) == 100.0

    @pytest.mark.parametrize(
        "correct,incorrect",
        [(1, 1), (250, 10), (0, 7), (99, 1), (3, 997)],
    )
    def test_ratio(self, correct, incorrect):
        assert accuracy(correct, incorrect) == pytest.approx(
            100 * correct / (correct + incorrect)
        )

    def test_negative_rejected(self):
        with pytest.raises(InvalidMetrics):
            accuracy(10, -1)


class TestValidateCounters:
    def test_total_must_match(self):
        with pytest.raises(InvalidMetrics, match="Total characters"):
            validate_counters(10, 2, 13, 60)

    @pytest.mark.parametrize("duration", [0, 14, 121, 600])
    def test_duration_out_of_range(self, duration):
        with pytest.raises(InvalidMetrics, match="Duration"):
            validate_counters(10, 0, 10, duration)

    @pytest.mark.parametrize("duration", [15, 60, 120])
    def test_duration_bounds_inclusive(self, duration):
        validate_counters(10, 0, 10, duration)

    def test_implausible_speed(self):
        # 2000 chars in 15s is 1600 WPM
        with pytest.raises(InvalidMetrics, match="plausible"):
            validate_counters(2000, 0, 2000, 15)

    def test_negative_counter(self):
        with pytest.raises(InvalidMetrics):
            validate_counters(-1, 1, 0, 60)


def test_compute_metrics_reference_scenario():
    metrics = compute_metrics(250, 10, 260, 60)
    assert metrics["wpm"] == 50.0
    assert metrics["raw_wpm"] == 52.0
    assert metrics["accuracy"] == pytest.approx(96.15, abs=0.005)


def test_compute_metrics_never_clamps():
    with pytest.raises(InvalidMetrics):
        compute_metrics(250, 10, 300, 60)
