"""
Tests for quality scoring
"""
from datetime import timedelta

import pytest

from conftest import FIXED_NOW
from services.quality_scorer import (
    calculate_quality_metrics,
    clamp_score,
    parse_height,
    result_quality_score,
    round_half_up,
)
from services.records import RESULT_FAILURE, RESULT_SUCCESS, StreamTestResult


def make_result(status=RESULT_SUCCESS, bitrate=0, resolution="unknown", region="local", offset=0):
    return StreamTestResult(
        channel_id="chn_0000000000000001",
        status=status,
        response_time_ms=100,
        bitrate_kbps=bitrate,
        resolution=resolution,
        tested_at=FIXED_NOW + timedelta(minutes=offset),
        region=region,
    )


@pytest.fixture
def mixed_results():
    return [
        make_result(bitrate=8000, resolution="1920x1080", region="region-a"),
        make_result(status=RESULT_FAILURE, region="region-a", offset=1),
        make_result(bitrate=4000, resolution="1280x720", region="region-b", offset=2),
    ]


class TestCalculateQualityMetrics:
    """Tests for calculate_quality_metrics"""

    def test_mixed_history(self, mixed_results):
        metrics = calculate_quality_metrics(mixed_results, calculated_at=FIXED_NOW)

        assert metrics.uptime_percentage == pytest.approx(66.67, abs=0.01)
        # failed probe contributes 0 kbps: avg(8000, 0, 4000) = 4000
        assert metrics.stability_score == 40
        assert metrics.video_quality_score == 100
        assert metrics.geo_availability_score == 67
        # 0.4 * 66.67 + 0.25 * 40 + 0.2 * 100 + 0.15 * 67 = 66.72
        assert metrics.overall_score == 67
        assert metrics.calculated_at == FIXED_NOW

    def test_no_results(self):
        metrics = calculate_quality_metrics([], calculated_at=FIXED_NOW)

        assert metrics.uptime_percentage == 0
        assert metrics.stability_score == 0
        assert metrics.video_quality_score == 0
        assert metrics.geo_availability_score == 0
        assert metrics.overall_score == 0

    def test_idempotent(self, mixed_results):
        first = calculate_quality_metrics(mixed_results, calculated_at=FIXED_NOW)
        second = calculate_quality_metrics(list(mixed_results), calculated_at=FIXED_NOW)

        assert first == second

    def test_all_failures(self):
        results = [make_result(status=RESULT_FAILURE, offset=i) for i in range(3)]
        metrics = calculate_quality_metrics(results, calculated_at=FIXED_NOW)

        assert metrics.uptime_percentage == 0
        assert metrics.stability_score == 0
        assert metrics.video_quality_score == 0
        # one region out of three
        assert metrics.geo_availability_score == 33
        assert metrics.overall_score == 5

    def test_scores_are_clamped(self):
        results = [make_result(bitrate=50000, resolution="3840x2160", region=f"r{i}") for i in range(5)]
        metrics = calculate_quality_metrics(results, calculated_at=FIXED_NOW)

        assert metrics.uptime_percentage == 100
        assert metrics.stability_score == 100
        assert metrics.video_quality_score == 100
        assert metrics.geo_availability_score == 100
        assert metrics.overall_score == 100

    def test_unparseable_resolutions_score_zero(self):
        results = [make_result(bitrate=1000, resolution="unknown"), make_result(bitrate=1000, resolution="720p")]

        assert calculate_quality_metrics(results).video_quality_score == 0

    def test_video_uses_highest_resolution(self):
        results = [
            make_result(bitrate=1000, resolution="640x360"),
            make_result(bitrate=1000, resolution="854x480"),
        ]

        # 100 * 480 / 1080 = 44.4
        assert calculate_quality_metrics(results).video_quality_score == 44


class TestHelpers:
    """Tests for rounding and parsing helpers"""

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(66.49) == 66
        assert round_half_up(-2.5) == -3

    def test_clamp_score(self):
        assert clamp_score(-4) == 0
        assert clamp_score(140.2) == 100
        assert clamp_score(49.5) == 50

    def test_parse_height(self):
        assert parse_height("1920x1080") == 1080
        assert parse_height(" 1280X720 ") == 720
        assert parse_height("unknown") == 0
        assert parse_height(None) == 0

    def test_result_quality_score(self):
        assert result_quality_score(make_result(bitrate=4000)) == 40
        assert result_quality_score(make_result(bitrate=25000)) == 100
        assert result_quality_score(make_result(bitrate=0)) == 0
        assert result_quality_score(make_result(status=RESULT_FAILURE, bitrate=4000)) == 0
