"""
Quality Scorer - combines probe history into a weighted composite score.

Components (each 0-100):
- uptime: share of successful probes
- stability: average bitrate against a 10 Mbps reference
- video quality: highest observed vertical resolution against 1080 lines
- geo availability: distinct probe regions, saturating at 3

Failed probes count towards the bitrate average with 0 kbps.
"""

import math
import re
from datetime import datetime
from typing import Iterable, Optional

from services.records import QualityMetrics, StreamTestResult, utc_now

UPTIME_WEIGHT = 0.40
STABILITY_WEIGHT = 0.25
VIDEO_QUALITY_WEIGHT = 0.20
GEO_WEIGHT = 0.15

REFERENCE_BITRATE_KBPS = 10000
REFERENCE_HEIGHT = 1080
REFERENCE_REGION_COUNT = 3

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)$")

assert math.isclose(UPTIME_WEIGHT + STABILITY_WEIGHT + VIDEO_QUALITY_WEIGHT + GEO_WEIGHT, 1.0)


def round_half_up(value: float) -> int:
    """Round halves away from zero (scores are never negative)."""
    if value < 0:
        return -round_half_up(-value)
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def parse_height(resolution: Optional[str]) -> int:
    """Vertical lines of a "WxH" string, 0 when unresolvable."""
    if not resolution:
        return 0
    match = _RESOLUTION_PATTERN.match(resolution.strip().lower())
    if not match:
        return 0
    return int(match.group(2))


def result_quality_score(result: StreamTestResult) -> int:
    """Single-probe score stored on the channel row after a probe."""
    if not result.is_success or result.bitrate_kbps <= 0:
        return 0
    return clamp_score(100 * result.bitrate_kbps / REFERENCE_BITRATE_KBPS)


def calculate_quality_metrics(
    results: Iterable[StreamTestResult], calculated_at: Optional[datetime] = None
) -> QualityMetrics:
    """
    Score a channel's probe history.

    Args:
        results: Probe results for one channel
        calculated_at: Timestamp stamped on the metrics (defaults to now)

    Returns:
        QualityMetrics; all zeros when there are no results
    """
    results = list(results)
    calculated_at = calculated_at or utc_now()

    if not results:
        return QualityMetrics(
            uptime_percentage=0.0,
            stability_score=0,
            video_quality_score=0,
            geo_availability_score=0,
            overall_score=0,
            calculated_at=calculated_at,
        )

    success_count = sum(1 for r in results if r.is_success)
    uptime_percentage = min(100.0, 100.0 * success_count / len(results))

    average_bitrate = sum(r.bitrate_kbps for r in results) / len(results)
    stability_score = clamp_score(100 * average_bitrate / REFERENCE_BITRATE_KBPS)

    max_height = max((parse_height(resolution) for resolution in {r.resolution for r in results}), default=0)
    video_quality_score = clamp_score(100 * max_height / REFERENCE_HEIGHT) if max_height > 0 else 0

    region_count = len({r.region for r in results})
    geo_availability_score = clamp_score(100 * region_count / REFERENCE_REGION_COUNT)

    overall = (
        uptime_percentage * UPTIME_WEIGHT
        + stability_score * STABILITY_WEIGHT
        + video_quality_score * VIDEO_QUALITY_WEIGHT
        + geo_availability_score * GEO_WEIGHT
    )

    return QualityMetrics(
        uptime_percentage=uptime_percentage,
        stability_score=stability_score,
        video_quality_score=video_quality_score,
        geo_availability_score=geo_availability_score,
        overall_score=clamp_score(overall),
        calculated_at=calculated_at,
    )
