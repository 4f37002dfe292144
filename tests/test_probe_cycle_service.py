"""
Tests for probe cycles and metrics maintenance
"""
from datetime import timedelta
from unittest.mock import MagicMock, patch

from conftest import FIXED_NOW, make_channel, make_response, make_session
from models import PipelineConfig
from services.channel_store import ChannelStore
from services.probe_cycle_service import ProbeCycleService, prioritize_channels
from services.records import (
    RESULT_FAILURE,
    RESULT_SUCCESS,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_UNTESTED,
    StreamTestResult,
)
from services.stream_prober import StreamProber

MANIFEST = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=4000000,RESOLUTION=1280x720\nvariant.m3u8\n"


def build_prober(session):
    return StreamProber(session=session, clock=lambda: FIXED_NOW, timer=lambda: 0.0)


class TestPrioritize:
    """Tests for probe ordering"""

    def test_untested_then_inactive_then_active(self):
        active = make_channel("http://example.com/active.ts", status=STATUS_ACTIVE, last_tested=FIXED_NOW)
        inactive = make_channel("http://example.com/inactive.ts", status=STATUS_INACTIVE, last_tested=FIXED_NOW)
        untested = make_channel("http://example.com/untested.ts")

        assert prioritize_channels([active, inactive, untested]) == [untested, inactive, active]

    def test_oldest_tested_first(self):
        recent = make_channel("http://example.com/recent.ts", status=STATUS_ACTIVE, last_tested=FIXED_NOW)
        stale = make_channel(
            "http://example.com/stale.ts", status=STATUS_ACTIVE, last_tested=FIXED_NOW - timedelta(days=2)
        )

        assert prioritize_channels([recent, stale]) == [stale, recent]

    def test_limit(self):
        channels = [make_channel(f"http://example.com/{i}.ts") for i in range(5)]

        assert len(prioritize_channels(channels, 3)) == 3
        assert prioritize_channels(channels, 0) == []


class TestRun:
    """Tests for ProbeCycleService.run"""

    def test_probes_and_updates_channels(self, db):
        session = MagicMock()
        session.head.side_effect = lambda url, **kwargs: make_response(200 if "good" in url else 404)
        session.get.return_value = make_response(200, MANIFEST)
        good = make_channel("http://example.com/good/index.m3u8", source="one")
        bad = make_channel("http://example.com/bad/index.m3u8", source="one")
        ChannelStore.upsert_channels([good, bad])

        summary = ProbeCycleService.run(region="eu-west", prober=build_prober(session))

        assert summary == {"tested": 2, "active": 1, "inactive": 1, "errors": [], "source": "all"}

        stored_good = ChannelStore.get_channel(good.id)
        assert stored_good.status == STATUS_ACTIVE
        assert stored_good.quality_score == 40
        assert stored_good.last_tested == FIXED_NOW

        stored_bad = ChannelStore.get_channel(bad.id)
        assert stored_bad.status == STATUS_INACTIVE
        assert stored_bad.quality_score == 0

        [result] = ChannelStore.get_test_results(good.id)
        assert result.region == "eu-west"
        assert result.bitrate_kbps == 4000

        metrics = ChannelStore.get_quality_metrics(good.id)
        assert metrics.uptime_percentage == 100
        assert metrics.stability_score == 40
        assert metrics.video_quality_score == 67
        assert metrics.geo_availability_score == 33

    def test_filters_by_source(self, db):
        session = make_session()
        ChannelStore.upsert_channels(
            [
                make_channel("http://example.com/one.ts", source="one"),
                make_channel("http://example.com/two.ts", source="two"),
            ]
        )

        summary = ProbeCycleService.run(source="one", prober=build_prober(session))

        assert summary["tested"] == 1
        assert summary["source"] == "one"
        session.head.assert_called_once()
        assert ChannelStore.get_channel(make_channel("http://example.com/two.ts").id).status == STATUS_UNTESTED

    def test_uses_config_defaults(self, db):
        PipelineConfig.set("probe_batch_limit", 1)
        PipelineConfig.set("probe_region", "config-region")
        PipelineConfig.set("probe_timeout_seconds", 3)
        session = make_session()
        ChannelStore.upsert_channels([make_channel(f"http://example.com/{i}.ts") for i in range(3)])

        summary = ProbeCycleService.run(prober=build_prober(session))

        assert summary["tested"] == 1
        _, kwargs = session.head.call_args
        assert kwargs["timeout"] == 3.0
        [channel_id] = ChannelStore.get_channel_ids_with_results()
        assert ChannelStore.get_test_results(channel_id)[0].region == "config-region"

    def test_history_accumulates_across_cycles(self, db):
        channel = make_channel("http://example.com/live/index.m3u8")
        ChannelStore.upsert_channels([channel])

        ProbeCycleService.run(region="a", prober=build_prober(make_session(manifest_body=MANIFEST)))
        ProbeCycleService.run(region="b", prober=build_prober(make_session(head_status=500)))

        assert len(ChannelStore.get_test_results(channel.id)) == 2
        metrics = ChannelStore.get_quality_metrics(channel.id)
        assert metrics.uptime_percentage == 50
        assert metrics.geo_availability_score == 67
        assert ChannelStore.get_channel(channel.id).status == STATUS_INACTIVE

    def test_record_failure_is_collected(self, db):
        ChannelStore.upsert_channels([make_channel("http://example.com/a.ts")])

        with patch.object(ProbeCycleService, "record_result", side_effect=RuntimeError("disk full")):
            summary = ProbeCycleService.run(prober=build_prober(make_session()))

        assert summary["tested"] == 1
        assert len(summary["errors"]) == 1
        assert "disk full" in summary["errors"][0]

    def test_no_channels(self, db):
        session = make_session()

        summary = ProbeCycleService.run(prober=build_prober(session))

        assert summary["tested"] == 0
        session.head.assert_not_called()


class TestMaintenance:
    """Tests for metrics recalculation and test reset"""

    def test_recalculate_all_metrics(self, db):
        channel = make_channel("http://example.com/a.m3u8")
        ChannelStore.upsert_channels([channel, make_channel("http://example.com/never-probed.ts")])
        for offset, status in enumerate([RESULT_SUCCESS, RESULT_FAILURE]):
            ChannelStore.append_test_result(
                StreamTestResult(
                    channel_id=channel.id,
                    status=status,
                    response_time_ms=10,
                    bitrate_kbps=2000 if status == RESULT_SUCCESS else 0,
                    resolution="1920x1080" if status == RESULT_SUCCESS else "unknown",
                    tested_at=FIXED_NOW + timedelta(minutes=offset),
                    region="local",
                )
            )

        summary = ProbeCycleService.recalculate_all_metrics()

        assert summary == {"message": "Metrics calculated", "channels": 1}
        metrics = ChannelStore.get_quality_metrics(channel.id)
        assert metrics.uptime_percentage == 50
        assert metrics.stability_score == 10
        assert metrics.video_quality_score == 100

    def test_reset_tests(self, db):
        channel = make_channel("http://example.com/a.ts", status=STATUS_ACTIVE, quality_score=70, last_tested=FIXED_NOW)
        ChannelStore.upsert_channels([channel])

        summary = ProbeCycleService.reset_tests()

        assert summary == {"message": "All channels reset to untested", "reset": 1}
        stored = ChannelStore.get_channel(channel.id)
        assert stored.status == STATUS_UNTESTED
        assert stored.quality_score == 0
        assert stored.last_tested == FIXED_NOW
