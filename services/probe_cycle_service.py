"""
Probe Cycle Service - tests a batch of channels and updates their scores.

A cycle:
1. Picks channels to probe (untested first, then inactive, then active;
   least recently tested first within a status)
2. Probes them on a bounded worker pool
3. For each result, as soon as it arrives: appends it to history, patches the
   channel's status/last_tested/quality_score and recomputes its metrics

Each channel is persisted as its own unit, so an interrupted cycle leaves
only complete per-channel writes behind.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from models import PipelineConfig
from services.channel_store import ChannelStore
from services.quality_scorer import calculate_quality_metrics, result_quality_score
from services.records import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_UNTESTED,
    ChannelRecord,
    ProbeBatchStats,
    StreamTestResult,
)
from services.stream_prober import StreamProber

logger = logging.getLogger(__name__)

_STATUS_PRIORITY = {STATUS_UNTESTED: 0, STATUS_INACTIVE: 1, STATUS_ACTIVE: 2}
_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def prioritize_channels(channels: List[ChannelRecord], limit: Optional[int] = None) -> List[ChannelRecord]:
    """Order channels for probing and truncate to ``limit``."""

    def sort_key(channel: ChannelRecord):
        last_tested = channel.last_tested or _NEVER
        if last_tested.tzinfo is None:
            last_tested = last_tested.replace(tzinfo=timezone.utc)
        return (_STATUS_PRIORITY.get(channel.status, len(_STATUS_PRIORITY)), last_tested, channel.id)

    ordered = sorted(channels, key=sort_key)
    if limit is not None and limit >= 0:
        ordered = ordered[:limit]
    return ordered


class ProbeCycleService:
    """Service for running probe cycles and maintaining quality metrics"""

    @staticmethod
    def build_prober() -> StreamProber:
        return StreamProber(user_agent=PipelineConfig.get("probe_user_agent"))

    @staticmethod
    def record_result(result: StreamTestResult) -> None:
        """Persist one probe result and everything derived from it."""
        ChannelStore.append_test_result(result)
        ChannelStore.patch_channel(
            result.channel_id,
            status=STATUS_ACTIVE if result.is_success else STATUS_INACTIVE,
            last_tested=result.tested_at,
            quality_score=result_quality_score(result),
        )
        history = ChannelStore.get_test_results(result.channel_id)
        ChannelStore.save_quality_metrics(result.channel_id, calculate_quality_metrics(history))

    @staticmethod
    def run(
        source: Optional[str] = None,
        limit: Optional[int] = None,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
        prober: Optional[StreamProber] = None,
    ) -> Dict:
        """
        Probe a batch of channels and persist the outcome.

        Args:
            source: Only probe this source's channels (None for all)
            limit: Maximum channels in the batch (default from config)
            region: Region label for the results (default from config)
            timeout: Per-step timeout in seconds (default from config)
            max_workers: Worker pool size (default from config)
            prober: StreamProber to use (built from config when omitted)

        Returns:
            Dict with tested/active/inactive counts
        """
        limit = limit if limit is not None else PipelineConfig.get_int("probe_batch_limit", 50)
        region = region or PipelineConfig.get("probe_region", "local")
        timeout = timeout or PipelineConfig.get_float("probe_timeout_seconds", 10.0)
        max_workers = max_workers or PipelineConfig.get_int("probe_max_workers", 8)
        prober = prober or ProbeCycleService.build_prober()

        channels = ChannelStore.get_channels_by_source(source) if source else ChannelStore.get_all_channels()
        batch = prioritize_channels(channels, limit)
        stats = ProbeBatchStats()

        logger.info(f"Starting probe cycle for {source or 'all sources'}: {len(batch)} of {len(channels)} channels")

        def on_result(result: StreamTestResult):
            stats.tested += 1
            if result.is_success:
                stats.active += 1
            else:
                stats.inactive += 1
            try:
                ProbeCycleService.record_result(result)
            except Exception as e:
                logger.error(f"Failed to record probe result for channel {result.channel_id}: {e}")
                stats.errors.append(f"Channel {result.channel_id}: {str(e)}")

        prober.probe_many(batch, region=region, timeout=timeout, max_workers=max_workers, on_result=on_result)

        logger.info(
            f"Probe cycle completed for {source or 'all sources'}: "
            f"{stats.tested} tested, {stats.active} active, {stats.inactive} inactive"
        )

        summary = stats.to_dict()
        summary["source"] = source or "all"
        return summary

    @staticmethod
    def recalculate_all_metrics() -> Dict:
        """Recompute metrics for every channel that has probe history."""
        updated = 0
        for channel_id in ChannelStore.get_channel_ids_with_results():
            history = ChannelStore.get_test_results(channel_id)
            if not history:
                continue
            ChannelStore.save_quality_metrics(channel_id, calculate_quality_metrics(history))
            updated += 1

        logger.info(f"Recalculated quality metrics for {updated} channels")
        return {"message": "Metrics calculated", "channels": updated}

    @staticmethod
    def reset_tests() -> Dict:
        """Mark every channel untested with a zero score; probe history is kept."""
        reset = 0
        for channel in ChannelStore.get_all_channels():
            ChannelStore.patch_channel(channel.id, status=STATUS_UNTESTED, quality_score=0)
            reset += 1

        logger.info(f"Reset {reset} channels to untested")
        return {"message": "All channels reset to untested", "reset": reset}
