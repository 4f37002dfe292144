"""
Probe and quality routes

Provides endpoints for:
- Running a probe cycle
- Recalculating quality metrics from probe history
- Resetting channels to untested
- Viewing a channel's quality details
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import ResourceNotFoundError, handle_errors
from schemas import ProbeRunSchema, validate_request_data
from services.channel_store import ChannelStore
from services.probe_cycle_service import ProbeCycleService

logger = logging.getLogger(__name__)

probes_bp = Blueprint("probes", __name__)

RECENT_RESULTS_LIMIT = 20


@probes_bp.route("/api/probes/run", methods=["POST"])
@handle_errors(default_message="Error running probe cycle")
@validate_request_data(ProbeRunSchema)
def run_probes():
    """
    Probe a batch of channels.

    Body (all optional): source, limit, region, timeout, max_workers.
    Missing values come from the pipeline config.
    """
    data = request.validated_data
    summary = ProbeCycleService.run(
        source=data.get("source"),
        limit=data.get("limit"),
        region=data.get("region"),
        timeout=data.get("timeout"),
        max_workers=data.get("max_workers"),
    )
    return jsonify({"success": True, **summary})


@probes_bp.route("/api/metrics/recalculate", methods=["POST"])
@handle_errors(default_message="Error recalculating metrics")
def recalculate_metrics():
    """Recompute quality metrics for every channel with probe history"""
    return jsonify({"success": True, **ProbeCycleService.recalculate_all_metrics()})


@probes_bp.route("/api/channels/reset-tests", methods=["POST"])
@handle_errors(default_message="Error resetting channel tests")
def reset_tests():
    """Mark all channels untested so the next cycle probes them first"""
    return jsonify({"success": True, **ProbeCycleService.reset_tests()})


@probes_bp.route("/api/channels/<channel_id>/quality", methods=["GET"])
@handle_errors(default_message="Error fetching channel quality")
def get_channel_quality(channel_id):
    """Channel record, current metrics and most recent probe results"""
    channel = ChannelStore.get_channel(channel_id)
    if channel is None:
        raise ResourceNotFoundError(f"Channel {channel_id} not found")

    metrics = ChannelStore.get_quality_metrics(channel_id)
    results = ChannelStore.get_test_results(channel_id, limit=RECENT_RESULTS_LIMIT)

    return jsonify(
        {
            "success": True,
            "channel": channel.to_dict(),
            "metrics": metrics.to_dict() if metrics else None,
            "recentResults": [result.to_dict() for result in reversed(results)],
        }
    )
