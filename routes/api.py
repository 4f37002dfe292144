"""
Misc API routes for health and pipeline configuration
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import ServiceUnavailableError, handle_errors
from models import PipelineConfig
from schemas import ConfigUpdateSchema, validate_request_data
from services.channel_store import ChannelStore

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/api/health", methods=["GET"])
@handle_errors(default_message="Health check failed")
def health():
    """Report whether storage is reachable"""
    if not ChannelStore.ping():
        raise ServiceUnavailableError("Storage is unavailable")
    return jsonify({"success": True, "status": "ok"})


@api_bp.route("/api/config", methods=["GET"])
@handle_errors(default_message="Error fetching config")
def get_config():
    """All pipeline settings with descriptions, defaults included"""
    return jsonify({"success": True, "config": PipelineConfig.get_all()})


@api_bp.route("/api/config", methods=["PUT"])
@handle_errors(default_message="Error updating config")
@validate_request_data(ConfigUpdateSchema)
def update_config():
    """
    Update pipeline settings.

    Body: {"values": {"probe_timeout_seconds": 5, ...}}
    """
    values = request.validated_data["values"]
    for key, value in values.items():
        PipelineConfig.set(key, value)
    logger.info(f"Updated pipeline config: {', '.join(sorted(values))}")
    return jsonify({"success": True, "config": PipelineConfig.get_all()})
