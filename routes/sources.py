"""
Source ingestion routes

Provides endpoints for:
- Ingesting playlist text for a source (parse + reconcile + persist)
- Reading a source's reconciliation audit trail
"""
import logging

from flask import Blueprint, jsonify, request

from error_handling import handle_errors
from schemas import IngestRequestSchema, validate_request_data
from services.channel_store import ChannelStore
from services.ingest_service import IngestService

logger = logging.getLogger(__name__)

sources_bp = Blueprint("sources", __name__)


@sources_bp.route("/api/sources/<path:source>/ingest", methods=["POST"])
@handle_errors(default_message="Error ingesting source")
@validate_request_data(IngestRequestSchema)
def ingest_source(source):
    """
    Ingest playlist files for a source.

    Body:
    - files: [{path, content}, ...]
    - or content (+ optional origin_path) for a single playlist
    """
    files = IngestRequestSchema().to_files(request.validated_data)
    stats = IngestService.ingest(source, files)
    return jsonify(stats)


@sources_bp.route("/api/sources/<path:source>/updates", methods=["GET"])
@handle_errors(default_message="Error fetching source updates")
def get_source_updates(source):
    """
    Most recent reconciliation records for a source, newest first.

    Query parameters:
    - limit (optional): Number of records (default: 20, max: 200)
    """
    limit = request.args.get("limit", 20, type=int)
    if limit < 1 or limit > 200:
        raise ValueError("limit must be between 1 and 200")

    updates = ChannelStore.get_source_updates(source, limit=limit)
    metadata = ChannelStore.get_source_metadata(source)

    return jsonify(
        {
            "success": True,
            "source": source,
            "metadata": metadata.to_dict() if metadata else None,
            "updates": [update.to_dict() for update in updates],
        }
    )
