"""
Marshmallow schemas for input validation

Validates the bodies of the job endpoints so malformed requests are rejected
with a 400 before any playlist is parsed or any stream is probed.
"""
from functools import wraps

from flask import jsonify, request
from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates, validates_schema

from models import PipelineConfig

# Upper bounds shared by probe runs and stored pipeline settings
MAX_BATCH_LIMIT = 5000
MAX_TIMEOUT_SECONDS = 120
MAX_PROBE_WORKERS = 64

NUMERIC_CONFIG_LIMITS = {
    "probe_timeout_seconds": MAX_TIMEOUT_SECONDS,
    "probe_max_workers": MAX_PROBE_WORKERS,
    "probe_batch_limit": MAX_BATCH_LIMIT,
}

# ============================================================================
# Ingest Schemas
# ============================================================================


class PlaylistFileSchema(Schema):
    """One playlist file supplied by the upstream fetch"""

    path = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=1024))
    content = fields.Str(required=True)


class IngestRequestSchema(Schema):
    """Schema for ingesting playlist text for a source

    Accepts either a list of files or a single ``content`` / ``origin_path`` pair.
    """

    files = fields.List(fields.Nested(PlaylistFileSchema), load_default=None)
    content = fields.Str(load_default=None, allow_none=True)
    origin_path = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=1024))

    class Meta:
        unknown = EXCLUDE

    @validates_schema
    def validate_payload(self, data, **kwargs):
        """Require at least one playlist"""
        if not data.get("files") and data.get("content") is None:
            raise ValidationError("Provide either 'files' or 'content'", field_name="files")

    def to_files(self, data):
        """Normalise validated data to (origin_path, content) pairs"""
        if data.get("files"):
            return [(item.get("path"), item["content"]) for item in data["files"]]
        return [(data.get("origin_path"), data.get("content") or "")]


# ============================================================================
# Probe Schemas
# ============================================================================


class ProbeRunSchema(Schema):
    """Schema for starting a probe cycle"""

    source = fields.Str(load_default=None, allow_none=True, validate=validate.Length(min=1, max=255))
    limit = fields.Int(load_default=None, allow_none=True, validate=validate.Range(min=0, max=MAX_BATCH_LIMIT))
    region = fields.Str(load_default=None, allow_none=True, validate=validate.Length(min=1, max=100))
    timeout = fields.Float(load_default=None, allow_none=True, validate=validate.Range(min=0.1, max=MAX_TIMEOUT_SECONDS))
    max_workers = fields.Int(load_default=None, allow_none=True, validate=validate.Range(min=1, max=MAX_PROBE_WORKERS))

    class Meta:
        unknown = EXCLUDE

    @validates("region")
    def validate_region(self, value, **kwargs):
        """Region labels are recorded on every result and must not be blank"""
        if value is not None and not value.strip():
            raise ValidationError("Region cannot be empty or whitespace")


# ============================================================================
# Config Schemas
# ============================================================================


class ConfigUpdateSchema(Schema):
    """Schema for updating pipeline configuration values"""

    values = fields.Dict(
        keys=fields.Str(validate=validate.OneOf(list(PipelineConfig.DEFAULTS))),
        values=fields.Raw(),
        required=True,
    )

    @validates("values")
    def validate_values(self, value, **kwargs):
        """Numeric settings must parse and fall within the same bounds as a probe run"""
        for key, upper in NUMERIC_CONFIG_LIMITS.items():
            if key not in value:
                continue
            try:
                number = float(value[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be a number")
            if number <= 0:
                raise ValidationError(f"{key} must be greater than 0")
            if number > upper:
                raise ValidationError(f"{key} must be at most {upper}")


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_request_data(schema_class):
    """
    Decorator to validate request data using a Marshmallow schema

    Usage:
        @probes_bp.route("/api/probes/run", methods=["POST"])
        @validate_request_data(ProbeRunSchema)
        def run_probes():
            data = request.validated_data

    Returns 400 Bad Request with validation errors if data is invalid.
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                schema = schema_class()
                request.validated_data = schema.load(request.get_json(silent=True) or {})
            except ValidationError as err:
                return jsonify({"success": False, "error": "Validation failed", "validation_errors": err.messages}), 400
            return f(*args, **kwargs)

        return wrapper

    return decorator
