"""
Error handling for the HTTP layer

Provides:
- Consistent JSON error format ({"success": false, "error": ...})
- handle_errors decorator for job and query routes
- Flask error handlers for common HTTP errors
- Database error classification

The pipeline itself never raises for bad playlists or dead streams; errors
reaching this module come from request validation or storage.
"""
import logging
from functools import wraps

from flask import jsonify
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# Error Classes (for raising)
# ============================================================================


class ResourceNotFoundError(Exception):
    """Raise when a requested channel or source doesn't exist (404)"""

    pass


class ValidationError(ValueError):
    """Raise when request input is invalid (400)"""

    def __init__(self, message="", details=None):
        super().__init__(message)
        self.details = details


class ServiceUnavailableError(Exception):
    """Raise when storage or another dependency is unavailable (503)"""

    pass


# Checked in order; first isinstance match decides the response
ERROR_STATUS_CODES = (
    (ServiceUnavailableError, 503, "Service temporarily unavailable"),
    (ResourceNotFoundError, 404, "Resource not found"),
    (ValueError, 400, None),
)


# ============================================================================
# Error Responses
# ============================================================================


def error_response(message, status_code=400, details=None):
    """
    Create a standardized JSON error response

    Returns:
        tuple: (response, status_code)
    """
    response = {"success": False, "error": message}
    if details:
        response["details"] = details
    return jsonify(response), status_code


# ============================================================================
# Error Handler Decorator
# ============================================================================


def handle_errors(default_message="An error occurred"):
    """
    Decorator to turn exceptions raised by a route into JSON error responses

    Usage:
        @sources_bp.route("/api/sources/<source>/ingest", methods=["POST"])
        @handle_errors(default_message="Error ingesting source")
        def ingest_source(source):
            ...

    Args:
        default_message: Message for unexpected errors and exceptions without text
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HTTPException:
                # Let Flask handle abort(), get_or_404(), etc.
                raise
            except SQLAlchemyError as exc:
                message, status_code = handle_db_error(exc, f.__name__)
                return error_response(message, status_code)
            except Exception as exc:
                for error_class, status_code, fallback in ERROR_STATUS_CODES:
                    if isinstance(exc, error_class):
                        logger.warning(f"{error_class.__name__} in {f.__name__}: {exc}")
                        message = str(exc) or fallback or default_message
                        return error_response(message, status_code, getattr(exc, "details", None))

                logger.error(f"Unexpected error in {f.__name__}", exc_info=True)
                return error_response(default_message or "An internal error occurred", 500)

        return wrapper

    return decorator


# ============================================================================
# Flask Error Handlers (registered in app.py)
# ============================================================================


def register_error_handlers(app):
    """Register global JSON error handlers for the Flask app"""

    @app.errorhandler(400)
    def bad_request(error):
        return error_response("Bad request", 400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response("Method not allowed", 405)

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        if app.config.get("DEBUG"):
            return error_response(str(error), 500)
        return error_response("An internal error occurred", 500)

    @app.errorhandler(503)
    def service_unavailable(error):
        return error_response("Service temporarily unavailable", 503)


# ============================================================================
# Database Error Helpers
# ============================================================================


def handle_db_error(e, operation="database operation"):
    """
    Classify a database error

    Returns:
        tuple: (error_message, status_code)
    """
    if isinstance(e, IntegrityError):
        logger.warning(f"Database integrity error during {operation}: {e}")
        return "Database constraint violation. Check for duplicates or invalid references.", 400

    if isinstance(e, OperationalError):
        logger.error(f"Database operational error during {operation}: {e}", exc_info=True)
        return "Database is temporarily unavailable", 503

    logger.error(f"Database error during {operation}: {e}", exc_info=True)
    return "A database error occurred", 500
