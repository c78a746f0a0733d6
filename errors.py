"""
Application-wide exception hierarchy and Flask error handlers.

Route code raises these with messages that are safe to show to end users.
Anything else (database errors, provider errors, bugs) is logged in full
and answered with one of the fixed SAFE_MESSAGES.
"""

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

SAFE_MESSAGES = {
    "database": "A database error occurred",
    "internal": "Internal server error",
    "auth_provider": "Authentication service is unavailable",
    "gateway": "Payment provider request failed",
    "rate_limited": "Too many requests. Please try again later.",
}


class ApiError(Exception):
    """Base error carrying an HTTP status and a user-safe message."""

    status_code = 500

    def __init__(self, message, status_code=None, code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.code = code

    def to_dict(self):
        body = {"success": False, "error": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403

    def __init__(self, message="Forbidden", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class UpstreamError(ApiError):
    status_code = 502


def register_error_handlers(app):
    from models import db

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": SAFE_MESSAGES["database"]}), 500

    @app.errorhandler(429)
    def ratelimit_handler(e):
        # Retry-After header is set by Flask-Limiter; read it back.
        retry_after = dict(e.get_headers()).get("Retry-After") if hasattr(e, "get_headers") else None
        return jsonify({
            "success": False,
            "error": SAFE_MESSAGES["rate_limited"],
            "retry_after": int(retry_after) if retry_after else 900,
        }), 429

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "error": SAFE_MESSAGES["internal"]}), 500
