"""
Liveness and database connectivity checks.
"""

import logging

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from models import db
from extensions import limiter

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api")


@health_bp.route("/ping", methods=["GET"])
@limiter.exempt
def ping():
    return jsonify({"message": current_app.config.get("PING_MESSAGE") or "pong"})


@health_bp.route("/health/db", methods=["GET"])
@limiter.exempt
def database_health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database health check failed")
        return jsonify({"success": False, "error": "Database unavailable"}), 503
    return jsonify({"success": True, "data": {"database": "connected"}})
