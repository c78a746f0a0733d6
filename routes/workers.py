"""
Worker profile routes.

Admins see and manage every worker. A worker sees and edits only their own
row. Homeowners may read a single worker's public profile (without bank,
identity or health details) but cannot list them.
"""

import logging

from flask import Blueprint, request, jsonify

from models import db, Worker
from auth_routes import require_auth, require_admin, current_role, is_admin
from field_mapping import map_worker_fields
from helpers import get_or_404, apply_updates, column_values, equality_filters, require_fields, text_field
from errors import ForbiddenError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

workers_bp = Blueprint("workers", __name__, url_prefix="/api/workers")

WORKER_FILTERS = ("verification_status", "type_of_work", "gender", "user_id")
ADMIN_ONLY_FIELDS = ("verification_status", "rating")
PROTECTED_FIELDS = ("id", "user_id", "email", "created_at", "updated_at")
PRIVATE_FIELDS = (
    "national_id", "bank_account_number", "account_holder_name", "health_condition",
    "criminal_record_url", "emergency_contact_name", "emergency_contact_phone", "date_of_birth",
)


@workers_bp.route("", methods=["GET"])
@require_auth
def list_workers(user_id):
    role = current_role()
    if role == "homeowner":
        raise ForbiddenError()

    query = Worker.query
    if role == "worker":
        query = query.filter(Worker.user_id == user_id)
    else:
        query = equality_filters(query, Worker, WORKER_FILTERS)

    workers = query.order_by(Worker.created_at.desc()).all()
    return jsonify({"success": True, "data": [w.to_dict() for w in workers], "count": len(workers)})


@workers_bp.route("/<worker_id>", methods=["GET"])
@require_auth
def get_worker(worker_id, user_id):
    worker = get_or_404(Worker, worker_id, "Worker")
    role = current_role()
    if role == "worker" and worker.user_id != user_id:
        raise ForbiddenError()
    if role == "homeowner":
        return jsonify({"success": True, "data": worker.to_dict(exclude=PRIVATE_FIELDS)})
    return jsonify({"success": True, "data": worker.to_dict()})


@workers_bp.route("", methods=["POST"])
@require_admin
def create_worker(user_id):
    data = request.get_json() or {}
    require_fields(data, ["user_id", "full_name"])
    if Worker.query.filter_by(user_id=data["user_id"]).first():
        raise ConflictError("A worker profile already exists for this user")

    fields = column_values(Worker, map_worker_fields(data), protected=("id", "user_id"))
    worker = Worker(user_id=data["user_id"], full_name=text_field(data, "full_name"),
                    email=data.get("email"), **fields)
    db.session.add(worker)
    db.session.commit()
    logger.info("Admin %s created worker %s", user_id, worker.id)
    return jsonify({"success": True, "data": worker.to_dict(), "message": "Worker created"}), 201


@workers_bp.route("/<worker_id>", methods=["PUT"])
@require_auth
def update_worker(worker_id, user_id):
    worker = get_or_404(Worker, worker_id, "Worker")
    if not is_admin() and worker.user_id != user_id:
        raise ForbiddenError()

    data = request.get_json() or {}
    fields = map_worker_fields(data)
    # full_name is excluded from generic mapping; profile owners may still rename themselves.
    if data.get("full_name"):
        fields["full_name"] = text_field(data, "full_name")
    protected = PROTECTED_FIELDS if is_admin() else PROTECTED_FIELDS + ADMIN_ONLY_FIELDS

    if not apply_updates(worker, fields, protected):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": worker.to_dict(), "message": "Worker updated"})


@workers_bp.route("/<worker_id>", methods=["DELETE"])
@require_admin
def delete_worker(worker_id, user_id):
    worker = get_or_404(Worker, worker_id, "Worker")
    db.session.delete(worker)
    db.session.commit()
    logger.info("Admin %s deleted worker %s", user_id, worker_id)
    return jsonify({"success": True, "message": "Worker deleted"})
