"""
Homeowner profile routes.

A homeowner can only read and update their own row. A worker may read the
homeowner of a booking they are assigned to. Admins manage every row.
"""

import logging

from flask import Blueprint, request, jsonify

from models import db, Homeowner, Booking
from auth_routes import require_auth, require_admin, current_role, current_actor, is_admin
from field_mapping import map_homeowner_fields
from helpers import get_or_404, apply_updates, column_values, equality_filters, require_fields, text_field
from errors import ForbiddenError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

homeowners_bp = Blueprint("homeowners", __name__, url_prefix="/api/homeowners")

HOMEOWNER_FILTERS = ("type_of_residence", "user_id")

ALLOWED_UPDATE_FIELDS = (
    "full_name", "age", "contact_number", "home_address", "type_of_residence",
    "number_of_family_members", "home_composition", "home_composition_details",
    "national_id", "worker_info", "specific_duties", "working_hours_and_schedule",
    "number_of_workers_needed", "preferred_gender", "language_preference",
    "wages_offered", "reason_for_hiring", "special_requirements", "start_date_required",
    "criminal_record_required", "payment_mode", "bank_details", "religious_preferences",
    "smoking_drinking_restrictions", "specific_skills_needed", "selected_days",
    "terms_accepted",
)


def _can_read(homeowner, user_id):
    role = current_role()
    if role == "admin":
        return True
    if role == "homeowner":
        return homeowner.user_id == user_id
    worker = current_actor("worker")
    return Booking.query.filter_by(homeowner_id=homeowner.id, worker_id=worker.id).first() is not None


@homeowners_bp.route("", methods=["GET"])
@require_auth
def list_homeowners(user_id):
    role = current_role()
    if role == "worker":
        raise ForbiddenError()

    query = Homeowner.query
    if role == "homeowner":
        query = query.filter(Homeowner.user_id == user_id)
    else:
        query = equality_filters(query, Homeowner, HOMEOWNER_FILTERS)

    homeowners = query.order_by(Homeowner.created_at.desc()).all()
    return jsonify({"success": True, "data": [h.to_dict() for h in homeowners], "count": len(homeowners)})


@homeowners_bp.route("/<homeowner_id>", methods=["GET"])
@require_auth
def get_homeowner(homeowner_id, user_id):
    homeowner = get_or_404(Homeowner, homeowner_id, "Homeowner")
    if not _can_read(homeowner, user_id):
        raise ForbiddenError()
    return jsonify({"success": True, "data": homeowner.to_dict()})


@homeowners_bp.route("", methods=["POST"])
@require_admin
def create_homeowner(user_id):
    data = request.get_json() or {}
    require_fields(data, ["user_id", "full_name"])
    if Homeowner.query.filter_by(user_id=data["user_id"]).first():
        raise ConflictError("A homeowner profile already exists for this user")

    fields = column_values(Homeowner, map_homeowner_fields(data), protected=("id", "user_id"))
    homeowner = Homeowner(user_id=data["user_id"], full_name=text_field(data, "full_name"),
                          email=data.get("email"), **fields)
    db.session.add(homeowner)
    db.session.commit()
    return jsonify({"success": True, "data": homeowner.to_dict(), "message": "Homeowner created"}), 201


@homeowners_bp.route("/<homeowner_id>", methods=["PUT"])
@require_auth
def update_homeowner(homeowner_id, user_id):
    homeowner = get_or_404(Homeowner, homeowner_id, "Homeowner")
    if not is_admin() and homeowner.user_id != user_id:
        raise ForbiddenError()

    data = request.get_json() or {}
    mapped = map_homeowner_fields(data)
    if data.get("full_name"):
        mapped["full_name"] = text_field(data, "full_name")
    updates = {k: v for k, v in mapped.items() if k in ALLOWED_UPDATE_FIELDS}

    if not apply_updates(homeowner, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": homeowner.to_dict(), "message": "Homeowner updated"})


@homeowners_bp.route("/<homeowner_id>", methods=["DELETE"])
@require_admin
def delete_homeowner(homeowner_id, user_id):
    homeowner = get_or_404(Homeowner, homeowner_id, "Homeowner")
    db.session.delete(homeowner)
    db.session.commit()
    logger.info("Admin %s deleted homeowner %s", user_id, homeowner_id)
    return jsonify({"success": True, "message": "Homeowner deleted"})
