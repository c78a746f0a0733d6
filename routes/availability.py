"""
Worker availability calendar.

Slots are ``date`` + ``start_time``/``end_time`` strings in HH:MM:SS. Two
slots overlap when one starts before the other ends on the same date.
"""

import re
import logging

from flask import Blueprint, request, jsonify

from models import db, WorkerAvailability, Worker, AVAILABILITY_TYPES
from auth_routes import require_auth, current_role, current_actor, is_admin
from field_mapping import normalize_choice
from helpers import get_or_404, require_fields, apply_updates
from errors import ForbiddenError, ValidationError

logger = logging.getLogger(__name__)

availability_bp = Blueprint("availability", __name__, url_prefix="/api/availability")

TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d$")
DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
BLOCKING_TYPES = ("booked", "unavailable")


def _slot_date(data):
    return data.get("date") or data.get("available_date")


def validate_slot(data):
    """Check one slot payload and return the normalized column values."""
    slot_date = _slot_date(data)
    if not slot_date or not data.get("start_time") or not data.get("end_time"):
        raise ValidationError("date, start_time, and end_time are required")
    if not DATE_REGEX.match(str(slot_date)):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD format")
    start, end = str(data["start_time"]), str(data["end_time"])
    if not TIME_REGEX.match(start) or not TIME_REGEX.match(end):
        raise ValidationError("Invalid time format. Use HH:MM:SS format")
    # Zero-padded HH:MM:SS strings compare in time order.
    if end <= start:
        raise ValidationError("end_time must be after start_time")
    availability_type = normalize_choice("availability_type", data.get("availability_type"),
                                         AVAILABILITY_TYPES) or "available"
    return {
        "date": slot_date,
        "start_time": start,
        "end_time": end,
        "availability_type": availability_type,
        "booking_id": data.get("booking_id"),
        "notes": data.get("notes"),
    }


def overlapping_slots(worker_id, slot_date, start, end, exclude_id=None):
    query = WorkerAvailability.query.filter(
        WorkerAvailability.worker_id == worker_id,
        WorkerAvailability.date == slot_date,
        WorkerAvailability.start_time < end,
        WorkerAvailability.end_time > start,
    )
    if exclude_id:
        query = query.filter(WorkerAvailability.id != exclude_id)
    return query.order_by(WorkerAvailability.start_time).all()


def _target_worker_id(data):
    """Workers always act on their own calendar; admins name the worker."""
    if is_admin():
        require_fields(data, ["worker_id"])
        return get_or_404(Worker, data["worker_id"], "Worker").id
    if current_role() != "worker":
        raise ForbiddenError()
    return current_actor("worker").id


def _check_owner(slot):
    if is_admin():
        return
    if current_role() != "worker" or slot.worker_id != current_actor("worker").id:
        raise ForbiddenError()


@availability_bp.route("/worker/<worker_id>", methods=["GET"])
@require_auth
def list_worker_availability(worker_id, user_id):
    query = WorkerAvailability.query.filter(WorkerAvailability.worker_id == worker_id)
    if request.args.get("start_date"):
        query = query.filter(WorkerAvailability.date >= request.args["start_date"])
    if request.args.get("end_date"):
        query = query.filter(WorkerAvailability.date <= request.args["end_date"])
    if request.args.get("availability_type"):
        query = query.filter(WorkerAvailability.availability_type == request.args["availability_type"])
    slots = query.order_by(WorkerAvailability.date, WorkerAvailability.start_time).all()
    return jsonify({"success": True, "data": [s.to_dict() for s in slots], "count": len(slots)})


@availability_bp.route("/<slot_id>", methods=["GET"])
@require_auth
def get_availability(slot_id, user_id):
    slot = get_or_404(WorkerAvailability, slot_id, "Availability slot")
    return jsonify({"success": True, "data": slot.to_dict()})


@availability_bp.route("/check", methods=["POST"])
@require_auth
def check_availability(user_id):
    data = request.get_json() or {}
    slot_date = _slot_date(data)
    if not data.get("worker_id") or not slot_date or not data.get("start_time") or not data.get("end_time"):
        raise ValidationError("worker_id, date, start_time, and end_time are required")

    conflicts = overlapping_slots(data["worker_id"], slot_date, data["start_time"], data["end_time"])
    return jsonify({
        "success": True,
        "data": {
            "is_available": not any(s.availability_type in BLOCKING_TYPES for s in conflicts),
            "conflicts": [s.to_dict() for s in conflicts],
        },
    })


@availability_bp.route("", methods=["POST"])
@require_auth
def create_availability(user_id):
    data = request.get_json() or {}
    worker_id = _target_worker_id(data)
    slot = WorkerAvailability(worker_id=worker_id, **validate_slot(data))
    db.session.add(slot)
    db.session.commit()
    return jsonify({"success": True, "data": slot.to_dict(), "message": "Availability created"}), 201


@availability_bp.route("/bulk", methods=["POST"])
@require_auth
def create_bulk_availability(user_id):
    data = request.get_json() or {}
    slots = data.get("slots")
    if not isinstance(slots, list) or not slots:
        raise ValidationError("slots array is required")
    worker_id = _target_worker_id(data)

    # Validate everything before inserting anything.
    rows = [WorkerAvailability(worker_id=worker_id, **validate_slot(slot)) for slot in slots]
    db.session.add_all(rows)
    db.session.commit()
    logger.info("Created %d availability slots for worker %s", len(rows), worker_id)
    return jsonify({
        "success": True,
        "data": [r.to_dict() for r in rows],
        "count": len(rows),
        "message": "Availability slots created",
    }), 201


@availability_bp.route("/<slot_id>", methods=["PUT"])
@require_auth
def update_availability(slot_id, user_id):
    slot = get_or_404(WorkerAvailability, slot_id, "Availability slot")
    _check_owner(slot)
    data = request.get_json() or {}

    merged = slot.to_dict()
    merged.update({k: v for k, v in data.items() if v is not None})
    if "available_date" in data and "date" not in data:
        merged["date"] = data["available_date"]
    values = validate_slot(merged)
    updates = {k: v for k, v in values.items() if k in data or (k == "date" and "available_date" in data)}

    if not apply_updates(slot, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": slot.to_dict(), "message": "Availability updated"})


@availability_bp.route("/<slot_id>", methods=["DELETE"])
@require_auth
def delete_availability(slot_id, user_id):
    slot = get_or_404(WorkerAvailability, slot_id, "Availability slot")
    _check_owner(slot)
    db.session.delete(slot)
    db.session.commit()
    return jsonify({"success": True, "message": "Availability deleted"})
