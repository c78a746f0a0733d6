"""
Booking routes.

A booking moves pending -> assigned -> in_progress -> completed. It can be
cancelled while pending and becomes disputed when a dispute is raised on it
before it finishes. Homeowners and workers may only make the moves that
belong to them; admins may set any status.
"""

import logging

from flask import Blueprint, request, jsonify

from models import (
    db, Booking, Homeowner, Worker, UserProfile, BOOKING_STATUSES,
)
from auth_routes import (
    require_auth, require_role, require_admin, current_role, current_actor, is_admin,
)
from helpers import (
    get_or_404, apply_updates, equality_filters, require_fields, parse_amount, check_choice,
)
from errors import ForbiddenError, ValidationError
from fees import fee_breakdown
from notifications import create_notification, send_email
from email_templates import booking_confirmation_html, job_completion_html

logger = logging.getLogger(__name__)

bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")

STATUS_ALIASES = {"accepted": "assigned", "in-progress": "in_progress", "canceled": "cancelled"}

BOOKING_TRANSITIONS = {
    "pending": ("assigned", "cancelled", "disputed"),
    "assigned": ("in_progress", "disputed"),
    "in_progress": ("completed", "disputed"),
    "disputed": (),
    "completed": (),
    "cancelled": (),
}

# Status changes each non-admin role may request through PUT.
ROLE_STATUS_TARGETS = {
    "homeowner": ("cancelled",),
    "worker": ("in_progress", "completed"),
}

EDITABLE_FIELDS = (
    "service_type", "description", "booking_date", "start_time", "end_time",
    "duration_hours", "location", "amount", "special_instructions",
)

BOOKING_FILTERS = ("status", "service_type", "booking_date", "payment_status")


def normalize_status(value):
    status = STATUS_ALIASES.get(str(value).strip().lower(), str(value).strip().lower())
    return check_choice("status", status, BOOKING_STATUSES)


def can_transition(current, target):
    return target == current or target in BOOKING_TRANSITIONS.get(current, ())


def booking_access(booking, user_id, write=False):
    """Raise ForbiddenError unless the caller may see (or change) ``booking``."""
    role = current_role()
    if role == "admin":
        return
    if role == "homeowner":
        if booking.homeowner_id != current_actor("homeowner").id:
            raise ForbiddenError()
        return
    worker = current_actor("worker")
    if booking.worker_id == worker.id:
        return
    # Open bookings are visible to every worker so they can apply.
    if not write and booking.status == "pending" and booking.worker_id is None:
        return
    raise ForbiddenError()


def party_user_ids(booking):
    """Auth user ids of the homeowner and the assigned worker (if any)."""
    homeowner = db.session.get(Homeowner, booking.homeowner_id)
    worker = db.session.get(Worker, booking.worker_id) if booking.worker_id else None
    return (homeowner.user_id if homeowner else None), (worker.user_id if worker else None)


def _notify_status_change(booking, actor_user_id):
    homeowner_uid, worker_uid = party_user_ids(booking)
    title = "Booking {}".format(booking.status.replace("_", " "))
    message = "Booking for {} on {} is now {}.".format(
        booking.service_type, booking.booking_date, booking.status.replace("_", " ")
    )
    for recipient in (homeowner_uid, worker_uid):
        if recipient and recipient != actor_user_id:
            create_notification(recipient, "booking", title, message,
                                related_id=booking.id, related_type="booking")

    if booking.status == "completed" and homeowner_uid:
        profile = UserProfile.query.filter_by(user_id=homeowner_uid).first()
        if profile:
            send_email(profile.email, "Your HouseHelp job is complete",
                       job_completion_html(profile.full_name, booking.id, booking.service_type))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@bookings_bp.route("", methods=["GET"])
@require_auth
def list_bookings(user_id):
    role = current_role()
    query = Booking.query
    if role == "homeowner":
        query = query.filter(Booking.homeowner_id == current_actor("homeowner").id)
    elif role == "worker":
        query = query.filter(Booking.worker_id == current_actor("worker").id)
    else:
        query = equality_filters(query, Booking, ("homeowner_id", "worker_id"))
    query = equality_filters(query, Booking, BOOKING_FILTERS)

    bookings = query.order_by(Booking.created_at.desc()).all()
    return jsonify({"success": True, "data": [b.to_dict() for b in bookings], "count": len(bookings)})


@bookings_bp.route("/open", methods=["GET"])
@require_role("worker", "admin")
def list_open_bookings(user_id):
    query = Booking.query.filter(Booking.status == "pending", Booking.worker_id.is_(None))
    query = equality_filters(query, Booking, ("service_type", "booking_date"))
    bookings = query.order_by(Booking.booking_date.asc()).all()
    return jsonify({"success": True, "data": [b.to_dict() for b in bookings], "count": len(bookings)})


@bookings_bp.route("/<booking_id>", methods=["GET"])
@require_auth
def get_booking(booking_id, user_id):
    booking = get_or_404(Booking, booking_id, "Booking")
    booking_access(booking, user_id)
    return jsonify({"success": True, "data": booking.to_dict()})


@bookings_bp.route("/<booking_id>/fees", methods=["GET"])
@require_auth
def get_booking_fees(booking_id, user_id):
    booking = get_or_404(Booking, booking_id, "Booking")
    booking_access(booking, user_id)
    breakdown = fee_breakdown(booking.amount or 0)
    breakdown["currency"] = booking.currency
    return jsonify({"success": True, "data": breakdown})


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
@bookings_bp.route("", methods=["POST"])
@require_role("homeowner", "admin")
def create_booking(user_id):
    data = request.get_json() or {}

    if is_admin():
        require_fields(data, ["homeowner_id", "service_type", "booking_date"])
        homeowner = get_or_404(Homeowner, data["homeowner_id"], "Homeowner")
    else:
        require_fields(data, ["service_type", "booking_date"])
        homeowner = current_actor("homeowner")

    fields = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
    if "amount" in fields:
        fields["amount"] = parse_amount(fields["amount"])

    booking = Booking(homeowner_id=homeowner.id, status="pending", **fields)
    if is_admin() and data.get("worker_id"):
        get_or_404(Worker, data["worker_id"], "Worker")
        booking.worker_id = data["worker_id"]
        booking.status = "assigned"
    db.session.add(booking)
    db.session.commit()
    logger.info("Booking %s created for homeowner %s", booking.id, homeowner.id)

    send_email(homeowner.email, "Booking received",
               booking_confirmation_html(homeowner.full_name, booking.id, booking.service_type,
                                         booking.booking_date, booking.amount))
    if booking.worker_id:
        _notify_status_change(booking, user_id)
    return jsonify({"success": True, "data": booking.to_dict(), "message": "Booking created"}), 201


@bookings_bp.route("/<booking_id>", methods=["PUT"])
@require_auth
def update_booking(booking_id, user_id):
    booking = get_or_404(Booking, booking_id, "Booking")
    booking_access(booking, user_id, write=True)
    data = request.get_json() or {}
    role = current_role()
    previous_status = booking.status
    updates = {}

    if data.get("status") is not None:
        target = normalize_status(data["status"])
        if role != "admin":
            if target != previous_status and target not in ROLE_STATUS_TARGETS.get(role, ()):
                raise ForbiddenError("You cannot set a booking to {}".format(target))
            if not can_transition(previous_status, target):
                raise ValidationError("Cannot change booking from {} to {}".format(previous_status, target))
        updates["status"] = target

    if role == "homeowner":
        edits = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        if edits and previous_status != "pending":
            raise ValidationError("Only pending bookings can be edited")
        updates.update(edits)
    elif role == "admin":
        updates.update({k: data[k] for k in EDITABLE_FIELDS + ("worker_id",) if k in data})
        if updates.get("worker_id"):
            get_or_404(Worker, updates["worker_id"], "Worker")

    if updates.get("amount") is not None:
        updates["amount"] = parse_amount(updates["amount"])

    if not apply_updates(booking, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()

    if booking.status != previous_status:
        logger.info("Booking %s moved %s -> %s by %s", booking.id, previous_status, booking.status, user_id)
        _notify_status_change(booking, user_id)
    return jsonify({"success": True, "data": booking.to_dict(), "message": "Booking updated"})


@bookings_bp.route("/<booking_id>", methods=["DELETE"])
@require_admin
def delete_booking(booking_id, user_id):
    booking = get_or_404(Booking, booking_id, "Booking")
    db.session.delete(booking)
    db.session.commit()
    logger.info("Admin %s deleted booking %s", user_id, booking_id)
    return jsonify({"success": True, "message": "Booking deleted"})
