"""
Dispute routes.

The homeowner or the assigned worker of a booking can raise a dispute
against the other party; admins can raise one against either party.
Admins move it open -> investigating -> resolved/closed/escalated and pick a
resolution action; refund actions mark the booking's payment refunded.
"""

import logging

from flask import Blueprint, request, jsonify
from sqlalchemy import func, or_

from models import (
    db, Dispute, Booking, Payment, utcnow,
    DISPUTE_CATEGORIES, DISPUTE_STATUSES, DISPUTE_PRIORITIES, RESOLUTION_ACTIONS,
    BOOKING_TERMINAL_STATUSES,
)
from auth_routes import require_auth, require_admin, is_admin
from field_mapping import normalize_choice
from helpers import (
    get_or_404, equality_filters, require_fields, apply_updates, parse_amount, text_field,
)
from errors import ForbiddenError, ValidationError, ConflictError
from notifications import create_notification, notify_admins
from routes.bookings import party_user_ids

logger = logging.getLogger(__name__)

disputes_bp = Blueprint("disputes", __name__, url_prefix="/api/disputes")

DISPUTE_FILTERS = ("status", "category", "priority", "booking_id")

DISPUTE_TRANSITIONS = {
    "open": ("investigating", "closed"),
    "investigating": ("resolved", "closed", "escalated"),
    "escalated": ("investigating", "resolved", "closed"),
    "resolved": (),
    "closed": (),
}

REFUND_ACTIONS = ("refund_full", "refund_partial")
ADMIN_EDITABLE_FIELDS = ("priority", "resolution_notes", "title", "description", "category")


def _check_party(dispute, user_id):
    if is_admin() or user_id in (dispute.raised_by, dispute.against_user_id):
        return
    raise ForbiddenError()


def _move(dispute, target):
    if target != dispute.status and target not in DISPUTE_TRANSITIONS.get(dispute.status, ()):
        raise ConflictError("Cannot change dispute from {} to {}".format(dispute.status, target))
    dispute.status = target


def _refund(dispute):
    """Mark the disputed payment refunded. Returns the payment or None."""
    payment = db.session.get(Payment, dispute.payment_id) if dispute.payment_id else None
    if payment is None or payment.booking_id != dispute.booking_id or payment.status != "success":
        payment = Payment.query.filter_by(booking_id=dispute.booking_id, status="success").first()
    if payment is None:
        return None
    payment.status = "refunded"
    payment.refunded_at = utcnow()
    payment.touch()
    dispute.payment_id = payment.id
    booking = db.session.get(Booking, payment.booking_id) if payment.booking_id else None
    if booking:
        booking.payment_status = "refunded"
        booking.touch()
    return payment


@disputes_bp.route("", methods=["GET"])
@require_auth
def list_disputes(user_id):
    query = Dispute.query
    if not is_admin():
        query = query.filter(or_(Dispute.raised_by == user_id, Dispute.against_user_id == user_id))
    else:
        query = equality_filters(query, Dispute, ("raised_by", "against_user_id", "assigned_admin_id"))
    query = equality_filters(query, Dispute, DISPUTE_FILTERS)
    disputes = query.order_by(Dispute.created_at.desc()).all()
    return jsonify({"success": True, "data": [d.to_dict() for d in disputes], "count": len(disputes)})


@disputes_bp.route("/stats/summary", methods=["GET"])
@require_admin
def dispute_stats(user_id):
    by_status = dict.fromkeys(DISPUTE_STATUSES, 0)
    for status, count in db.session.query(Dispute.status, func.count(Dispute.id)).group_by(Dispute.status):
        by_status[status] = count
    by_category = dict.fromkeys(DISPUTE_CATEGORIES, 0)
    for category, count in db.session.query(Dispute.category, func.count(Dispute.id)).group_by(Dispute.category):
        by_category[category] = count
    return jsonify({
        "success": True,
        "data": {"total": sum(by_status.values()), "by_status": by_status, "by_category": by_category},
    })


@disputes_bp.route("/<dispute_id>", methods=["GET"])
@require_auth
def get_dispute(dispute_id, user_id):
    dispute = get_or_404(Dispute, dispute_id, "Dispute")
    _check_party(dispute, user_id)
    return jsonify({"success": True, "data": dispute.to_dict()})


@disputes_bp.route("", methods=["POST"])
@require_auth
def create_dispute(user_id):
    data = request.get_json() or {}
    require_fields(data, ["booking_id", "against_user_id", "category", "title", "description"])
    category = normalize_choice("category", data["category"], DISPUTE_CATEGORIES)
    priority = normalize_choice("priority", data.get("priority"), DISPUTE_PRIORITIES) or "normal"
    if data["against_user_id"] == user_id:
        raise ValidationError("You cannot raise a dispute against yourself")

    booking = get_or_404(Booking, data["booking_id"], "Booking")
    homeowner_uid, worker_uid = party_user_ids(booking)
    if is_admin():
        respondents = {homeowner_uid, worker_uid} - {None}
    elif user_id == homeowner_uid:
        respondents = {worker_uid} - {None}
    elif user_id == worker_uid:
        respondents = {homeowner_uid} - {None}
    else:
        raise ForbiddenError()
    if data["against_user_id"] not in respondents:
        raise ValidationError("against_user_id must be the other party to this booking")

    if data.get("payment_id"):
        payment = get_or_404(Payment, data["payment_id"], "Payment")
        if payment.booking_id != booking.id:
            raise ValidationError("Payment does not belong to this booking")

    dispute = Dispute(
        booking_id=booking.id,
        payment_id=data.get("payment_id"),
        raised_by=user_id,
        against_user_id=data["against_user_id"],
        category=category,
        title=text_field(data, "title"),
        description=data["description"],
        evidence_urls=data.get("evidence_urls"),
        priority=priority,
        status="open",
    )
    db.session.add(dispute)
    if booking.status not in BOOKING_TERMINAL_STATUSES and booking.status != "disputed":
        booking.status = "disputed"
        booking.touch()
    db.session.commit()
    logger.info("Dispute %s raised on booking %s by %s", dispute.id, booking.id, user_id)

    create_notification(
        dispute.against_user_id, "dispute", "Dispute Raised",
        "A dispute was raised about your booking: {}".format(dispute.title),
        priority="high", related_id=dispute.id, related_type="dispute",
    )
    notify_admins("dispute", "New Dispute", dispute.title, priority=priority,
                  related_id=dispute.id, related_type="dispute")
    return jsonify({"success": True, "data": dispute.to_dict(), "message": "Dispute created"}), 201


@disputes_bp.route("/<dispute_id>", methods=["PUT"])
@require_admin
def update_dispute(dispute_id, user_id):
    dispute = get_or_404(Dispute, dispute_id, "Dispute")
    data = request.get_json() or {}
    updates = {k: data[k] for k in ADMIN_EDITABLE_FIELDS if k in data}
    if "priority" in updates:
        updates["priority"] = normalize_choice("priority", updates["priority"], DISPUTE_PRIORITIES)
    if "category" in updates:
        updates["category"] = normalize_choice("category", updates["category"], DISPUTE_CATEGORIES)

    changed = apply_updates(dispute, updates)
    if data.get("status"):
        _move(dispute, normalize_choice("status", data["status"], DISPUTE_STATUSES))
        dispute.touch()
        changed.append("status")
    if not changed:
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": dispute.to_dict(), "message": "Dispute updated"})


@disputes_bp.route("/<dispute_id>/assign", methods=["PUT"])
@require_admin
def assign_dispute(dispute_id, user_id):
    dispute = get_or_404(Dispute, dispute_id, "Dispute")
    data = request.get_json(silent=True) or {}
    if dispute.status != "investigating":
        _move(dispute, "investigating")
    dispute.assigned_admin_id = data.get("admin_id") or user_id
    dispute.touch()
    db.session.commit()
    return jsonify({"success": True, "data": dispute.to_dict(), "message": "Dispute assigned"})


@disputes_bp.route("/<dispute_id>/resolve", methods=["PUT"])
@require_admin
def resolve_dispute(dispute_id, user_id):
    dispute = get_or_404(Dispute, dispute_id, "Dispute")
    data = request.get_json() or {}
    require_fields(data, ["resolution_action"])
    action = normalize_choice("resolution_action", data["resolution_action"], RESOLUTION_ACTIONS)

    if dispute.status == "open":
        dispute.status = "investigating"
    _move(dispute, "resolved")
    dispute.resolution_action = action
    dispute.resolution_notes = data.get("resolution_notes")
    dispute.resolved_by = user_id
    dispute.resolved_at = utcnow()

    payment = None
    if action in REFUND_ACTIONS:
        payment = _refund(dispute)
        if payment is not None:
            if action == "refund_partial" and data.get("refund_amount") is not None:
                dispute.refund_amount = parse_amount(data["refund_amount"], field="refund_amount")
            else:
                dispute.refund_amount = payment.amount
    dispute.touch()
    db.session.commit()
    logger.info("Dispute %s resolved with %s by %s", dispute.id, action, user_id)

    message = "Dispute resolved: {}".format(action.replace("_", " "))
    for recipient in (dispute.raised_by, dispute.against_user_id):
        create_notification(recipient, "dispute", "Dispute Resolved", message,
                            priority="high", related_id=dispute.id, related_type="dispute")
    return jsonify({
        "success": True,
        "data": {"dispute": dispute.to_dict(), "payment": payment.to_dict() if payment else None},
        "message": "Dispute resolved",
    })


@disputes_bp.route("/<dispute_id>", methods=["DELETE"])
@require_admin
def delete_dispute(dispute_id, user_id):
    dispute = get_or_404(Dispute, dispute_id, "Dispute")
    db.session.delete(dispute)
    db.session.commit()
    return jsonify({"success": True, "message": "Dispute deleted"})
