"""
Worker applications for open bookings.

Accepting an application assigns its worker to the booking, rejects every
other pending application for that booking and moves the booking to
``assigned``, all in one transaction. The booking update is conditional on
the booking still being pending and unassigned, so two concurrent
acceptances cannot both succeed.
"""

import logging

from flask import Blueprint, request, jsonify

from models import db, Application, Booking, Worker, Homeowner, utcnow
from auth_routes import require_auth, require_role, current_role, current_actor, is_admin
from helpers import get_or_404, equality_filters, require_fields, apply_updates
from errors import ForbiddenError, ValidationError, ConflictError
from notifications import create_notification, send_email
from email_templates import worker_assignment_html

logger = logging.getLogger(__name__)

applications_bp = Blueprint("applications", __name__, url_prefix="/api/applications")

APPLICATION_FILTERS = ("booking_id", "worker_id", "status")
OPEN_BOOKING_STATUSES = ("pending",)
WORKER_EDITABLE_FIELDS = ("cover_letter", "proposed_rate", "availability_notes")


def _scoped_query():
    role = current_role()
    query = Application.query
    if role == "worker":
        query = query.filter(Application.worker_id == current_actor("worker").id)
    elif role == "homeowner":
        homeowner = current_actor("homeowner")
        query = query.join(Booking, Booking.id == Application.booking_id).filter(
            Booking.homeowner_id == homeowner.id
        )
    return query


def _check_read(application):
    role = current_role()
    if role == "admin":
        return
    if role == "worker":
        if application.worker_id != current_actor("worker").id:
            raise ForbiddenError()
        return
    booking = db.session.get(Booking, application.booking_id)
    if not booking or booking.homeowner_id != current_actor("homeowner").id:
        raise ForbiddenError()


def _check_booking_owner(booking):
    if not is_admin() and booking.homeowner_id != current_actor("homeowner").id:
        raise ForbiddenError()


def _worker_user_id(worker_id):
    worker = db.session.get(Worker, worker_id)
    return worker.user_id if worker else None


def _list(query):
    applications = query.order_by(Application.created_at.desc()).all()
    return jsonify({
        "success": True,
        "data": [a.to_dict() for a in applications],
        "count": len(applications),
    })


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@applications_bp.route("", methods=["GET"])
@require_auth
def list_applications(user_id):
    return _list(equality_filters(_scoped_query(), Application, APPLICATION_FILTERS))


@applications_bp.route("/booking/<booking_id>", methods=["GET"])
@require_auth
def list_booking_applications(booking_id, user_id):
    query = _scoped_query().filter(Application.booking_id == booking_id)
    return _list(equality_filters(query, Application, ("status",)))


@applications_bp.route("/worker/<worker_id>", methods=["GET"])
@require_auth
def list_worker_applications(worker_id, user_id):
    query = _scoped_query().filter(Application.worker_id == worker_id)
    return _list(equality_filters(query, Application, ("status",)))


@applications_bp.route("/<application_id>", methods=["GET"])
@require_auth
def get_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    _check_read(application)
    return jsonify({"success": True, "data": application.to_dict()})


# ---------------------------------------------------------------------------
# Worker actions
# ---------------------------------------------------------------------------
@applications_bp.route("", methods=["POST"])
@require_role("worker", "admin")
def create_application(user_id):
    data = request.get_json() or {}
    if is_admin():
        require_fields(data, ["booking_id", "worker_id"])
        worker = get_or_404(Worker, data["worker_id"], "Worker")
    else:
        require_fields(data, ["booking_id"])
        worker = current_actor("worker")

    booking = get_or_404(Booking, data["booking_id"], "Booking")
    if booking.status not in OPEN_BOOKING_STATUSES or booking.worker_id:
        raise ValidationError("Cannot apply to booking with status: {}".format(booking.status))

    if Application.query.filter_by(booking_id=booking.id, worker_id=worker.id).first():
        raise ValidationError("You have already applied to this booking")

    application = Application(
        booking_id=booking.id,
        worker_id=worker.id,
        status="pending",
        cover_letter=data.get("cover_letter"),
        proposed_rate=data.get("proposed_rate"),
        availability_notes=data.get("availability_notes"),
    )
    db.session.add(application)
    db.session.commit()
    logger.info("Worker %s applied to booking %s", worker.id, booking.id)

    homeowner = db.session.get(Homeowner, booking.homeowner_id)
    if homeowner:
        create_notification(
            homeowner.user_id, "application", "New Application Received",
            "{} applied for your {} booking on {}.".format(worker.full_name, booking.service_type,
                                                          booking.booking_date),
            related_id=application.id, related_type="application",
        )
    return jsonify({"success": True, "data": application.to_dict(), "message": "Application submitted"}), 201


@applications_bp.route("/<application_id>", methods=["PUT"])
@require_role("worker", "admin")
def update_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    _check_read(application)
    if application.status != "pending":
        raise ValidationError("Only pending applications can be edited")

    data = request.get_json() or {}
    updates = {k: data[k] for k in WORKER_EDITABLE_FIELDS if k in data}
    if not apply_updates(application, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": application.to_dict(), "message": "Application updated"})


@applications_bp.route("/<application_id>/withdraw", methods=["PUT"])
@require_role("worker", "admin")
def withdraw_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    _check_read(application)
    if application.status != "pending":
        raise ValidationError("Only pending applications can be withdrawn")

    application.status = "withdrawn"
    application.touch()
    db.session.commit()
    return jsonify({"success": True, "data": application.to_dict(), "message": "Application withdrawn"})


@applications_bp.route("/<application_id>", methods=["DELETE"])
@require_role("worker", "admin")
def delete_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    _check_read(application)
    if application.status != "pending":
        raise ValidationError("Only pending applications can be deleted")

    db.session.delete(application)
    db.session.commit()
    return jsonify({"success": True, "message": "Application deleted"})


# ---------------------------------------------------------------------------
# Homeowner decisions
# ---------------------------------------------------------------------------
@applications_bp.route("/<application_id>/accept", methods=["PUT"])
@require_role("homeowner", "admin")
def accept_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    booking = get_or_404(Booking, application.booking_id, "Booking")
    _check_booking_owner(booking)

    if application.status != "pending":
        raise ValidationError("Only pending applications can be accepted")
    if booking.status not in OPEN_BOOKING_STATUSES or booking.worker_id:
        raise ValidationError("Cannot accept application for booking with status: {}".format(booking.status))

    now = utcnow()
    claimed = (
        Booking.query
        .filter(Booking.id == booking.id, Booking.status == "pending", Booking.worker_id.is_(None))
        .update({"status": "assigned", "worker_id": application.worker_id, "updated_at": now},
                synchronize_session=False)
    )
    if claimed != 1:
        db.session.rollback()
        raise ConflictError("This booking has already been assigned")

    application.status = "accepted"
    application.reviewed_at = now
    application.reviewed_by = user_id
    application.touch()

    siblings = Application.query.filter(
        Application.booking_id == booking.id,
        Application.id != application.id,
        Application.status == "pending",
    ).all()
    for sibling in siblings:
        sibling.status = "rejected"
        sibling.rejection_reason = "Another worker was selected"
        sibling.reviewed_at = now
        sibling.reviewed_by = user_id
    db.session.commit()
    db.session.refresh(booking)
    logger.info("Application %s accepted; booking %s assigned, %d siblings rejected",
                application.id, booking.id, len(siblings))

    worker = db.session.get(Worker, application.worker_id)
    if worker:
        create_notification(
            worker.user_id, "application", "Application Accepted",
            "Your application for the {} booking on {} was accepted.".format(booking.service_type,
                                                                              booking.booking_date),
            priority="high", related_id=booking.id, related_type="booking",
        )
        send_email(worker.email, "You have been assigned a job",
                   worker_assignment_html(worker.full_name, booking.service_type,
                                          booking.booking_date, booking.location))
    for sibling in siblings:
        create_notification(
            _worker_user_id(sibling.worker_id), "application", "Application Not Selected",
            "Another worker was selected for the {} booking on {}.".format(booking.service_type,
                                                                           booking.booking_date),
            related_id=sibling.id, related_type="application",
        )

    return jsonify({
        "success": True,
        "data": {"application": application.to_dict(), "booking": booking.to_dict()},
        "message": "Application accepted",
    })


@applications_bp.route("/<application_id>/reject", methods=["PUT"])
@require_role("homeowner", "admin")
def reject_application(application_id, user_id):
    application = get_or_404(Application, application_id, "Application")
    booking = get_or_404(Booking, application.booking_id, "Booking")
    _check_booking_owner(booking)
    if application.status != "pending":
        raise ValidationError("Only pending applications can be rejected")

    data = request.get_json(silent=True) or {}
    application.status = "rejected"
    application.rejection_reason = data.get("rejection_reason") or "Not selected"
    application.reviewed_at = utcnow()
    application.reviewed_by = user_id
    application.touch()
    db.session.commit()

    create_notification(
        _worker_user_id(application.worker_id), "application", "Application Not Selected",
        "Your application for the {} booking was not selected: {}".format(
            booking.service_type, application.rejection_reason),
        related_id=application.id, related_type="application",
    )
    return jsonify({"success": True, "data": application.to_dict(), "message": "Application rejected"})
