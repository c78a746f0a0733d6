"""
Issue reports filed by users. Owners see their own reports; admins see all
and are the only ones who can change a report's status.
"""

from flask import Blueprint, request, jsonify

from models import db, Report, Booking, REPORT_STATUSES
from auth_routes import require_auth, require_admin, is_admin
from field_mapping import normalize_choice
from helpers import get_or_404, require_fields, apply_updates, parse_pagination, text_field
from errors import ForbiddenError, ValidationError
from notifications import create_notification, notify_admins

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

OWNER_EDITABLE_FIELDS = ("title", "description", "report_type", "booking_id", "priority")
ADMIN_EDITABLE_FIELDS = OWNER_EDITABLE_FIELDS + ("status", "admin_notes")


def _check_owner(report, user_id):
    if not is_admin() and report.user_id != user_id:
        raise ForbiddenError()


def _list(query):
    query = query.order_by(Report.created_at.desc())
    limit, offset = parse_pagination()
    reports = query.offset(offset).limit(limit).all()
    return jsonify({"success": True, "data": [r.to_dict() for r in reports], "count": len(reports)})


@reports_bp.route("", methods=["GET"])
@require_auth
def list_reports(user_id):
    query = Report.query
    if not is_admin():
        query = query.filter(Report.user_id == user_id)
    elif request.args.get("user_id"):
        query = query.filter(Report.user_id == request.args["user_id"])
    if request.args.get("type"):
        query = query.filter(Report.report_type == request.args["type"])
    if request.args.get("status"):
        query = query.filter(Report.status == request.args["status"])
    return _list(query)


@reports_bp.route("/user/<owner_id>", methods=["GET"])
@require_auth
def list_user_reports(owner_id, user_id):
    if not is_admin() and owner_id != user_id:
        raise ForbiddenError()
    return _list(Report.query.filter(Report.user_id == owner_id))


@reports_bp.route("/<report_id>", methods=["GET"])
@require_auth
def get_report(report_id, user_id):
    report = get_or_404(Report, report_id, "Report")
    _check_owner(report, user_id)
    return jsonify({"success": True, "data": report.to_dict()})


@reports_bp.route("", methods=["POST"])
@require_auth
def create_report(user_id):
    data = request.get_json() or {}
    require_fields(data, ["report_type", "title"])
    if data.get("booking_id"):
        get_or_404(Booking, data["booking_id"], "Booking")

    report = Report(
        user_id=user_id,
        report_type=data["report_type"],
        title=text_field(data, "title"),
        description=data.get("description"),
        booking_id=data.get("booking_id"),
        priority=data.get("priority") or "normal",
        status="open",
    )
    db.session.add(report)
    db.session.commit()

    notify_admins("report", "New Report", report.title, related_id=report.id, related_type="report")
    return jsonify({"success": True, "data": report.to_dict(), "message": "Report submitted"}), 201


@reports_bp.route("/<report_id>", methods=["PUT"])
@require_auth
def update_report(report_id, user_id):
    report = get_or_404(Report, report_id, "Report")
    _check_owner(report, user_id)
    data = request.get_json() or {}

    if not is_admin() and ("status" in data or "admin_notes" in data):
        raise ForbiddenError("Only admins can change a report's status")
    allowed = ADMIN_EDITABLE_FIELDS if is_admin() else OWNER_EDITABLE_FIELDS
    updates = {k: data[k] for k in allowed if k in data}
    if "status" in updates:
        updates["status"] = normalize_choice("status", updates["status"], REPORT_STATUSES)

    previous_status = report.status
    if not apply_updates(report, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()

    if report.status != previous_status and report.user_id != user_id:
        create_notification(
            report.user_id, "report", "Report Updated",
            "Your report \"{}\" is now {}.".format(report.title, report.status.replace("_", " ")),
            related_id=report.id, related_type="report",
        )
    return jsonify({"success": True, "data": report.to_dict(), "message": "Report updated"})


@reports_bp.route("/<report_id>", methods=["DELETE"])
@require_admin
def delete_report(report_id, user_id):
    report = get_or_404(Report, report_id, "Report")
    db.session.delete(report)
    db.session.commit()
    return jsonify({"success": True, "message": "Report deleted"})
