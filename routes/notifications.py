"""
In-app notifications for the signed-in user.
"""

from flask import Blueprint, request, jsonify

from models import db, Notification
from auth_routes import require_auth
from helpers import get_or_404, safe_int
from errors import ForbiddenError

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")

DEFAULT_LIMIT = 50


def _own(notification_id, user_id):
    notification = get_or_404(Notification, notification_id, "Notification")
    if notification.user_id != user_id:
        raise ForbiddenError()
    return notification


@notifications_bp.route("", methods=["GET"])
@require_auth
def list_notifications(user_id):
    limit = max(1, min(safe_int(request.args.get("limit"), DEFAULT_LIMIT), 200))
    query = Notification.query.filter(Notification.user_id == user_id)
    if request.args.get("unread_only", "").lower() in ("1", "true", "yes"):
        query = query.filter(Notification.read.is_(False))
    notifications = query.order_by(Notification.created_at.desc()).limit(limit).all()
    return jsonify({
        "success": True,
        "data": [n.to_dict() for n in notifications],
        "count": len(notifications),
    })


@notifications_bp.route("/unread-count", methods=["GET"])
@require_auth
def unread_count(user_id):
    count = Notification.query.filter_by(user_id=user_id, read=False).count()
    return jsonify({"success": True, "data": {"count": count}})


@notifications_bp.route("/read-all", methods=["PUT"])
@require_auth
def mark_all_read(user_id):
    updated = (
        Notification.query.filter_by(user_id=user_id, read=False)
        .update({"read": True}, synchronize_session=False)
    )
    db.session.commit()
    return jsonify({"success": True, "data": {"updated": updated}, "message": "All notifications marked as read"})


@notifications_bp.route("/<notification_id>/read", methods=["PUT"])
@require_auth
def mark_read(notification_id, user_id):
    notification = _own(notification_id, user_id)
    notification.read = True
    db.session.commit()
    return jsonify({"success": True, "data": notification.to_dict()})


@notifications_bp.route("/<notification_id>", methods=["DELETE"])
@require_auth
def delete_notification(notification_id, user_id):
    notification = _own(notification_id, user_id)
    db.session.delete(notification)
    db.session.commit()
    return jsonify({"success": True, "message": "Notification deleted"})
