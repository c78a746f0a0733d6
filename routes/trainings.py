"""
Training sessions offered to workers. Readable by any signed-in user,
managed by admins.
"""

from flask import Blueprint, request, jsonify

from models import db, Training
from auth_routes import require_auth, require_admin
from helpers import get_or_404, equality_filters, require_fields, apply_updates, column_values
from errors import ValidationError

trainings_bp = Blueprint("trainings", __name__, url_prefix="/api/trainings")

PROTECTED = ("id", "created_at", "updated_at", "created_by")


@trainings_bp.route("", methods=["GET"])
@require_auth
def list_trainings(user_id):
    query = equality_filters(Training.query, Training, ("category", "status"))
    trainings = query.order_by(Training.start_date.desc()).all()
    return jsonify({"success": True, "data": [t.to_dict() for t in trainings], "count": len(trainings)})


@trainings_bp.route("/<training_id>", methods=["GET"])
@require_auth
def get_training(training_id, user_id):
    training = get_or_404(Training, training_id, "Training")
    return jsonify({"success": True, "data": training.to_dict()})


@trainings_bp.route("", methods=["POST"])
@require_admin
def create_training(user_id):
    data = request.get_json() or {}
    require_fields(data, ["title"])
    training = Training(created_by=user_id, **column_values(Training, data, PROTECTED))
    db.session.add(training)
    db.session.commit()
    return jsonify({"success": True, "data": training.to_dict(), "message": "Training created"}), 201


@trainings_bp.route("/<training_id>", methods=["PUT"])
@require_admin
def update_training(training_id, user_id):
    training = get_or_404(Training, training_id, "Training")
    if not apply_updates(training, request.get_json() or {}, protected=PROTECTED):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": training.to_dict(), "message": "Training updated"})


@trainings_bp.route("/<training_id>", methods=["DELETE"])
@require_admin
def delete_training(training_id, user_id):
    training = get_or_404(Training, training_id, "Training")
    db.session.delete(training)
    db.session.commit()
    return jsonify({"success": True, "message": "Training deleted"})
