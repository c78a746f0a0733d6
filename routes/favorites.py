"""
Homeowners' favourite workers.
"""

from flask import Blueprint, request, jsonify

from models import db, Favorite, Worker
from auth_routes import require_role, current_actor, is_admin
from helpers import get_or_404, equality_filters, require_fields
from errors import ForbiddenError, ValidationError, NotFoundError
from notifications import create_notification

favorites_bp = Blueprint("favorites", __name__, url_prefix="/api/favorites")


def _homeowner_id():
    return current_actor("homeowner").id


def _check_owner(favorite):
    if not is_admin() and favorite.homeowner_id != _homeowner_id():
        raise ForbiddenError()


@favorites_bp.route("", methods=["GET"])
@require_role("homeowner", "admin")
def list_favorites(user_id):
    query = Favorite.query
    if is_admin():
        query = equality_filters(query, Favorite, ("homeowner_id", "worker_id"))
    else:
        query = query.filter(Favorite.homeowner_id == _homeowner_id())

    favorites = query.order_by(Favorite.created_at.desc()).all()
    data = []
    for favorite in favorites:
        item = favorite.to_dict()
        worker = db.session.get(Worker, favorite.worker_id)
        if worker:
            item["worker"] = {
                "id": worker.id,
                "full_name": worker.full_name,
                "type_of_work": worker.type_of_work,
                "rating": worker.rating,
                "profile_image_url": worker.profile_image_url,
            }
        data.append(item)
    return jsonify({"success": True, "data": data, "count": len(data)})


@favorites_bp.route("/check/<worker_id>", methods=["GET"])
@require_role("homeowner")
def check_favorite(worker_id, user_id):
    favorite = Favorite.query.filter_by(homeowner_id=_homeowner_id(), worker_id=worker_id).first()
    return jsonify({
        "success": True,
        "data": {"is_favorite": favorite is not None, "favorite_id": favorite.id if favorite else None},
    })


@favorites_bp.route("", methods=["POST"])
@require_role("homeowner")
def add_favorite(user_id):
    data = request.get_json() or {}
    require_fields(data, ["worker_id"])
    worker = get_or_404(Worker, data["worker_id"], "Worker")
    homeowner = current_actor("homeowner")

    if Favorite.query.filter_by(homeowner_id=homeowner.id, worker_id=worker.id).first():
        raise ValidationError("Worker already in favorites")

    favorite = Favorite(homeowner_id=homeowner.id, worker_id=worker.id, notes=data.get("notes"))
    db.session.add(favorite)
    db.session.commit()

    create_notification(
        worker.user_id, "favorite", "Added to Favorites",
        "{} added you to their favorite workers.".format(homeowner.full_name),
        related_id=favorite.id, related_type="favorite",
    )
    return jsonify({"success": True, "data": favorite.to_dict(), "message": "Worker added to favorites"}), 201


@favorites_bp.route("/<favorite_id>", methods=["PUT"])
@require_role("homeowner", "admin")
def update_favorite(favorite_id, user_id):
    favorite = get_or_404(Favorite, favorite_id, "Favorite")
    _check_owner(favorite)
    data = request.get_json() or {}
    if "notes" not in data:
        raise ValidationError("No valid fields provided for update")
    favorite.notes = data["notes"]
    favorite.touch()
    db.session.commit()
    return jsonify({"success": True, "data": favorite.to_dict(), "message": "Favorite updated"})


@favorites_bp.route("/<favorite_id>", methods=["DELETE"])
@require_role("homeowner", "admin")
def remove_favorite(favorite_id, user_id):
    favorite = get_or_404(Favorite, favorite_id, "Favorite")
    _check_owner(favorite)
    db.session.delete(favorite)
    db.session.commit()
    return jsonify({"success": True, "message": "Worker removed from favorites"})


@favorites_bp.route("/worker/<worker_id>", methods=["DELETE"])
@require_role("homeowner")
def remove_favorite_by_worker(worker_id, user_id):
    favorite = Favorite.query.filter_by(homeowner_id=_homeowner_id(), worker_id=worker_id).first()
    if not favorite:
        raise NotFoundError("Favorite not found")
    db.session.delete(favorite)
    db.session.commit()
    return jsonify({"success": True, "message": "Worker removed from favorites"})
