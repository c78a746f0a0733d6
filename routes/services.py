"""
Catalogue of services homeowners can book.
"""

from flask import Blueprint, request, jsonify

from models import db, Service
from auth_routes import require_auth, require_admin
from helpers import get_or_404, equality_filters, require_fields, apply_updates, column_values
from errors import ValidationError

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


@services_bp.route("", methods=["GET"])
@require_auth
def list_services(user_id):
    query = equality_filters(Service.query, Service, ("category",))
    if request.args.get("include_inactive", "").lower() not in ("1", "true", "yes"):
        query = query.filter(Service.is_active.is_(True))
    services = query.order_by(Service.name).all()
    return jsonify({"success": True, "data": [s.to_dict() for s in services], "count": len(services)})


@services_bp.route("/<service_id>", methods=["GET"])
@require_auth
def get_service(service_id, user_id):
    service = get_or_404(Service, service_id, "Service")
    return jsonify({"success": True, "data": service.to_dict()})


@services_bp.route("", methods=["POST"])
@require_admin
def create_service(user_id):
    data = request.get_json() or {}
    require_fields(data, ["name"])
    service = Service(**column_values(Service, data, ("id", "created_at", "updated_at")))
    db.session.add(service)
    db.session.commit()
    return jsonify({"success": True, "data": service.to_dict(), "message": "Service created"}), 201


@services_bp.route("/<service_id>", methods=["PUT"])
@require_admin
def update_service(service_id, user_id):
    service = get_or_404(Service, service_id, "Service")
    if not apply_updates(service, request.get_json() or {}):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": service.to_dict(), "message": "Service updated"})


@services_bp.route("/<service_id>", methods=["DELETE"])
@require_admin
def delete_service(service_id, user_id):
    service = get_or_404(Service, service_id, "Service")
    db.session.delete(service)
    db.session.commit()
    return jsonify({"success": True, "message": "Service deleted"})
