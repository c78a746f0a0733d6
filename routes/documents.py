"""
Verification documents uploaded by users (ID scans, certificates, ...).
Files live in external storage; rows only hold the URL.
"""

import logging

from flask import Blueprint, request, jsonify

from models import db, Document, UserProfile, utcnow, DOCUMENT_TYPES
from auth_routes import require_auth, require_admin, is_admin
from field_mapping import normalize_choice
from helpers import get_or_404, equality_filters, require_fields, apply_updates, text_field
from errors import ForbiddenError, ValidationError, ConflictError
from notifications import create_notification, notify_admins

logger = logging.getLogger(__name__)

documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")

OWNER_EDITABLE_FIELDS = ("document_name", "file_url", "notes", "document_type")


def _check_owner(document, user_id):
    if not is_admin() and document.user_id != user_id:
        raise ForbiddenError()


def _list(query):
    documents = query.order_by(Document.created_at.desc()).all()
    return jsonify({"success": True, "data": [d.to_dict() for d in documents], "count": len(documents)})


@documents_bp.route("", methods=["GET"])
@require_auth
def list_documents(user_id):
    query = Document.query
    if is_admin():
        query = equality_filters(query, Document, ("user_id",))
    else:
        query = query.filter(Document.user_id == user_id)
    return _list(equality_filters(query, Document, ("status", "document_type")))


@documents_bp.route("/user/<owner_id>", methods=["GET"])
@require_auth
def list_user_documents(owner_id, user_id):
    if not is_admin() and owner_id != user_id:
        raise ForbiddenError()
    return _list(equality_filters(Document.query.filter_by(user_id=owner_id), Document, ("status",)))


@documents_bp.route("/admin/pending", methods=["GET"])
@require_admin
def list_pending_documents(user_id):
    return _list(Document.query.filter_by(status="pending"))


@documents_bp.route("/<document_id>", methods=["GET"])
@require_auth
def get_document(document_id, user_id):
    document = get_or_404(Document, document_id, "Document")
    _check_owner(document, user_id)
    return jsonify({"success": True, "data": document.to_dict()})


@documents_bp.route("", methods=["POST"])
@require_auth
def upload_document(user_id):
    data = request.get_json() or {}
    require_fields(data, ["document_type", "document_name", "file_url"])
    owner_id = data.get("user_id") if is_admin() and data.get("user_id") else user_id

    document = Document(
        user_id=owner_id,
        document_type=normalize_choice("document_type", data["document_type"], DOCUMENT_TYPES),
        document_name=text_field(data, "document_name"),
        file_url=data["file_url"],
        notes=data.get("notes"),
        status="pending",
    )
    db.session.add(document)
    db.session.commit()

    uploader = UserProfile.query.filter_by(user_id=owner_id).first()
    notify_admins(
        "document", "Document Uploaded",
        "{} uploaded a {} for verification.".format(
            uploader.full_name if uploader else "A user", document.document_type.replace("_", " ")),
        related_id=document.id, related_type="document",
    )
    return jsonify({"success": True, "data": document.to_dict(), "message": "Document uploaded"}), 201


@documents_bp.route("/<document_id>", methods=["PUT"])
@require_auth
def update_document(document_id, user_id):
    document = get_or_404(Document, document_id, "Document")
    _check_owner(document, user_id)
    data = request.get_json() or {}
    updates = {k: data[k] for k in OWNER_EDITABLE_FIELDS if k in data}
    if "document_type" in updates:
        updates["document_type"] = normalize_choice("document_type", updates["document_type"], DOCUMENT_TYPES)

    if not apply_updates(document, updates):
        raise ValidationError("No valid fields provided for update")
    # A changed document has to be verified again.
    document.status = "pending"
    document.verified_by = None
    document.verified_at = None
    document.rejection_reason = None
    db.session.commit()
    return jsonify({"success": True, "data": document.to_dict(), "message": "Document updated"})


def _review(document_id, user_id, status, reason=None):
    document = get_or_404(Document, document_id, "Document")
    if document.status != "pending":
        raise ConflictError("Document is already {}".format(document.status))
    document.status = status
    document.verified_by = user_id
    document.verified_at = utcnow()
    document.rejection_reason = reason
    document.touch()
    db.session.commit()
    logger.info("Document %s %s by %s", document.id, status, user_id)

    if status == "verified":
        message = "Your {} has been verified.".format(document.document_name)
    else:
        message = "Your {} was rejected: {}".format(document.document_name, reason)
    create_notification(document.user_id, "document", "Document {}".format(status.capitalize()), message,
                        related_id=document.id, related_type="document")
    return document


@documents_bp.route("/<document_id>/verify", methods=["PUT"])
@require_admin
def verify_document(document_id, user_id):
    document = _review(document_id, user_id, "verified")
    return jsonify({"success": True, "data": document.to_dict(), "message": "Document verified"})


@documents_bp.route("/<document_id>/reject", methods=["PUT"])
@require_admin
def reject_document(document_id, user_id):
    data = request.get_json(silent=True) or {}
    require_fields(data, ["rejection_reason"])
    document = _review(document_id, user_id, "rejected", data["rejection_reason"])
    return jsonify({"success": True, "data": document.to_dict(), "message": "Document rejected"})


@documents_bp.route("/<document_id>", methods=["DELETE"])
@require_auth
def delete_document(document_id, user_id):
    document = get_or_404(Document, document_id, "Document")
    _check_owner(document, user_id)
    db.session.delete(document)
    db.session.commit()
    return jsonify({"success": True, "message": "Document deleted"})
