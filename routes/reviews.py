"""
Review routes.

Either party of a completed booking can review the other once. Approved
reviews of a worker feed ``Worker.rating``; flagged reviews wait for an
admin, who approves or rejects them.
"""

import logging

from flask import Blueprint, request, jsonify
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db, Review, Booking, Worker, Homeowner, utcnow, MODERATION_STATUSES, REVIEW_ASPECTS
from auth_routes import require_auth, require_role, require_admin, is_admin
from helpers import get_or_404, equality_filters, require_fields, parse_pagination, safe_int, text_field
from errors import ForbiddenError, ValidationError, ConflictError
from notifications import create_notification, notify_admins
from routes.bookings import party_user_ids

logger = logging.getLogger(__name__)

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")

REVIEW_FILTERS = ("reviewee_id", "reviewer_id", "booking_id")
EDITABLE_FIELDS = ("rating", "comment") + REVIEW_ASPECTS


def parse_rating(value, field="rating"):
    """Whole-star rating from 1 to 5."""
    if isinstance(value, bool):
        raise ValidationError("{} must be an integer".format(field))
    try:
        rating = int(value)
        whole = rating == float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("{} must be an integer".format(field))
    if not whole or not 1 <= rating <= 5:
        raise ValidationError("{} must be between 1 and 5".format(field))
    return rating


def _aspects(data):
    return {
        field: parse_rating(data[field], field)
        for field in REVIEW_ASPECTS if data.get(field) not in (None, "")
    }


def refresh_worker_rating(review):
    """Recompute the reviewed worker's average from approved reviews."""
    if review.reviewee_role != "worker":
        return None
    worker = Worker.query.filter_by(user_id=review.reviewee_id).first()
    if worker is None:
        return None
    ratings = [
        r.rating for r in Review.query.filter_by(
            reviewee_id=worker.user_id, reviewee_role="worker", moderation_status="approved"
        )
    ]
    worker.rating = round(sum(ratings) / len(ratings), 2) if ratings else None
    worker.touch()
    return worker.rating


def _check_visible(review, user_id):
    if review.moderation_status == "approved" or is_admin():
        return
    if user_id in (review.reviewer_id, review.reviewee_id):
        return
    raise ForbiddenError()


def _summary(reviews, aspects=()):
    stats = {
        "total_reviews": len(reviews),
        "average_rating": 0,
        "rating_distribution": dict.fromkeys(range(1, 6), 0),
    }
    for review in reviews:
        stats["rating_distribution"][review.rating] += 1
    if reviews:
        stats["average_rating"] = round(sum(r.rating for r in reviews) / len(reviews), 2)
    for aspect in aspects:
        values = [getattr(r, aspect) for r in reviews if getattr(r, aspect)]
        stats["average_" + aspect[:-len("_rating")]] = round(sum(values) / len(values), 2) if values else 0
    return stats


@reviews_bp.route("", methods=["GET"])
@require_auth
def list_reviews(user_id):
    query = equality_filters(Review.query, Review, REVIEW_FILTERS)
    if is_admin():
        query = equality_filters(query, Review, ("moderation_status",))
        if request.args.get("flagged") == "true":
            query = query.filter(Review.is_flagged.is_(True))
    else:
        query = query.filter(or_(
            Review.moderation_status == "approved",
            Review.reviewer_id == user_id,
            Review.reviewee_id == user_id,
        ))

    rating_min = safe_int(request.args.get("rating_min"), None)
    rating_max = safe_int(request.args.get("rating_max"), None)
    if rating_min is not None:
        query = query.filter(Review.rating >= rating_min)
    if rating_max is not None:
        query = query.filter(Review.rating <= rating_max)

    total = query.count()
    limit, offset = parse_pagination()
    reviews = query.order_by(Review.created_at.desc()).offset(offset).limit(limit).all()
    return jsonify({
        "success": True,
        "data": [r.to_dict() for r in reviews],
        "count": len(reviews),
        "total": total,
    })


@reviews_bp.route("/stats/worker/<worker_id>", methods=["GET"])
@require_auth
def worker_review_stats(worker_id, user_id):
    worker = get_or_404(Worker, worker_id, "Worker")
    reviews = Review.query.filter_by(
        reviewee_id=worker.user_id, reviewee_role="worker", moderation_status="approved"
    ).all()
    return jsonify({"success": True, "data": _summary(reviews, REVIEW_ASPECTS)})


@reviews_bp.route("/stats/homeowner/<homeowner_id>", methods=["GET"])
@require_auth
def homeowner_review_stats(homeowner_id, user_id):
    homeowner = get_or_404(Homeowner, homeowner_id, "Homeowner")
    reviews = Review.query.filter_by(
        reviewee_id=homeowner.user_id, reviewee_role="homeowner", moderation_status="approved"
    ).all()
    return jsonify({"success": True, "data": _summary(reviews)})


@reviews_bp.route("/<review_id>", methods=["GET"])
@require_auth
def get_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    _check_visible(review, user_id)
    return jsonify({"success": True, "data": review.to_dict()})


@reviews_bp.route("", methods=["POST"])
@require_role("homeowner", "worker")
def create_review(user_id):
    data = request.get_json() or {}
    require_fields(data, ["booking_id", "rating"])
    rating = parse_rating(data["rating"])
    aspects = _aspects(data)

    booking = get_or_404(Booking, data["booking_id"], "Booking")
    if booking.status != "completed":
        raise ValidationError("Can only review completed bookings")

    homeowner_uid, worker_uid = party_user_ids(booking)
    if user_id == homeowner_uid:
        if not worker_uid:
            raise ValidationError("No worker assigned to this booking")
        reviewee_id, reviewer_role, reviewee_role = worker_uid, "homeowner", "worker"
    elif user_id == worker_uid:
        reviewee_id, reviewer_role, reviewee_role = homeowner_uid, "worker", "homeowner"
    else:
        raise ForbiddenError("You are not authorized to review this booking")

    if Review.query.filter_by(booking_id=booking.id, reviewer_id=user_id).first():
        raise ConflictError("You have already reviewed this booking")

    review = Review(
        booking_id=booking.id,
        reviewer_id=user_id,
        reviewee_id=reviewee_id,
        reviewer_role=reviewer_role,
        reviewee_role=reviewee_role,
        rating=rating,
        comment=text_field(data, "comment") or None,
        **aspects
    )
    db.session.add(review)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("You have already reviewed this booking")
    refresh_worker_rating(review)
    db.session.commit()
    logger.info("Review %s: %s rated %s %d stars", review.id, reviewer_role, reviewee_role, rating)

    create_notification(
        reviewee_id, "review", "New Review Received",
        "You have received a new {}-star review".format(rating),
        related_id=review.id, related_type="review",
    )
    return jsonify({"success": True, "data": review.to_dict(), "message": "Review submitted"}), 201


@reviews_bp.route("/<review_id>", methods=["PUT"])
@require_auth
def update_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    if review.reviewer_id != user_id:
        raise ForbiddenError("You can only update your own reviews")

    data = request.get_json() or {}
    changed = [field for field in EDITABLE_FIELDS if field in data]
    if not changed:
        raise ValidationError("No valid fields provided for update")
    if "rating" in data:
        review.rating = parse_rating(data["rating"])
    for field, value in _aspects(data).items():
        setattr(review, field, value)
    if "comment" in data:
        review.comment = text_field(data, "comment") or None
    review.touch()
    refresh_worker_rating(review)
    db.session.commit()
    return jsonify({"success": True, "data": review.to_dict(), "message": "Review updated"})


@reviews_bp.route("/<review_id>/respond", methods=["PUT"])
@require_auth
def respond_to_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    if review.reviewee_id != user_id:
        raise ForbiddenError("Only the reviewee can respond to this review")

    response_text = text_field(request.get_json() or {}, "response_text")
    if not response_text:
        raise ValidationError("response_text is required")
    review.response_text = response_text
    review.responded_at = utcnow()
    review.touch()
    db.session.commit()

    create_notification(
        review.reviewer_id, "review", "Response to Your Review",
        "The person you reviewed has responded to your review",
        related_id=review.id, related_type="review",
    )
    return jsonify({"success": True, "data": review.to_dict(), "message": "Response added"})


@reviews_bp.route("/<review_id>/flag", methods=["PUT"])
@require_auth
def flag_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    _check_visible(review, user_id)
    if review.reviewer_id == user_id:
        raise ValidationError("You cannot flag your own review")

    reason = text_field(request.get_json() or {}, "reason")
    review.is_flagged = True
    review.moderation_notes = reason or "Flagged by user"
    review.touch()
    db.session.commit()

    notify_admins(
        "review", "Review Flagged", "A review was flagged: {}".format(review.moderation_notes),
        related_id=review.id, related_type="review",
    )
    return jsonify({"success": True, "data": review.to_dict(), "message": "Review flagged for moderation"})


@reviews_bp.route("/<review_id>/moderate", methods=["PUT"])
@require_admin
def moderate_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    data = request.get_json() or {}
    require_fields(data, ["moderation_status"])
    status = data["moderation_status"]
    if status not in MODERATION_STATUSES:
        raise ValidationError("moderation_status must be one of: {}".format(", ".join(MODERATION_STATUSES)))

    review.moderation_status = status
    review.moderation_notes = text_field(data, "moderation_notes") or review.moderation_notes
    review.moderated_by = user_id
    review.moderated_at = utcnow()
    review.is_flagged = status == "flagged"
    review.touch()
    refresh_worker_rating(review)
    db.session.commit()

    create_notification(
        review.reviewer_id, "review", "Review Moderation Update",
        "Your review has been {}".format(status),
        related_id=review.id, related_type="review",
    )
    return jsonify({"success": True, "data": review.to_dict(), "message": "Review {} successfully".format(status)})


@reviews_bp.route("/<review_id>", methods=["DELETE"])
@require_admin
def delete_review(review_id, user_id):
    review = get_or_404(Review, review_id, "Review")
    db.session.delete(review)
    db.session.flush()
    refresh_worker_rating(review)
    db.session.commit()
    return jsonify({"success": True, "message": "Review deleted successfully"})
