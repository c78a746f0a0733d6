"""
Payment API routes for HouseHelp.

Homeowner pays for a booking -> gateway confirms -> the payment's
worker_payout_amount becomes part of the worker's withdrawable balance.
Payment status is only ever changed by gateway verification (explicit
verify calls or the Flutterwave webhook), never by a client PUT.
"""

import logging

from flask import Blueprint, request, jsonify, current_app

from models import db, Payment, Booking, Homeowner, generate_uuid, utcnow
from auth_routes import require_auth, require_admin, require_role, current_role, current_actor, is_admin
from field_mapping import normalize_payment_method
from helpers import get_or_404, equality_filters, require_fields, parse_amount, apply_updates
from errors import ForbiddenError, ValidationError, NotFoundError, UpstreamError, SAFE_MESSAGES
from fees import worker_payout
from payment_gateways import GatewayError
from notifications import send_payment_notification

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")
webhook_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")

PAYMENT_FILTERS = ("status", "booking_id", "payment_method", "gateway")
ADMIN_EDITABLE_FIELDS = ("description",)


def _flutterwave():
    return current_app.extensions["flutterwave"]


def _paypack():
    return current_app.extensions["paypack"]


def _new_tx_ref():
    return "HH-{}".format(generate_uuid())


def _check_access(payment, user_id):
    role = current_role()
    if role == "admin" or payment.payer_id == user_id:
        return
    if role == "worker" and payment.payee_id == current_actor("worker").id:
        return
    raise ForbiddenError()


def apply_gateway_status(payment, status, gateway_transaction_id=None, raw=None):
    """Record a gateway-confirmed status and mirror it onto the booking.

    Commits and sends the payment notification when the status changed.
    Returns True if anything changed.
    """
    if payment.status == status:
        return False
    previous = payment.status
    payment.status = status
    if gateway_transaction_id:
        payment.gateway_transaction_id = gateway_transaction_id
    if raw is not None:
        payment.gateway_response = raw
    if status == "success":
        payment.paid_at = utcnow()
    payment.touch()

    booking = db.session.get(Booking, payment.booking_id) if payment.booking_id else None
    if booking:
        if payment.payee_id is None:
            payment.payee_id = booking.worker_id
        booking.payment_status = {"success": "paid", "failed": "unpaid"}.get(status, status)
        booking.touch()
    db.session.commit()
    logger.info("Payment %s moved %s -> %s", payment.tx_ref, previous, status)

    # Best-effort; a failed notification never fails the verification.
    send_payment_notification(payment, status)
    return True


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
@payments_bp.route("", methods=["GET"])
@require_auth
def list_payments(user_id):
    role = current_role()
    query = Payment.query
    if role == "homeowner":
        query = query.filter(Payment.payer_id == user_id)
    elif role == "worker":
        query = query.filter(Payment.payee_id == current_actor("worker").id)
    else:
        query = equality_filters(query, Payment, ("payer_id", "payee_id"))
    query = equality_filters(query, Payment, PAYMENT_FILTERS)
    payments = query.order_by(Payment.created_at.desc()).all()
    return jsonify({"success": True, "data": [p.to_dict() for p in payments], "count": len(payments)})


@payments_bp.route("/<payment_id>", methods=["GET"])
@require_auth
def get_payment(payment_id, user_id):
    payment = get_or_404(Payment, payment_id, "Payment")
    _check_access(payment, user_id)
    return jsonify({"success": True, "data": payment.to_dict()})


@payments_bp.route("/status/<tx_ref>", methods=["GET"])
@require_auth
def get_payment_status(tx_ref, user_id):
    payment = Payment.query.filter_by(tx_ref=tx_ref).first()
    if not payment:
        raise NotFoundError("Payment not found")
    _check_access(payment, user_id)
    return jsonify({"success": True, "data": {"tx_ref": tx_ref, "status": payment.status,
                                              "amount": payment.amount, "currency": payment.currency}})


@payments_bp.route("", methods=["POST"])
@require_role("homeowner", "admin")
def create_payment(user_id):
    """Create a pending payment for a booking. Body: booking_id, amount?, payment_method."""
    data = request.get_json() or {}
    require_fields(data, ["booking_id", "payment_method"])
    booking = get_or_404(Booking, data["booking_id"], "Booking")

    homeowner = db.session.get(Homeowner, booking.homeowner_id)
    if not is_admin() and (not homeowner or homeowner.user_id != user_id):
        raise ForbiddenError()
    if booking.payment_status == "paid":
        raise ValidationError("Booking is already paid")

    amount = parse_amount(data.get("amount") or booking.amount)
    method = normalize_payment_method(data["payment_method"])

    payment = Payment(
        booking_id=booking.id,
        payer_id=homeowner.user_id if homeowner else user_id,
        payee_id=booking.worker_id,
        amount=amount,
        currency=data.get("currency") or booking.currency or "RWF",
        status="pending",
        payment_method=method,
        gateway="paypack" if method == "mobile_money" else "flutterwave",
        tx_ref=data.get("tx_ref") or _new_tx_ref(),
        worker_payout_amount=worker_payout(amount),
        description=data.get("description"),
    )
    db.session.add(payment)
    booking.payment_status = "pending"
    booking.touch()
    db.session.commit()

    send_payment_notification(payment, "pending")
    return jsonify({"success": True, "data": payment.to_dict(), "message": "Payment created"}), 201


@payments_bp.route("/<payment_id>", methods=["PUT"])
@require_admin
def update_payment(payment_id, user_id):
    payment = get_or_404(Payment, payment_id, "Payment")
    data = request.get_json() or {}
    if "status" in data:
        raise ValidationError("Payment status can only be changed by gateway verification")
    updates = {k: data[k] for k in ADMIN_EDITABLE_FIELDS if k in data}
    if not apply_updates(payment, updates):
        raise ValidationError("No valid fields provided for update")
    db.session.commit()
    return jsonify({"success": True, "data": payment.to_dict(), "message": "Payment updated"})


@payments_bp.route("/<payment_id>", methods=["DELETE"])
@require_admin
def delete_payment(payment_id, user_id):
    payment = get_or_404(Payment, payment_id, "Payment")
    db.session.delete(payment)
    db.session.commit()
    return jsonify({"success": True, "message": "Payment deleted"})


# ---------------------------------------------------------------------------
# Flutterwave
# ---------------------------------------------------------------------------
@payments_bp.route("/verify", methods=["POST"])
@require_auth
def verify_flutterwave_payment(user_id):
    """Verify a Flutterwave transaction id returned by the checkout redirect."""
    data = request.get_json() or {}
    require_fields(data, ["transaction_id"])

    try:
        result = _flutterwave().verify_transaction(data["transaction_id"])
    except GatewayError as e:
        logger.error("Flutterwave verification of %s failed: %s", data["transaction_id"], e.message)
        raise UpstreamError(SAFE_MESSAGES["gateway"])

    tx_ref = result.get("tx_ref") or data.get("tx_ref")
    payment = Payment.query.filter_by(tx_ref=tx_ref).first() if tx_ref else None
    if not payment:
        raise NotFoundError("Payment not found")
    _check_access(payment, user_id)

    status = result["status"]
    if status == "success" and result.get("amount") is not None and float(result["amount"]) < payment.amount:
        logger.warning("Flutterwave amount %s below expected %s for %s", result["amount"], payment.amount, tx_ref)
        status = "failed"

    apply_gateway_status(payment, status, result.get("transaction_id"), result.get("raw"))
    return jsonify({"success": True, "data": payment.to_dict(),
                    "message": "Payment {}".format(payment.status)})


@webhook_bp.route("/flutterwave", methods=["POST"])
def flutterwave_webhook():
    if not _flutterwave().verify_webhook(request.headers.get("verif-hash")):
        logger.warning("Rejected Flutterwave webhook with bad signature")
        return jsonify({"success": False, "error": "Invalid signature"}), 401

    event = request.get_json(silent=True) or {}
    data = event.get("data") or {}
    tx_ref = data.get("tx_ref")
    if event.get("event") != "charge.completed" or not tx_ref:
        return jsonify({"success": True, "message": "Ignored"})

    payment = Payment.query.filter_by(tx_ref=tx_ref).first()
    if not payment:
        logger.warning("Flutterwave webhook for unknown tx_ref %s", tx_ref)
        return jsonify({"success": True, "message": "Ignored"})

    # Never trust the webhook body alone; confirm with the API.
    try:
        result = _flutterwave().verify_transaction(data.get("id"))
    except GatewayError as e:
        logger.error("Webhook verification of %s failed: %s", tx_ref, e.message)
        return jsonify({"success": False, "error": SAFE_MESSAGES["gateway"]}), 502

    apply_gateway_status(payment, result["status"], result.get("transaction_id"), result.get("raw"))
    return jsonify({"success": True})


# ---------------------------------------------------------------------------
# PayPack (mobile money)
# ---------------------------------------------------------------------------
@payments_bp.route("/paypack/initialize", methods=["POST"])
@require_role("homeowner", "admin")
def paypack_initialize(user_id):
    """Start a mobile-money cash-in for an existing pending payment."""
    data = request.get_json() or {}
    require_fields(data, ["payment_id", "phone_number"])
    payment = get_or_404(Payment, data["payment_id"], "Payment")
    _check_access(payment, user_id)
    if payment.status != "pending":
        raise ValidationError("Payment is already {}".format(payment.status))

    try:
        result = _paypack().cashin(payment.amount, data["phone_number"])
    except GatewayError as e:
        logger.error("PayPack cash-in for %s failed: %s", payment.tx_ref, e.message)
        raise UpstreamError(SAFE_MESSAGES["gateway"])

    payment.gateway = "paypack"
    payment.gateway_transaction_id = result.get("ref")
    payment.gateway_response = result.get("raw")
    payment.touch()
    db.session.commit()
    return jsonify({
        "success": True,
        "data": {"payment_id": payment.id, "transaction_id": result.get("ref"), "status": result["status"]},
        "message": "Approve the payment on your phone",
    })


@payments_bp.route("/paypack/verify", methods=["POST"])
@require_auth
def paypack_verify(user_id):
    data = request.get_json() or {}
    require_fields(data, ["transaction_id"])
    payment = Payment.query.filter_by(gateway_transaction_id=data["transaction_id"]).first()
    if not payment:
        raise NotFoundError("Payment not found")
    _check_access(payment, user_id)

    try:
        result = _paypack().find_transaction(data["transaction_id"])
    except GatewayError as e:
        logger.error("PayPack lookup of %s failed: %s", data["transaction_id"], e.message)
        raise UpstreamError(SAFE_MESSAGES["gateway"])

    apply_gateway_status(payment, result["status"], raw=result.get("raw"))
    return jsonify({"success": True, "data": payment.to_dict(), "message": "Payment {}".format(payment.status)})
