"""
Worker withdrawal requests.

Balance for a worker:

    available_balance    = payouts of successful payments - net amounts already withdrawn
    pending_withdrawals  = requested amounts of pending/approved/processing requests
    withdrawable_balance = max(0, available_balance - pending_withdrawals)

A request moves pending -> approved -> processing -> completed, or
pending -> rejected. A 2% fee is taken from the requested amount when the
request is created.
"""

import logging

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func

from models import (
    db, WithdrawalRequest, Worker, Payment, utcnow,
    WITHDRAWAL_OPEN_STATUSES, WITHDRAWAL_STATUSES,
)
from auth_routes import require_auth, require_admin, require_role, current_role, current_actor, is_admin
from field_mapping import normalize_payment_method
from helpers import get_or_404, equality_filters, require_fields, parse_amount
from errors import ForbiddenError, ValidationError, NotFoundError, ConflictError, UpstreamError, SAFE_MESSAGES
from fees import withdrawal_fee
from payment_gateways import GatewayError
from notifications import create_notification, notify_admins, send_email
from email_templates import withdrawal_status_html

logger = logging.getLogger(__name__)

withdrawals_bp = Blueprint("withdrawals", __name__, url_prefix="/api/withdrawals")

WITHDRAWAL_METHODS = ("bank_transfer", "mobile_money")

WITHDRAWAL_TRANSITIONS = {
    "approve": ("pending", "approved"),
    "process": ("approved", "processing"),
    "complete": ("processing", "completed"),
    "reject": ("pending", "rejected"),
}


def compute_balance(worker_id):
    earned = db.session.query(func.coalesce(func.sum(Payment.worker_payout_amount), 0.0)).filter(
        Payment.payee_id == worker_id, Payment.status == "success",
    ).scalar()
    withdrawn = db.session.query(func.coalesce(func.sum(WithdrawalRequest.net_amount), 0.0)).filter(
        WithdrawalRequest.worker_id == worker_id, WithdrawalRequest.status == "completed",
    ).scalar()
    pending = db.session.query(func.coalesce(func.sum(WithdrawalRequest.requested_amount), 0.0)).filter(
        WithdrawalRequest.worker_id == worker_id,
        WithdrawalRequest.status.in_(WITHDRAWAL_OPEN_STATUSES),
    ).scalar()

    available = round(float(earned) - float(withdrawn), 2)
    pending = round(float(pending), 2)
    return {
        "worker_id": worker_id,
        "total_earned": round(float(earned), 2),
        "total_withdrawn": round(float(withdrawn), 2),
        "available_balance": available,
        "pending_withdrawals": pending,
        "withdrawable_balance": max(0.0, round(available - pending, 2)),
        "currency": "RWF",
    }


def _check_worker_access(worker_id):
    if is_admin():
        return
    if current_role() != "worker" or current_actor("worker").id != worker_id:
        raise ForbiddenError()


def _transition(withdrawal, action):
    expected, target = WITHDRAWAL_TRANSITIONS[action]
    if withdrawal.status != expected:
        raise ConflictError("Cannot {} a withdrawal that is {}".format(action, withdrawal.status))
    withdrawal.status = target
    withdrawal.touch()


def _notify_worker(withdrawal, title, message, priority="normal"):
    worker = db.session.get(Worker, withdrawal.worker_id)
    if not worker:
        return
    create_notification(worker.user_id, "withdrawal", title, message, priority=priority,
                        related_id=withdrawal.id, related_type="withdrawal")
    send_email(worker.email, "HouseHelp " + title.lower(),
               withdrawal_status_html(worker.full_name, withdrawal.net_amount, withdrawal.status,
                                      withdrawal.rejection_reason))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@withdrawals_bp.route("", methods=["GET"])
@require_role("worker", "admin")
def list_withdrawals(user_id):
    query = WithdrawalRequest.query
    if is_admin():
        query = equality_filters(query, WithdrawalRequest, ("worker_id",))
    else:
        query = query.filter(WithdrawalRequest.worker_id == current_actor("worker").id)
    query = equality_filters(query, WithdrawalRequest, ("status", "withdrawal_method"))
    withdrawals = query.order_by(WithdrawalRequest.created_at.desc()).all()
    return jsonify({"success": True, "data": [w.to_dict() for w in withdrawals], "count": len(withdrawals)})


@withdrawals_bp.route("/balance/<worker_id>", methods=["GET"])
@require_auth
def get_balance(worker_id, user_id):
    _check_worker_access(worker_id)
    get_or_404(Worker, worker_id, "Worker")
    return jsonify({"success": True, "data": compute_balance(worker_id)})


@withdrawals_bp.route("/worker/<worker_id>", methods=["GET"])
@require_auth
def list_worker_withdrawals(worker_id, user_id):
    _check_worker_access(worker_id)
    withdrawals = (
        WithdrawalRequest.query.filter_by(worker_id=worker_id)
        .order_by(WithdrawalRequest.created_at.desc()).all()
    )
    return jsonify({"success": True, "data": [w.to_dict() for w in withdrawals], "count": len(withdrawals)})


@withdrawals_bp.route("/stats/summary", methods=["GET"])
@require_admin
def withdrawal_stats(user_id):
    rows = db.session.query(
        WithdrawalRequest.status,
        func.count(WithdrawalRequest.id),
        func.coalesce(func.sum(WithdrawalRequest.requested_amount), 0.0),
        func.coalesce(func.sum(WithdrawalRequest.withdrawal_fee), 0.0),
    ).group_by(WithdrawalRequest.status).all()

    by_status = {status: {"count": 0, "amount": 0.0} for status in WITHDRAWAL_STATUSES}
    total_fees = 0.0
    for status, count, amount, fees in rows:
        by_status[status] = {"count": count, "amount": round(float(amount), 2)}
        if status == "completed":
            total_fees += float(fees)
    return jsonify({
        "success": True,
        "data": {
            "total": sum(item["count"] for item in by_status.values()),
            "by_status": by_status,
            "fees_collected": round(total_fees, 2),
            "currency": "RWF",
        },
    })


@withdrawals_bp.route("/<withdrawal_id>", methods=["GET"])
@require_auth
def get_withdrawal(withdrawal_id, user_id):
    withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
    _check_worker_access(withdrawal.worker_id)
    return jsonify({"success": True, "data": withdrawal.to_dict()})


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------
@withdrawals_bp.route("", methods=["POST"])
@require_role("worker", "admin")
def create_withdrawal(user_id):
    data = request.get_json() or {}
    require_fields(data, ["requested_amount", "withdrawal_method", "account_number"])
    if is_admin():
        require_fields(data, ["worker_id"])
        worker_id = data["worker_id"]
    else:
        worker_id = current_actor("worker").id

    method = normalize_payment_method(data["withdrawal_method"], field="withdrawal_method")
    if method not in WITHDRAWAL_METHODS:
        raise ValidationError("Invalid withdrawal_method. Must be one of: {}".format(", ".join(WITHDRAWAL_METHODS)))
    amount = parse_amount(data["requested_amount"], field="requested_amount")

    # Lock the worker row so concurrent requests see each other's pending amounts.
    worker = db.session.query(Worker).filter(Worker.id == worker_id).with_for_update().first()
    if not worker:
        db.session.rollback()
        raise NotFoundError("Worker not found")

    balance = compute_balance(worker_id)
    if amount > balance["withdrawable_balance"]:
        db.session.rollback()
        raise ValidationError("Insufficient balance. Available: {:.2f} RWF".format(balance["withdrawable_balance"]))

    fee, net = withdrawal_fee(amount)
    withdrawal = WithdrawalRequest(
        worker_id=worker_id,
        requested_amount=amount,
        withdrawal_fee=fee,
        net_amount=net,
        withdrawal_method=method,
        account_number=str(data["account_number"]).strip(),
        account_name=data.get("account_name"),
        bank_name=data.get("bank_name"),
        notes=data.get("notes"),
        status="pending",
    )
    db.session.add(withdrawal)
    db.session.commit()
    logger.info("Withdrawal %s requested by worker %s: %.2f RWF", withdrawal.id, worker_id, amount)

    create_notification(
        worker.user_id, "withdrawal", "Withdrawal Requested",
        "Your withdrawal of {:.2f} RWF (fee {:.2f} RWF, you receive {:.2f} RWF) is pending review.".format(
            amount, fee, net),
        related_id=withdrawal.id, related_type="withdrawal",
    )
    notify_admins(
        "withdrawal", "New Withdrawal Request",
        "{} requested a withdrawal of {:.2f} RWF.".format(worker.full_name, amount),
        related_id=withdrawal.id, related_type="withdrawal",
    )
    return jsonify({"success": True, "data": withdrawal.to_dict(), "message": "Withdrawal request submitted"}), 201


# ---------------------------------------------------------------------------
# Admin workflow
# ---------------------------------------------------------------------------
@withdrawals_bp.route("/<withdrawal_id>/approve", methods=["PUT"])
@require_admin
def approve_withdrawal(withdrawal_id, user_id):
    withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
    _transition(withdrawal, "approve")
    withdrawal.processed_by = user_id
    withdrawal.processed_at = utcnow()
    db.session.commit()
    _notify_worker(withdrawal, "Withdrawal Approved",
                   "Your withdrawal of {:.2f} RWF was approved.".format(withdrawal.net_amount))
    return jsonify({"success": True, "data": withdrawal.to_dict(), "message": "Withdrawal approved"})


@withdrawals_bp.route("/<withdrawal_id>/process", methods=["PUT"])
@require_admin
def process_withdrawal(withdrawal_id, user_id):
    """Mark an approved withdrawal as being paid out.

    Mobile-money payouts go through PayPack when it is configured; otherwise
    the admin supplies the reference of a manual transfer.
    """
    withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
    data = request.get_json(silent=True) or {}
    reference = data.get("transaction_reference")

    if withdrawal.status != "approved":
        raise ConflictError("Cannot process a withdrawal that is {}".format(withdrawal.status))

    paypack = current_app.extensions["paypack"]
    if not reference and withdrawal.withdrawal_method == "mobile_money" and paypack.configured:
        try:
            result = paypack.cashout(withdrawal.net_amount, withdrawal.account_number)
        except GatewayError as e:
            logger.error("PayPack cash-out for withdrawal %s failed: %s", withdrawal.id, e.message)
            raise UpstreamError(SAFE_MESSAGES["gateway"])
        reference = result.get("ref")

    if not reference:
        raise ValidationError("transaction_reference is required")

    _transition(withdrawal, "process")
    withdrawal.transaction_reference = reference
    db.session.commit()
    _notify_worker(withdrawal, "Withdrawal Processing",
                   "Your withdrawal of {:.2f} RWF is being paid out.".format(withdrawal.net_amount))
    return jsonify({"success": True, "data": withdrawal.to_dict(), "message": "Withdrawal processing"})


@withdrawals_bp.route("/<withdrawal_id>/complete", methods=["PUT"])
@require_admin
def complete_withdrawal(withdrawal_id, user_id):
    withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
    _transition(withdrawal, "complete")
    withdrawal.completed_at = utcnow()
    db.session.commit()
    logger.info("Withdrawal %s completed", withdrawal.id)
    _notify_worker(withdrawal, "Withdrawal Completed",
                   "{:.2f} RWF has been sent to your account.".format(withdrawal.net_amount), priority="high")
    return jsonify({"success": True, "data": withdrawal.to_dict(), "message": "Withdrawal completed"})


@withdrawals_bp.route("/<withdrawal_id>/reject", methods=["PUT"])
@require_admin
def reject_withdrawal(withdrawal_id, user_id):
    withdrawal = get_or_404(WithdrawalRequest, withdrawal_id, "Withdrawal request")
    data = request.get_json(silent=True) or {}
    require_fields(data, ["rejection_reason"])
    _transition(withdrawal, "reject")
    withdrawal.rejection_reason = data["rejection_reason"]
    withdrawal.processed_by = user_id
    withdrawal.processed_at = utcnow()
    db.session.commit()
    _notify_worker(withdrawal, "Withdrawal Rejected",
                   "Your withdrawal was rejected: {}".format(withdrawal.rejection_reason), priority="high")
    return jsonify({"success": True, "data": withdrawal.to_dict(), "message": "Withdrawal rejected"})
