"""
Notification services for HouseHelp.

In-app: rows in the ``notifications`` table.
Email: SendGrid.

IMPORTANT: No function in this module should ever raise an exception.
Errors are caught and logged so that a notification failure never takes
down a booking, payment or withdrawal flow. Callers commit their own work
before notifying; a failed notification insert only rolls back itself.

Email sending is performed on a background thread so that request handlers
are never blocked by network I/O to SendGrid.
"""

import logging
import threading

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from models import db, Notification, UserProfile
from email_templates import payment_notification_html, format_amount

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-app notifications
# ---------------------------------------------------------------------------
def create_notification(user_id, type, title, message, priority="normal",
                        related_id=None, related_type=None, data=None):
    """Insert one notification row. Returns the row or None on failure."""
    if not user_id:
        return None
    try:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            related_id=related_id,
            related_type=related_type,
            data=data,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to create %s notification for user %s", type, user_id)
        return None


def notify_admins(type, title, message, **kwargs):
    """Fan a notification out to every admin. Returns the number delivered."""
    try:
        admin_ids = [p.user_id for p in UserProfile.query.filter_by(role="admin").all()]
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to look up admins for %s notification", type)
        return 0
    delivered = 0
    for admin_id in admin_ids:
        if create_notification(admin_id, type, title, message, **kwargs):
            delivered += 1
    return delivered


PAYMENT_MESSAGES = {
    "success": "Payment of {amount} completed successfully",
    "failed": "Payment of {amount} failed. Please try again.",
    "pending": "Payment of {amount} is pending verification",
}


def payment_message(status, amount, currency="RWF"):
    template = PAYMENT_MESSAGES.get(status, "Payment of {amount} is now " + str(status))
    return template.format(amount=format_amount(amount, currency))


def send_payment_notification(payment, status=None):
    """Notify the payer about a payment state change (row plus email)."""
    status = status or payment.status
    notification = create_notification(
        payment.payer_id,
        "payment",
        "Payment {}".format(status),
        payment_message(status, payment.amount, payment.currency),
        priority="high" if status == "failed" else "normal",
        related_id=payment.id,
        related_type="payment",
        data={"tx_ref": payment.tx_ref, "status": status},
    )
    try:
        profile = UserProfile.query.filter_by(user_id=payment.payer_id).first()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to load payer profile for payment %s", payment.id)
        profile = None
    if profile:
        send_email(
            profile.email,
            "HouseHelp payment {}".format(status),
            payment_notification_html(profile.full_name, payment.amount, payment.currency,
                                      status, payment.tx_ref),
        )
    return notification


# ---------------------------------------------------------------------------
# Email (SendGrid)
# ---------------------------------------------------------------------------
def _email_settings():
    if not has_app_context():
        return {"api_key": "", "from_email": "noreply@househelp.rw", "from_name": "HouseHelp"}
    cfg = current_app.config
    return {
        "api_key": cfg.get("SENDGRID_API_KEY", ""),
        "from_email": cfg.get("EMAIL_FROM", "noreply@househelp.rw"),
        "from_name": cfg.get("EMAIL_FROM_NAME", "HouseHelp"),
    }


def _send_email_sync(to_email, subject, html_content, settings):
    """Send via SendGrid. Returns the status code, or None in dev mode or on failure."""
    try:
        if not settings["api_key"]:
            logger.info("[DEV] Email to %s: %s", to_email, subject)
            return None

        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=(settings["from_email"], settings["from_name"]),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        response = SendGridAPIClient(settings["api_key"]).send(message)
        logger.info("Email sent to %s (status: %s)", to_email, response.status_code)
        return response.status_code
    except Exception:
        logger.exception("SendGrid email failed for %s", to_email)
        return None


def send_email(to_email, subject, html_content):
    """Send an email on a background thread. Returns immediately. Never raises."""
    if not to_email:
        return
    settings = _email_settings()
    try:
        thread = threading.Thread(
            target=_send_email_sync,
            args=(to_email, subject, html_content, settings),
            daemon=True,
        )
        thread.start()
    except RuntimeError:
        logger.exception("Failed to queue email to %s", to_email)
