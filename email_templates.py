"""
HTML email templates for HouseHelp.

Every public function returns a complete HTML string ready for sending via
the ``send_email`` helper in ``notifications.py``. Styles are inlined; no
external resources are referenced.
"""

from html import escape as _esc

_ACCENT = "#0F766E"
_TINT = "#F0FDFA"
_TINT_BORDER = "#99F6E4"


# ---------------------------------------------------------------------------
# Shared layout helpers
# ---------------------------------------------------------------------------

def _wrap(body_html):
    """Wrap inner content in the common email shell."""
    return (
        '<!DOCTYPE html>'
        '<html lang="en"><head><meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width,initial-scale=1.0">'
        '<title>HouseHelp</title></head>'
        '<body style="margin:0;padding:0;background-color:#f3f4f6;">'
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:40px 20px;">'
        '<div style="text-align:center;margin-bottom:30px;">'
        '<h1 style="color:' + _ACCENT + ';font-size:28px;margin:0;">HouseHelp</h1>'
        '<p style="color:#6b7280;margin:5px 0 0;font-size:14px;">Trusted household help in Rwanda</p>'
        '</div>'
        '<div style="background:#ffffff;border-radius:12px;padding:30px;">'
        + body_html
        + '</div>'
        '<div style="text-align:center;margin-top:30px;color:#9ca3af;font-size:12px;">'
        '<p style="margin:0;">HouseHelp &middot; Kigali, Rwanda &middot; support@househelp.rw</p>'
        '</div>'
        '</div></body></html>'
    )


def _greeting(title, name):
    return (
        '<h2 style="color:#111827;margin:0 0 12px;font-size:22px;">{title}</h2>'
        '<p style="color:#4b5563;line-height:1.6;">Hi {name},</p>'
    ).format(title=_esc(title), name=_esc(str(name)) if name else "there")


def _paragraph(text):
    return '<p style="color:#4b5563;line-height:1.6;">{}</p>'.format(_esc(text))


def _detail_table(rows):
    """*rows* is a list of (label, value) tuples."""
    inner = ""
    for label, value in rows:
        inner += (
            '<tr><td style="padding:8px 0;color:#6b7280;font-size:14px;">{}</td>'
            '<td style="padding:8px 0;color:#111827;font-size:14px;font-weight:600;text-align:right;">{}</td></tr>'
        ).format(_esc(str(label)), _esc(str(value)))
    return (
        '<div style="background:' + _TINT + ';border:1px solid ' + _TINT_BORDER
        + ';border-radius:8px;padding:20px;margin:20px 0;">'
        '<table style="width:100%;border-collapse:collapse;">' + inner + '</table></div>'
    )


def _button(url, label):
    return (
        '<div style="text-align:center;margin:28px 0 12px;">'
        '<a href="{url}" style="display:inline-block;background:{accent};color:#ffffff;'
        'text-decoration:none;padding:14px 36px;border-radius:8px;font-size:16px;font-weight:600;">'
        '{label}</a></div>'
    ).format(url=_esc(str(url)), accent=_ACCENT, label=_esc(str(label)))


def format_amount(amount, currency="RWF"):
    try:
        return "{:,.0f} {}".format(float(amount), currency)
    except (TypeError, ValueError):
        return "0 {}".format(currency)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def welcome_html(name, role, dashboard_url):
    intro = {
        "worker": "Complete your profile and upload your documents so homeowners can find you.",
        "homeowner": "You can now post bookings and find verified household workers.",
        "admin": "Your administrator account is ready.",
    }.get(role, "Your account is ready.")
    body = _greeting("Welcome to HouseHelp!", name) + _paragraph(intro)
    body += _button(dashboard_url, "Go to your dashboard")
    return _wrap(body)


def booking_confirmation_html(name, booking_id, service_type, booking_date, amount):
    body = _greeting("Booking received", name)
    body += _paragraph("Your booking has been created. Workers can now apply.")
    body += _detail_table([
        ("Booking", "#{}".format(str(booking_id)[:8])),
        ("Service", service_type or "N/A"),
        ("Date", booking_date or "TBD"),
        ("Amount", format_amount(amount)),
    ])
    return _wrap(body)


def worker_assignment_html(name, service_type, booking_date, location):
    body = _greeting("You have a new job", name)
    body += _paragraph("Your application was accepted and you have been assigned to this booking.")
    body += _detail_table([
        ("Service", service_type or "N/A"),
        ("Date", booking_date or "TBD"),
        ("Location", location or "Shared by the homeowner"),
    ])
    return _wrap(body)


def job_completion_html(name, booking_id, service_type):
    body = _greeting("Job completed", name)
    body += _paragraph(
        "Booking #{} ({}) has been marked as completed. Thank you for using HouseHelp.".format(
            str(booking_id)[:8], service_type or "service"
        )
    )
    return _wrap(body)


def payment_notification_html(name, amount, currency, status, tx_ref):
    headline = {
        "success": "Payment successful",
        "failed": "Payment failed",
        "pending": "Payment pending",
    }.get(status, "Payment update")
    body = _greeting(headline, name)
    body += _detail_table([
        ("Amount", format_amount(amount, currency)),
        ("Status", status),
        ("Reference", tx_ref),
    ])
    return _wrap(body)


def withdrawal_status_html(name, amount, status, reason=None):
    body = _greeting("Withdrawal {}".format(status), name)
    rows = [("Amount", format_amount(amount)), ("Status", status)]
    if reason:
        rows.append(("Reason", reason))
    body += _detail_table(rows)
    return _wrap(body)
