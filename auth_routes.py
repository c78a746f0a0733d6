"""
Authentication routes and decorators for HouseHelp.

Accounts and sessions belong to Supabase Auth; this module registers users
against it, mirrors each account into ``user_profiles`` plus a role detail
row, and resolves bearer tokens back to profiles on every request.
"""

import re
import logging
from functools import wraps

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db, UserProfile, ROLE_MODELS
from field_mapping import ROLE_MAPPERS, GENDERS, normalize_choice
from helpers import column_values, text_field
from errors import AuthError, ForbiddenError, ValidationError, SAFE_MESSAGES
from extensions import limiter
from supabase_auth import AuthProviderError
from notifications import send_email
from email_templates import welcome_html

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# Every /api/auth/* route shares one fixed-window budget per client IP.
limiter.limit(lambda: current_app.config.get("AUTH_RATE_LIMIT", "5 per 15 minutes"))(auth_bp)

ROLES = ("worker", "homeowner", "admin")
EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^\+\d{12,15}$")
MIN_PASSWORD_LENGTH = 6

ROLE_REQUIRED_FIELDS = {
    "homeowner": ("home_address",),
    "worker": ("date_of_birth", "national_id"),
    "admin": (),
}


def get_auth_provider():
    return current_app.extensions["auth_provider"]


def _error(message, status, code=None):
    body = {"success": False, "error": message}
    if code:
        body["code"] = code
    return jsonify(body), status


# ---------------------------------------------------------------------------
# Decorators
# ---------------------------------------------------------------------------
def require_auth(f):
    """Resolve the bearer token to a profile; passes ``user_id`` to the view."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer ") or not header[7:].strip():
            return _error("Authorization token required", 401)
        token = header[7:].strip()

        try:
            user = get_auth_provider().get_user(token)
        except AuthProviderError as e:
            logger.error("Token verification failed: %s (status %s)", e.message, e.status_code)
            return _error(SAFE_MESSAGES["auth_provider"], 503)
        if not user or not user.get("id"):
            return _error("Invalid or expired token", 401)

        profile = UserProfile.query.filter_by(user_id=user["id"]).first()
        if not profile:
            return _error("User profile not found", 403)

        g.auth_user = user
        g.profile = profile
        g.access_token = token
        return f(*args, user_id=user["id"], **kwargs)
    return decorated_function


def require_role(*roles):
    """Wrap require_auth and additionally check the caller's role."""
    def decorator(f):
        @wraps(f)
        @require_auth
        def wrapper(*args, user_id, **kwargs):
            if g.profile.role not in roles:
                return _error("Forbidden", 403)
            return f(*args, user_id=user_id, **kwargs)
        return wrapper
    return decorator


require_admin = require_role("admin")


def current_role():
    return g.profile.role


def is_admin():
    return g.profile.role == "admin"


def current_actor(role):
    """The caller's worker/homeowner/admin row, or a 403 when it is missing."""
    row = ROLE_MODELS[role].query.filter_by(user_id=g.profile.user_id).first()
    if row is None:
        raise ForbiddenError("{} profile not found".format(role.capitalize()))
    return row


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
def _validate_registration(data):
    errors = []
    email = text_field(data, "email").lower()
    password = str(data.get("password") or "")
    full_name = text_field(data, "full_name")
    role = text_field(data, "role").lower()

    if not email or not EMAIL_REGEX.match(email):
        errors.append("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append("Password must be at least {} characters".format(MIN_PASSWORD_LENGTH))
    if not full_name:
        errors.append("Full name is required")
    if role not in ROLES:
        errors.append("Role must be one of: {}".format(", ".join(ROLES)))

    phone = data.get("contact_number") or data.get("phone_number")
    if phone and not PHONE_REGEX.match(str(phone).strip()):
        errors.append("Phone number must be in international format, e.g. +250788123456")

    if data.get("gender"):
        try:
            normalize_choice("gender", data["gender"], GENDERS)
        except ValidationError as e:
            errors.append(e.message)

    for field in ROLE_REQUIRED_FIELDS.get(role, ()):
        if not data.get(field):
            errors.append("{} is required for {} accounts".format(field.replace("_", " ").capitalize(), role))

    return errors, email, password, full_name, role


@auth_bp.route("/register", methods=["POST"])
def register():
    """Create a Supabase account, its profile row and its role detail row."""
    data = request.get_json() or {}
    errors, email, password, full_name, role = _validate_registration(data)
    if errors:
        return _error("; ".join(errors), 400)

    if UserProfile.query.filter_by(email=email).first():
        return _error("An account with this email already exists", 400, code="EMAIL_EXISTS")

    # Map detail fields before touching the provider so bad enum values fail early.
    model = ROLE_MODELS[role]
    detail_fields = column_values(model, ROLE_MAPPERS[role](data), protected=("id", "user_id"))

    try:
        result = get_auth_provider().sign_up(email, password, {"full_name": full_name, "role": role})
    except AuthProviderError as e:
        logger.warning("Supabase sign-up failed for %s: %s (status %s)", email, e.message, e.status_code)
        if e.status_code in (400, 422) and "registered" in (e.message or "").lower():
            return _error("An account with this email already exists", 400, code="EMAIL_EXISTS")
        if e.is_client_error:
            return _error("Registration failed. Please check your details and try again.", 400)
        return _error(SAFE_MESSAGES["auth_provider"], 503)

    auth_user = result.get("user") or {}
    user_id = auth_user.get("id")
    if not user_id:
        logger.error("Supabase sign-up for %s returned no user id", email)
        return _error(SAFE_MESSAGES["auth_provider"], 503)

    profile = UserProfile(user_id=user_id, email=email, full_name=full_name, role=role)
    db.session.add(profile)
    db.session.commit()

    # A failure here leaves the auth account and profile in place; it is logged for follow-up.
    try:
        detail = model(user_id=user_id, email=email, full_name=full_name, **detail_fields)
        db.session.add(detail)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Created account %s but failed to insert %s row", user_id, role)
        return _error("Account created but profile setup failed. Please contact support.", 500)

    send_email(
        email,
        "Welcome to HouseHelp",
        welcome_html(full_name, role, current_app.config["FRONTEND_URL"] + "/dashboard"),
    )
    logger.info("Registered %s account %s", role, user_id)

    payload = {"id": user_id, "email": email, "role": role}
    if result.get("session"):
        payload["session"] = result["session"]
    return jsonify({
        "success": True,
        "data": payload,
        "message": "Registration successful",
    }), 201


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json() or {}
    email = text_field(data, "email").lower()
    password = str(data.get("password") or "")
    requested_role = text_field(data, "role").lower()

    if not email or not password:
        return _error("Email and password are required", 400)

    try:
        result = get_auth_provider().sign_in_with_password(email, password)
    except AuthProviderError as e:
        if e.is_client_error:
            return _error("Invalid email or password", 401, code="INVALID_CREDENTIALS")
        logger.error("Supabase sign-in failed: %s (status %s)", e.message, e.status_code)
        return _error(SAFE_MESSAGES["auth_provider"], 503)

    user = result.get("user") or {}
    profile = UserProfile.query.filter_by(user_id=user.get("id")).first()
    if profile:
        profile_data = profile.to_dict()
    else:
        # Missing profile is tolerated; fall back to the role stored on the auth account.
        metadata = user.get("user_metadata") or {}
        logger.warning("No profile row for auth user %s; using metadata role", user.get("id"))
        profile_data = {
            "user_id": user.get("id"),
            "email": user.get("email"),
            "full_name": metadata.get("full_name"),
            "role": metadata.get("role"),
        }

    if requested_role and profile_data.get("role") != requested_role:
        return _error("Invalid email or password", 401, code="INVALID_CREDENTIALS")

    return jsonify({
        "success": True,
        "data": {"user": user, "session": result.get("session"), "profile": profile_data},
        "message": "Login successful",
    })


@auth_bp.route("/me", methods=["GET"])
@require_auth
def get_current_user(user_id):
    model = ROLE_MODELS.get(g.profile.role)
    detail = model.query.filter_by(user_id=user_id).first() if model else None
    return jsonify({
        "success": True,
        "data": {
            "user": g.auth_user,
            "profile": g.profile.to_dict(),
            "details": detail.to_dict() if detail else None,
        },
    })


@auth_bp.route("/refresh", methods=["POST"])
def refresh_session():
    data = request.get_json() or {}
    refresh_token = data.get("refresh_token")
    if not refresh_token:
        return _error("refresh_token is required", 400)
    try:
        result = get_auth_provider().refresh_session(refresh_token)
    except AuthProviderError as e:
        if e.is_client_error:
            raise AuthError("Invalid or expired refresh token")
        logger.error("Supabase refresh failed: %s (status %s)", e.message, e.status_code)
        return _error(SAFE_MESSAGES["auth_provider"], 503)
    return jsonify({"success": True, "data": {"session": result.get("session"), "user": result.get("user")}})


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout(user_id):
    try:
        get_auth_provider().sign_out(g.access_token)
    except AuthProviderError as e:
        logger.warning("Supabase sign-out failed for %s: %s", user_id, e.message)
    return jsonify({"success": True, "message": "Logged out"})


# ---------------------------------------------------------------------------
# Password recovery
# ---------------------------------------------------------------------------
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    """Send a recovery link. The answer is the same whether or not the email exists."""
    data = request.get_json() or {}
    email = text_field(data, "email").lower()
    if not email or not EMAIL_REGEX.match(email):
        return _error("A valid email is required", 400)

    try:
        get_auth_provider().reset_password_for_email(
            email, redirect_to=current_app.config["FRONTEND_URL"] + "/reset-password"
        )
    except AuthProviderError as e:
        logger.warning("Password recovery request failed for %s: %s", email, e.message)

    return jsonify({
        "success": True,
        "message": "If an account exists for this email, a password reset link has been sent",
    })


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """Set a new password using the recovery access token from the emailed link."""
    data = request.get_json() or {}
    token = data.get("access_token") or data.get("token")
    password = str(data.get("password") or data.get("new_password") or "")

    if not token:
        return _error("Reset token is required", 400)
    if len(password) < MIN_PASSWORD_LENGTH:
        return _error("Password must be at least {} characters".format(MIN_PASSWORD_LENGTH), 400)

    try:
        get_auth_provider().update_password(token, password)
    except AuthProviderError as e:
        if e.is_client_error:
            raise AuthError("Invalid or expired reset token")
        logger.error("Password update failed: %s (status %s)", e.message, e.status_code)
        return _error(SAFE_MESSAGES["auth_provider"], 503)

    return jsonify({"success": True, "message": "Password has been reset"})
