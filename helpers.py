"""
Helper utilities shared by the route blueprints.
"""

import math

from flask import current_app, request

from errors import ValidationError, NotFoundError
from models import db


def missing_fields(data, required):
    """Names in ``required`` whose value in ``data`` is falsy (after stripping strings)."""
    missing = []
    for name in required:
        value = data.get(name)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "" or value == [] or value == {}:
            missing.append(name)
    return missing


def require_fields(data, required):
    missing = missing_fields(data, required)
    if missing:
        raise ValidationError("Missing required fields: {}".format(", ".join(missing)))


def column_values(model, data, protected=()):
    """Keep only keys of ``data`` that are real columns of ``model``."""
    columns = set(model.__table__.columns.keys())
    return {
        key: value for key, value in data.items()
        if key in columns and key not in protected
    }


def apply_updates(instance, data, protected=("id", "created_at", "updated_at")):
    """Copy column values from ``data`` onto ``instance``. Returns the changed names."""
    changed = []
    for key, value in column_values(type(instance), data, protected).items():
        setattr(instance, key, value)
        changed.append(key)
    if changed and hasattr(instance, "touch"):
        instance.touch()
    return changed


def get_or_404(model, object_id, label=None):
    instance = db.session.get(model, object_id)
    if instance is None:
        raise NotFoundError("{} not found".format(label or model.__name__))
    return instance


def equality_filters(query, model, fields, args=None):
    """Apply ``column == value`` predicates for whichever ``fields`` are in the query string."""
    args = request.args if args is None else args
    for field in fields:
        value = args.get(field)
        if value not in (None, ""):
            query = query.filter(getattr(model, field) == value)
    return query


def parse_pagination():
    """Read ``limit``/``offset`` from the query string, clamped to configured bounds."""
    default = current_app.config.get("ITEMS_PER_PAGE", 50)
    maximum = current_app.config.get("MAX_ITEMS_PER_PAGE", 200)
    limit = safe_int(request.args.get("limit"), default)
    offset = safe_int(request.args.get("offset"), 0)
    return max(1, min(limit, maximum)), max(0, offset)


def safe_int(value, default=0):
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def parse_amount(value, field="amount"):
    """Parse a positive money amount or raise ValidationError."""
    try:
        amount = round(float(value), 2)
    except (ValueError, TypeError):
        raise ValidationError("{} must be a number".format(field))
    if not math.isfinite(amount):
        raise ValidationError("{} must be a number".format(field))
    if amount <= 0:
        raise ValidationError("{} must be greater than 0".format(field))
    return amount


def text_field(data, field):
    """Stripped string value of ``data[field]``; non-string values are a ValidationError."""
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("{} must be a string".format(field))
    return value.strip()


def check_choice(field, value, choices):
    if value not in choices:
        raise ValidationError("Invalid {}. Must be one of: {}".format(field, ", ".join(choices)))
    return value
