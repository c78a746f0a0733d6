"""
Field mapping between client payloads and database columns.

Clients send camelCase form fields; the schema uses snake_case. Each role
has a handful of irregular renames on top of the generic conversion, and a
few enumerated columns are normalised to their stored codes. Unknown
enumeration values are rejected with a ValidationError instead of being
forwarded to storage.
"""

import re

from errors import ValidationError

DANGEROUS_KEYS = frozenset(["__proto__", "constructor", "prototype"])

# Managed by the auth bridge, never written through profile updates.
EXCLUDED_FIELDS = frozenset(["email", "password", "role", "full_name"])

_CAMEL_RE = re.compile(r"([A-Z])")


def to_snake_case(key):
    """Convert ``camelCase`` to ``snake_case``; snake_case input is unchanged."""
    return _CAMEL_RE.sub(lambda m: "_" + m.group(1).lower(), key).lstrip("_")


def strip_dangerous_keys(value):
    """Recursively drop keys that could poison merged objects."""
    if isinstance(value, dict):
        return {
            k: strip_dangerous_keys(v)
            for k, v in value.items()
            if k not in DANGEROUS_KEYS
        }
    if isinstance(value, list):
        return [strip_dangerous_keys(v) for v in value]
    return value


def keys_to_snake_case(value):
    """Recursively convert dict keys to snake_case and strip dangerous keys."""
    if isinstance(value, dict):
        return {
            to_snake_case(k): keys_to_snake_case(v)
            for k, v in value.items()
            if k not in DANGEROUS_KEYS
        }
    if isinstance(value, list):
        return [keys_to_snake_case(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------
GENDERS = ("male", "female", "other")
MARITAL_STATUSES = ("single", "married", "divorced", "widowed")
RESIDENCE_TYPES = ("studio", "apartment", "house", "villa", "mansion", "compound", "other")
PAYMENT_METHODS = ("mobile_money", "bank_transfer", "card", "cash")
PAYMENT_MODES = ("bank", "cash", "mobile", "card")


def choice_labels(choices):
    """Display labels for a closed enumeration, e.g. mobile_money -> Mobile Money."""
    return [choice.replace("_", " ").title() for choice in choices]


_PAYMENT_METHOD_LABELS = {
    "mobile money": "mobile_money",
    "mobile-money": "mobile_money",
    "momo": "mobile_money",
    "mtn momo": "mobile_money",
    "mtn mobile money": "mobile_money",
    "airtel money": "mobile_money",
    "paypack": "mobile_money",
    "bank": "bank_transfer",
    "bank transfer": "bank_transfer",
    "bank-transfer": "bank_transfer",
    "card": "card",
    "credit card": "card",
    "debit card": "card",
    "flutterwave": "card",
    "cash": "cash",
}

_PAYMENT_MODE_LABELS = {
    "bank transfer": "bank",
    "bank_transfer": "bank",
    "mobile money": "mobile",
    "mobile_money": "mobile",
    "momo": "mobile",
}

_YES = frozenset(["yes", "y", "true", "1"])
_NO = frozenset(["no", "n", "false", "0"])


def normalize_choice(field, value, choices, labels=None):
    """Lowercase ``value`` and map it onto one of ``choices``.

    Raises ValidationError when the value is not a known choice or label.
    """
    if value is None or value == "":
        return None
    normalized = str(value).strip().lower()
    if labels and normalized in labels:
        normalized = labels[normalized]
    normalized = normalized.replace(" ", "_")
    if normalized not in choices:
        raise ValidationError("Invalid value for {}: {}".format(field, value))
    return normalized


def normalize_payment_method(value, field="payment_method"):
    return normalize_choice(field, value, PAYMENT_METHODS, _PAYMENT_METHOD_LABELS)


def to_bool(field, value):
    if isinstance(value, bool) or value is None:
        return value
    normalized = str(value).strip().lower()
    if normalized in _YES:
        return True
    if normalized in _NO:
        return False
    raise ValidationError("Invalid value for {}: {}".format(field, value))


# ---------------------------------------------------------------------------
# Per-role rename tables (keys are already snake_case)
# ---------------------------------------------------------------------------
WORKER_RENAMES = {
    "education_certificate": "education_certificate_url",
    "training_certificate": "training_certificate_url",
    "criminal_record": "criminal_record_url",
    "emergency_name": "emergency_contact_name",
    "emergency_contact": "emergency_contact_phone",
    "emergency_phone": "emergency_contact_phone",
    "account_holder": "account_holder_name",
    "contact_number": "phone_number",
}

HOMEOWNER_RENAMES = {
    "criminal_record": "criminal_record_required",
    "religious": "religious_preferences",
    "phone_number": "contact_number",
}

ADMIN_RENAMES = {
    "phone_number": "contact_number",
}

WORKER_TRANSFORMS = {
    "terms_accepted": lambda v: to_bool("terms_accepted", v),
    "gender": lambda v: normalize_choice("gender", v, GENDERS),
    "marital_status": lambda v: normalize_choice("marital_status", v, MARITAL_STATUSES),
}

HOMEOWNER_TRANSFORMS = {
    "terms_accepted": lambda v: to_bool("terms_accepted", v),
    "type_of_residence": lambda v: normalize_choice("type_of_residence", v, RESIDENCE_TYPES),
    "preferred_gender": lambda v: normalize_choice("preferred_gender", v, GENDERS + ("any",)),
    "criminal_record_required": lambda v: to_bool("criminal_record_required", v),
    "payment_mode": lambda v: normalize_choice("payment_mode", v, PAYMENT_MODES, _PAYMENT_MODE_LABELS),
}

ADMIN_TRANSFORMS = {
    "terms_accepted": lambda v: to_bool("terms_accepted", v),
}


def map_fields(data, renames=None, transforms=None, exclude=EXCLUDED_FIELDS):
    """Map a client payload onto column names for one table.

    Keys are snake-cased, renamed through ``renames``, filtered through
    ``exclude``; values of ``None`` are skipped and ``transforms`` are
    applied per target column. Running the result through again gives the
    same keys back.
    """
    renames = renames or {}
    transforms = transforms or {}
    mapped = {}
    for key, value in strip_dangerous_keys(data or {}).items():
        if value is None:
            continue
        column = to_snake_case(key)
        column = renames.get(column, column)
        if column in exclude:
            continue
        transform = transforms.get(column)
        mapped[column] = transform(value) if transform else value
    return mapped


def map_worker_fields(data):
    return map_fields(data, WORKER_RENAMES, WORKER_TRANSFORMS)


def map_homeowner_fields(data):
    return map_fields(data, HOMEOWNER_RENAMES, HOMEOWNER_TRANSFORMS)


def map_admin_fields(data):
    return map_fields(data, ADMIN_RENAMES, ADMIN_TRANSFORMS)


ROLE_MAPPERS = {
    "worker": map_worker_fields,
    "homeowner": map_homeowner_fields,
    "admin": map_admin_fields,
}
