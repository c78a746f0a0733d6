"""
Dropdown option lookups for the registration and profile forms.

Each endpoint reads ``option_items`` rows of one category. When the table
has no rows for it, or cannot be read, a built-in list is returned so the
forms never render an empty dropdown.
"""

import logging

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from models import db, OptionItem
from field_mapping import (
    GENDERS, MARITAL_STATUSES, RESIDENCE_TYPES, PAYMENT_METHODS, choice_labels,
)

logger = logging.getLogger(__name__)

options_bp = Blueprint("options", __name__, url_prefix="/api/options")

# url path -> (category, fallback names). Dropdowns that feed a validated
# column take their names from the same enumeration the column accepts.
OPTION_CATEGORIES = {
    "genders": ("genders", choice_labels(GENDERS)),
    "marital-statuses": ("marital_statuses", choice_labels(MARITAL_STATUSES)),
    "service-types": ("service_types", [
        "House Cleaning", "Cooking", "Laundry", "Childcare", "Elderly Care", "Gardening", "Security",
    ]),
    "insurance-companies": ("insurance_companies", ["RSSB", "MMI", "Radiant", "SONARWA", "Prime", "None"]),
    "payment-methods": ("payment_methods", choice_labels(PAYMENT_METHODS)),
    "report-types": ("report_issue_types", [
        "Payment Issue", "Worker Misconduct", "Homeowner Misconduct", "Safety Concern",
        "Technical Problem", "Other",
    ]),
    "training-categories": ("training_categories", [
        "Cleaning", "Cooking", "Childcare", "First Aid", "Elderly Care", "Customer Service",
    ]),
    "wage-units": ("wage_units", ["Per Hour", "Per Day", "Per Month"]),
    "language-levels": ("language_levels", ["Beginner", "Intermediate", "Fluent", "Native"]),
    "residence-types": ("residence_types", choice_labels(RESIDENCE_TYPES)),
    "worker-info-options": ("worker_info_options", ["Full-time", "Part-time", "Live-in"]),
    "criminal-record-options": ("criminal_record_options", ["Yes", "No"]),
    "smoking-drinking-options": ("smoking_drinking_restrictions", [
        "No Smoking", "No Drinking", "No Smoking or Drinking", "No Restrictions",
    ]),
}


def _slug(name):
    return name.lower().replace(" ", "_").replace("-", "_")


def get_options(category, fallback):
    try:
        rows = (
            OptionItem.query.filter_by(category=category, is_active=True)
            .order_by(OptionItem.name.asc()).all()
        )
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to load %s options; using defaults", category)
        rows = []
    if rows:
        return [{"id": row.id, "name": row.name} for row in rows]
    return [{"id": _slug(name), "name": name} for name in fallback]


def _make_view(path, category, fallback):
    def view():
        return jsonify({"success": True, "data": get_options(category, fallback)})
    view.__name__ = "options_" + path.replace("-", "_")
    return view


for _path, (_category, _fallback) in OPTION_CATEGORIES.items():
    options_bp.add_url_rule("/" + _path, view_func=_make_view(_path, _category, _fallback), methods=["GET"])


def seed_options():
    """Insert the built-in lists for every empty category. Returns rows added."""
    added = 0
    for category, fallback in OPTION_CATEGORIES.values():
        if OptionItem.query.filter_by(category=category).first():
            continue
        for name in fallback:
            db.session.add(OptionItem(category=category, name=name))
            added += 1
    db.session.commit()
    return added
