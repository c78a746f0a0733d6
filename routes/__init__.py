"""
HouseHelp API Route Blueprints
"""
from .health import health_bp
from .workers import workers_bp
from .homeowners import homeowners_bp
from .bookings import bookings_bp
from .applications import applications_bp
from .payments import payments_bp, webhook_bp
from .withdrawals import withdrawals_bp
from .disputes import disputes_bp
from .documents import documents_bp
from .favorites import favorites_bp
from .reviews import reviews_bp
from .availability import availability_bp
from .notifications import notifications_bp
from .trainings import trainings_bp
from .services import services_bp
from .reports import reports_bp
from .options import options_bp

__all__ = [
    "health_bp",
    "workers_bp",
    "homeowners_bp",
    "bookings_bp",
    "applications_bp",
    "payments_bp",
    "webhook_bp",
    "withdrawals_bp",
    "disputes_bp",
    "documents_bp",
    "favorites_bp",
    "reviews_bp",
    "availability_bp",
    "notifications_bp",
    "trainings_bp",
    "services_bp",
    "reports_bp",
    "options_bp",
]
