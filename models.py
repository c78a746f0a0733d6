"""
HouseHelp SQLAlchemy Models
Tables of the Supabase Postgres schema used by the marketplace.
"""

import uuid
from datetime import datetime, date, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Column, String, Float, Boolean, Integer, Text, DateTime, ForeignKey, JSON,
    UniqueConstraint,
)

db = SQLAlchemy()


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class SerializerMixin:
    """Column-driven ``to_dict`` shared by every table."""

    def to_dict(self, exclude=None):
        exclude = exclude or ()
        data = {}
        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[column.name] = value
        return data

    def touch(self):
        self.updated_at = utcnow()


# ---------------------------------------------------------------------------
# Users and role detail rows
# ---------------------------------------------------------------------------
class UserProfile(SerializerMixin, db.Model):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Supabase auth user id
    user_id = Column(String(36), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Worker(SerializerMixin, db.Model):
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    date_of_birth = Column(String(10), nullable=True)
    gender = Column(String(10), nullable=True)
    marital_status = Column(String(20), nullable=True)
    phone_number = Column(String(20), nullable=True)
    national_id = Column(String(32), nullable=True)
    type_of_work = Column(String(100), nullable=True)
    work_experience = Column(Text, nullable=True)
    expected_wages = Column(String(100), nullable=True)
    working_hours_and_days = Column(Text, nullable=True)
    education_qualification = Column(String(255), nullable=True)
    education_certificate_url = Column(Text, nullable=True)
    training_certificate_url = Column(Text, nullable=True)
    criminal_record_url = Column(Text, nullable=True)
    language_proficiency = Column(String(255), nullable=True)
    insurance_company = Column(String(100), nullable=True)
    health_condition = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    bank_account_number = Column(String(64), nullable=True)
    account_holder_name = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image_url = Column(Text, nullable=True)
    rating = Column(Float, nullable=True)
    verification_status = Column(String(20), nullable=False, default="pending")
    terms_accepted = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Homeowner(SerializerMixin, db.Model):
    __tablename__ = "homeowners"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    age = Column(String(10), nullable=True)
    contact_number = Column(String(20), nullable=True)
    home_address = Column(Text, nullable=True)
    type_of_residence = Column(String(20), nullable=True)
    number_of_family_members = Column(String(10), nullable=True)
    home_composition = Column(JSON, nullable=True)
    home_composition_details = Column(Text, nullable=True)
    national_id = Column(String(32), nullable=True)
    worker_info = Column(String(100), nullable=True)
    specific_duties = Column(Text, nullable=True)
    working_hours_and_schedule = Column(Text, nullable=True)
    number_of_workers_needed = Column(String(10), nullable=True)
    preferred_gender = Column(String(10), nullable=True)
    language_preference = Column(String(100), nullable=True)
    wages_offered = Column(String(100), nullable=True)
    reason_for_hiring = Column(Text, nullable=True)
    special_requirements = Column(Text, nullable=True)
    start_date_required = Column(String(10), nullable=True)
    criminal_record_required = Column(Boolean, nullable=True)
    payment_mode = Column(String(10), nullable=True)
    bank_details = Column(Text, nullable=True)
    religious_preferences = Column(String(255), nullable=True)
    smoking_drinking_restrictions = Column(String(255), nullable=True)
    specific_skills_needed = Column(Text, nullable=True)
    selected_days = Column(JSON, nullable=True)
    terms_accepted = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Admin(SerializerMixin, db.Model):
    __tablename__ = "admins"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    contact_number = Column(String(20), nullable=True)
    terms_accepted = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


ROLE_MODELS = {
    "worker": Worker,
    "homeowner": Homeowner,
    "admin": Admin,
}


# ---------------------------------------------------------------------------
# Bookings and applications
# ---------------------------------------------------------------------------
BOOKING_STATUSES = ("pending", "assigned", "in_progress", "completed", "cancelled", "disputed")
BOOKING_TERMINAL_STATUSES = ("completed", "cancelled")


class Booking(SerializerMixin, db.Model):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    homeowner_id = Column(String(36), ForeignKey("homeowners.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="SET NULL"), nullable=True, index=True)
    service_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    booking_date = Column(String(10), nullable=False)
    start_time = Column(String(8), nullable=True)
    end_time = Column(String(8), nullable=True)
    duration_hours = Column(Float, nullable=True)
    location = Column(Text, nullable=True)
    amount = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="RWF")
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="unpaid")
    special_instructions = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


APPLICATION_STATUSES = ("pending", "accepted", "rejected", "withdrawn")


class Application(SerializerMixin, db.Model):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("booking_id", "worker_id", name="uq_application_booking_worker"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    cover_letter = Column(Text, nullable=True)
    proposed_rate = Column(Float, nullable=True)
    availability_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------
PAYMENT_STATUSES = ("pending", "success", "failed", "cancelled", "refunded")


class Payment(SerializerMixin, db.Model):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    # payer is an auth user id, payee is a worker row id
    payer_id = Column(String(36), nullable=False, index=True)
    payee_id = Column(String(36), ForeignKey("workers.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="RWF")
    status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=True)
    gateway = Column(String(20), nullable=True)
    tx_ref = Column(String(64), unique=True, nullable=False, index=True)
    gateway_transaction_id = Column(String(128), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    worker_payout_amount = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


WITHDRAWAL_STATUSES = ("pending", "approved", "processing", "completed", "rejected")
WITHDRAWAL_OPEN_STATUSES = ("pending", "approved", "processing")


class WithdrawalRequest(SerializerMixin, db.Model):
    __tablename__ = "withdrawal_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_amount = Column(Float, nullable=False)
    withdrawal_fee = Column(Float, nullable=False, default=0.0)
    net_amount = Column(Float, nullable=False)
    withdrawal_method = Column(String(20), nullable=False)
    account_number = Column(String(64), nullable=False)
    account_name = Column(String(255), nullable=True)
    bank_name = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    processed_by = Column(String(36), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    transaction_reference = Column(String(128), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(SerializerMixin, db.Model):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    priority = Column(String(10), nullable=False, default="normal")
    related_id = Column(String(36), nullable=True)
    related_type = Column(String(30), nullable=True)
    data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)


# ---------------------------------------------------------------------------
# Disputes and documents
# ---------------------------------------------------------------------------
DISPUTE_CATEGORIES = ("payment", "service_quality", "no_show", "cancellation", "safety", "other")
DISPUTE_STATUSES = ("open", "investigating", "resolved", "closed", "escalated")
DISPUTE_PRIORITIES = ("low", "normal", "high", "critical")
RESOLUTION_ACTIONS = ("refund_full", "refund_partial", "no_action", "warning", "suspension")


class Dispute(SerializerMixin, db.Model):
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    raised_by = Column(String(36), nullable=False, index=True)
    against_user_id = Column(String(36), nullable=False, index=True)
    category = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    evidence_urls = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="open", index=True)
    priority = Column(String(10), nullable=False, default="normal")
    assigned_admin_id = Column(String(36), nullable=True)
    resolution_action = Column(String(30), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    refund_amount = Column(Float, nullable=True)
    resolved_by = Column(String(36), nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


DOCUMENT_TYPES = ("national_id", "background_check", "certificate", "proof_of_address", "photo")
DOCUMENT_STATUSES = ("pending", "verified", "rejected")


class Document(SerializerMixin, db.Model):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    document_type = Column(String(30), nullable=False)
    document_name = Column(String(255), nullable=False)
    file_url = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    verified_by = Column(String(36), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
MODERATION_STATUSES = ("pending", "approved", "rejected", "flagged")
REVIEW_ASPECTS = ("punctuality_rating", "quality_rating", "communication_rating", "professionalism_rating")


class Review(SerializerMixin, db.Model):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_id", name="uq_review_booking_reviewer"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    # Auth user ids of both parties
    reviewer_id = Column(String(36), nullable=False, index=True)
    reviewee_id = Column(String(36), nullable=False, index=True)
    reviewer_role = Column(String(20), nullable=False)
    reviewee_role = Column(String(20), nullable=False)
    rating = Column(Integer, nullable=False)
    punctuality_rating = Column(Integer, nullable=True)
    quality_rating = Column(Integer, nullable=True)
    communication_rating = Column(Integer, nullable=True)
    professionalism_rating = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    response_text = Column(Text, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    is_flagged = Column(Boolean, default=False)
    moderation_status = Column(String(20), nullable=False, default="approved", index=True)
    moderation_notes = Column(Text, nullable=True)
    moderated_by = Column(String(36), nullable=True)
    moderated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Favorites and availability
# ---------------------------------------------------------------------------
class Favorite(SerializerMixin, db.Model):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("homeowner_id", "worker_id", name="uq_favorite_homeowner_worker"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    homeowner_id = Column(String(36), ForeignKey("homeowners.id", ondelete="CASCADE"), nullable=False, index=True)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


AVAILABILITY_TYPES = ("available", "unavailable", "booked")


class WorkerAvailability(SerializerMixin, db.Model):
    __tablename__ = "worker_availability"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String(10), nullable=False, index=True)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    availability_type = Column(String(20), nullable=False, default="available")
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Catalogue tables
# ---------------------------------------------------------------------------
class Training(SerializerMixin, db.Model):
    __tablename__ = "trainings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    instructor = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(String(10), nullable=True)
    end_date = Column(String(10), nullable=True)
    duration_hours = Column(Float, nullable=True)
    max_participants = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")
    created_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Service(SerializerMixin, db.Model):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    base_price = Column(Float, nullable=True)
    price_unit = Column(String(30), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


REPORT_STATUSES = ("open", "in_review", "resolved", "closed")


class Report(SerializerMixin, db.Model):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    report_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default="open")
    priority = Column(String(10), nullable=False, default="normal")
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class OptionItem(SerializerMixin, db.Model):
    """One row per dropdown entry; ``category`` selects the dropdown."""
    __tablename__ = "option_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    category = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
