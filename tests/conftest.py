"""
Pytest configuration and fixtures for HouseHelp backend tests
"""
import json
import uuid

import pytest

from app_config import config, TestingConfig
from extensions import limiter
from server import create_app
from models import db, Worker, Homeowner, Admin, Booking, Payment
from supabase_auth import AuthProviderError


PASSWORD = "secret123"


class FakeAuthProvider:
    """In-memory stand-in for Supabase Auth with the same interface."""

    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.refresh_tokens = {}
        self.recovery_requests = []
        self.down = False

    def _check(self):
        if self.down:
            raise AuthProviderError("connection refused")

    def _issue(self, user):
        access = "access-" + uuid.uuid4().hex
        refresh = "refresh-" + uuid.uuid4().hex
        self.tokens[access] = user
        self.refresh_tokens[refresh] = user
        return {
            "access_token": access,
            "refresh_token": refresh,
            "expires_in": 3600,
            "expires_at": None,
            "token_type": "bearer",
        }

    def sign_up(self, email, password, metadata=None):
        self._check()
        if email in self.users:
            raise AuthProviderError("User already registered", 422)
        user = {"id": str(uuid.uuid4()), "email": email, "user_metadata": metadata or {}}
        self.users[email] = {"user": user, "password": password}
        return {"user": user, "session": self._issue(user)}

    def sign_in_with_password(self, email, password):
        self._check()
        record = self.users.get(email)
        if not record or record["password"] != password:
            raise AuthProviderError("Invalid login credentials", 400)
        return {"user": record["user"], "session": self._issue(record["user"])}

    def refresh_session(self, refresh_token):
        self._check()
        user = self.refresh_tokens.pop(refresh_token, None)
        if user is None:
            raise AuthProviderError("Invalid Refresh Token", 400)
        return {"user": user, "session": self._issue(user)}

    def get_user(self, access_token):
        self._check()
        return self.tokens.get(access_token)

    def sign_out(self, access_token):
        self.tokens.pop(access_token, None)

    def reset_password_for_email(self, email, redirect_to=None):
        self._check()
        self.recovery_requests.append((email, redirect_to))

    def update_password(self, access_token, new_password):
        self._check()
        user = self.tokens.get(access_token)
        if user is None:
            raise AuthProviderError("Invalid token", 401)
        self.users[user["email"]]["password"] = new_password
        return user


ROLE_DEFAULTS = {
    "worker": {"dateOfBirth": "1995-04-12", "nationalId": "1199580012345678", "gender": "Female",
               "typeOfWork": "House Cleaning", "phoneNumber": "+250788123456"},
    "homeowner": {"homeAddress": "KG 11 Ave, Kigali", "typeOfResidence": "House",
                  "contactNumber": "+250788654321"},
    "admin": {},
}

ROLE_MODELS = {"worker": Worker, "homeowner": Homeowner, "admin": Admin}


def register_user(client, role, email, full_name, **extra):
    """Register through the API and return ids plus bearer headers."""
    payload = {"email": email, "password": PASSWORD, "fullName": full_name, "role": role}
    payload.update(ROLE_DEFAULTS[role])
    payload.update(extra)
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.data
    data = json.loads(response.data)["data"]

    row = ROLE_MODELS[role].query.filter_by(user_id=data["id"]).first()
    return {
        "user_id": data["id"],
        "id": row.id,
        "email": email,
        "headers": {
            "Authorization": "Bearer {}".format(data["session"]["access_token"]),
            "Content-Type": "application/json",
        },
    }


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh database per test"""
    app = create_app('testing')
    app.extensions["auth_provider"] = FakeAuthProvider()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def auth_provider(app):
    return app.extensions["auth_provider"]


class RateLimitedTestingConfig(TestingConfig):
    RATELIMIT_ENABLED = True
    AUTH_RATE_LIMIT = "5 per 15 minutes"


@pytest.fixture
def rate_limited_client(monkeypatch):
    """Client for an app with the auth rate limit switched on"""
    monkeypatch.setitem(config, "rate-limited", RateLimitedTestingConfig)
    app = create_app("rate-limited")
    app.extensions["auth_provider"] = FakeAuthProvider()

    with app.app_context():
        db.create_all()
        yield app.test_client()
        limiter.reset()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def register(client):
    """Factory: register(role, email, full_name, **extra) -> ids and headers"""
    def _register(role, email, full_name, **extra):
        return register_user(client, role, email, full_name, **extra)
    return _register


@pytest.fixture
def homeowner(client):
    return register_user(client, "homeowner", "alice@example.com", "Alice Uwase")


@pytest.fixture
def other_homeowner(client):
    return register_user(client, "homeowner", "bob@example.com", "Bob Nkusi")


@pytest.fixture
def worker(client):
    return register_user(client, "worker", "grace@example.com", "Grace Mukamana")


@pytest.fixture
def other_worker(client):
    return register_user(client, "worker", "eric@example.com", "Eric Habimana",
                         nationalId="1199080098765432")


@pytest.fixture
def admin(client):
    return register_user(client, "admin", "admin@househelp.rw", "Platform Admin")


@pytest.fixture
def booking(client, homeowner):
    """A pending, unassigned booking owned by ``homeowner``"""
    response = client.post('/api/bookings', headers=homeowner["headers"], json={
        'serviceType': 'House Cleaning',
        'bookingDate': '2026-11-02',
        'startTime': '08:00:00',
        'endTime': '12:00:00',
        'location': 'Kimihurura, Kigali',
        'amount': 10000,
    })
    assert response.status_code == 201, response.data
    return json.loads(response.data)["data"]


@pytest.fixture
def paid_worker(worker, homeowner):
    """A worker with one successful 10000 RWF payment (8500 RWF payout)"""
    booking = Booking(homeowner_id=homeowner["id"], worker_id=worker["id"], service_type="Cooking",
                      booking_date="2026-10-01", amount=10000, status="completed", payment_status="paid")
    db.session.add(booking)
    db.session.flush()
    db.session.add(Payment(
        booking_id=booking.id,
        payer_id=homeowner["user_id"],
        payee_id=worker["id"],
        amount=10000,
        status="success",
        payment_method="card",
        gateway="flutterwave",
        tx_ref="HH-" + uuid.uuid4().hex,
        worker_payout_amount=8500,
    ))
    db.session.commit()
    return worker
