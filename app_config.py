import os
import secrets
import logging

from dotenv import load_dotenv

load_dotenv()

_startup_logger = logging.getLogger("househelp.startup")

# Supabase credentials are mandatory; the service cannot authenticate anyone without them.
REQUIRED_ENV_VARS = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
]

RECOMMENDED_ENV_VARS = [
    "SUPABASE_SERVICE_ROLE_KEY",
    "SENDGRID_API_KEY",
    "FLUTTERWAVE_SECRET_KEY",
    "PAYPACK_APPLICATION_ID",
    "PAYPACK_APPLICATION_SECRET",
    "ALLOWED_ORIGINS",
]

DEFAULT_ORIGINS = [
    "https://househelp.rw",
    "https://www.househelp.rw",
    "https://app.househelp.rw",
]


def _database_url():
    url = os.environ.get("DATABASE_URL", "")
    if not url:
        return "sqlite:///househelp.db"
    # Supabase hands out postgres:// URLs; SQLAlchemy 2.x only knows postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _origins():
    raw = os.environ.get("ALLOWED_ORIGINS", "")
    return [o.strip() for o in raw.split(",") if o.strip()]


class Config:
    """Base configuration"""

    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-only-" + secrets.token_hex(16)
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Database (Supabase Postgres)
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB max request body

    # Supabase Auth
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

    # Email (SendGrid)
    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY", "")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "noreply@househelp.rw")
    EMAIL_FROM_NAME = os.environ.get("EMAIL_FROM_NAME", "HouseHelp")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:8080")

    # Payment gateways
    FLUTTERWAVE_SECRET_KEY = os.environ.get("FLUTTERWAVE_SECRET_KEY", "")
    FLUTTERWAVE_SECRET_HASH = os.environ.get("FLUTTERWAVE_SECRET_HASH", "")
    PAYPACK_APPLICATION_ID = os.environ.get("PAYPACK_APPLICATION_ID", "")
    PAYPACK_APPLICATION_SECRET = os.environ.get("PAYPACK_APPLICATION_SECRET", "")
    HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "15"))

    # CORS
    ALLOWED_ORIGINS = _origins() or DEFAULT_ORIGINS

    # Rate limiting (flask-limiter)
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI") or os.environ.get("REDIS_URL") or "memory://"
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "100 per 15 minutes")
    AUTH_RATE_LIMIT = os.environ.get("AUTH_RATE_LIMIT", "5 per 15 minutes")

    PING_MESSAGE = os.environ.get("PING_MESSAGE", "pong")

    # Pagination
    ITEMS_PER_PAGE = 50
    MAX_ITEMS_PER_PAGE = 200


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    ALLOWED_ORIGINS = _origins() or "*"


class ProductionConfig(Config):
    """Production configuration"""
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 10,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


class TestingConfig(Config):
    """Testing configuration with an isolated in-memory database"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SUPABASE_URL = "http://supabase.test"
    SUPABASE_ANON_KEY = "anon-test-key"
    SENDGRID_API_KEY = ""
    FLUTTERWAVE_SECRET_KEY = "FLWSECK_TEST-mock"
    FLUTTERWAVE_SECRET_HASH = "test-hash"
    PAYPACK_APPLICATION_ID = ""
    PAYPACK_APPLICATION_SECRET = ""
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"
    ALLOWED_ORIGINS = ["http://localhost:8080"]


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def check_environment(app_config):
    """Exit when required settings are absent; warn about optional ones.

    Skipped under the testing config.
    """
    if app_config.get("TESTING"):
        return

    missing = [name for name in REQUIRED_ENV_VARS if not app_config.get(name)]
    if missing:
        _startup_logger.critical(
            "MISSING REQUIRED ENV VARS: %s. Refusing to start.", ", ".join(missing)
        )
        raise SystemExit(1)

    missing_recommended = [name for name in RECOMMENDED_ENV_VARS if not os.environ.get(name)]
    if missing_recommended:
        _startup_logger.warning(
            "Missing optional env vars: %s", ", ".join(missing_recommended)
        )

    if "*" in app_config.get("ALLOWED_ORIGINS", []) and not app_config.get("DEBUG"):
        _startup_logger.critical(
            "ALLOWED_ORIGINS is '*' outside development; using the default allow-list."
        )
        app_config["ALLOWED_ORIGINS"] = DEFAULT_ORIGINS
