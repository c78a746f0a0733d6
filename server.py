"""
HouseHelp API application factory.
"""

import os
import logging

import click
from flask import Flask, request
from flask_cors import CORS

from app_config import config, check_environment
from extensions import limiter
from errors import register_error_handlers
from field_mapping import keys_to_snake_case
from models import db
from supabase_auth import SupabaseAuth
from payment_gateways import FlutterwaveClient, PayPackClient
from auth_routes import auth_bp
from routes import (
    health_bp, workers_bp, homeowners_bp, bookings_bp, applications_bp, payments_bp,
    webhook_bp, withdrawals_bp, disputes_bp, documents_bp, favorites_bp, reviews_bp, availability_bp,
    notifications_bp, trainings_bp, services_bp, reports_bp, options_bp,
)

BLUEPRINTS = (
    auth_bp, health_bp, workers_bp, homeowners_bp, bookings_bp, applications_bp,
    payments_bp, webhook_bp, withdrawals_bp, disputes_bp, documents_bp, favorites_bp,
    reviews_bp, availability_bp, notifications_bp, trainings_bp, services_bp, reports_bp, options_bp,
)

# Webhook bodies are verified against the gateway's own field names.
_NORMALIZE_SKIP_PREFIXES = ("/api/webhooks/",)


def _init_sentry():
    dsn = os.environ.get("SENTRY_DSN")
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(dsn=dsn, integrations=[FlaskIntegration()], traces_sample_rate=0.1)


def create_app(config_name=None):
    """Flask application factory"""
    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    check_environment(app.config)
    _init_sentry()

    CORS(app, resources={r"/api/*": {"origins": app.config["ALLOWED_ORIGINS"]}})
    db.init_app(app)
    limiter.init_app(app)

    timeout = app.config["HTTP_TIMEOUT"]
    app.extensions["auth_provider"] = SupabaseAuth(
        app.config["SUPABASE_URL"],
        app.config["SUPABASE_ANON_KEY"],
        app.config["SUPABASE_SERVICE_ROLE_KEY"],
        timeout=timeout,
    )
    app.extensions["flutterwave"] = FlutterwaveClient(
        app.config["FLUTTERWAVE_SECRET_KEY"], app.config["FLUTTERWAVE_SECRET_HASH"], timeout=timeout,
    )
    app.extensions["paypack"] = PayPackClient(
        app.config["PAYPACK_APPLICATION_ID"], app.config["PAYPACK_APPLICATION_SECRET"], timeout=timeout,
    )

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    register_error_handlers(app)
    _register_hooks(app)
    _register_cli(app)
    return app


def _register_hooks(app):
    is_development = bool(app.config.get("DEBUG"))

    @app.before_request
    def normalize_json_input():
        """Snake-case JSON body keys and drop dangerous keys.

        Replaces the parsed JSON cache so downstream calls to
        request.get_json() return the normalized body.
        """
        if request.path.startswith(_NORMALIZE_SKIP_PREFIXES) or not request.is_json:
            return
        raw = request.get_json(silent=True)
        if raw is None:
            return
        normalized = keys_to_snake_case(raw)
        # Werkzeug 2.3-3.x cache get_json() results as a (silent, non-silent) tuple.
        request._cached_json = (normalized, normalized)

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'"
        if not is_development:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def _register_cli(app):
    @app.cli.command("init-db")
    def cli_init_db():
        """Create missing tables and seed dropdown options."""
        from routes.options import seed_options
        db.create_all()
        added = seed_options()
        click.echo("Tables created; {} option rows seeded.".format(added))
