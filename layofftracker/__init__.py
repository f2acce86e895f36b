# layofftracker/__init__.py
from __future__ import annotations

import logging
import os as _os
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

# Shared extensions (singletons) live in layofftracker/extensions.py
from layofftracker.extensions import csrf, db, limiter, login_manager, migrate

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _mask_uri(uri: str) -> str:
    """Hide password in logs."""
    if "@" in uri and "://" in uri:
        head, tail = uri.split("://", 1)
        creds, rest = tail.split("@", 1)
        if ":" in creds:
            user, _pwd = creds.split(":", 1)
            return f"{head}://{user}:***@{rest}"
    return uri


def _configure_logging(app: Flask) -> None:
    """stderr + rotating file, both INFO."""
    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    app.logger.handlers.clear()
    app.logger.addHandler(stderr_handler)

    log_path = app.config.get("APP_ERROR_LOG")
    if log_path:
        log_dir = _os.path.dirname(log_path)
        if log_dir:
            _os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app.logger.addHandler(file_handler)

    app.logger.setLevel(logging.INFO)
    app.logger.propagate = False


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    load_dotenv()

    from layofftracker.config import Config

    app = Flask(__name__, instance_relative_config=False)

    # ---- Base config --------------------------------------------------------
    app.config.from_object(Config)
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_REFRESH_EACH_REQUEST=True,
        PERMANENT_SESSION_LIFETIME=timedelta(days=7),
        PREFERRED_URL_SCHEME=_os.getenv("PREFERRED_URL_SCHEME", "https"),
        # JSON API: the SPA reads the token from /api/auth/csrf and echoes it in X-CSRFToken
        WTF_CSRF_HEADERS=["X-CSRFToken", "X-CSRF-Token"],
    )
    if _os.getenv("HTTPS", "on").lower() in ("on", "1", "true", "yes"):
        app.config["SESSION_COOKIE_SECURE"] = True
    if overrides:
        app.config.update(overrides)

    # ---- Logging (stderr + rotating file) ----------------------------------
    _configure_logging(app)

    # ---- DB / Extensions init ----------------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    # ---- Flask-Login init ---------------------------------------------------
    from layofftracker.auth.utils import load_user, unauthorized_json

    login_manager.init_app(app)
    login_manager.session_protection = "basic"
    login_manager.user_loader(load_user)
    login_manager.unauthorized_handler(unauthorized_json)

    # ---- Load models early --------------------------------------------------
    from layofftracker import models, models_auth, models_companies  # noqa: F401

    app.logger.info(f"Logger initialized. DB: {_mask_uri(app.config['SQLALCHEMY_DATABASE_URI'])}")

    # ---- Email transport (chosen once) -------------------------------------
    from layofftracker.services.email_service import EmailService

    email_service = EmailService.from_app_config(app.config)
    app.extensions["email_service"] = email_service
    if email_service.provider == "console":
        app.logger.warning("No email transport configured; magic links will be logged to the console")
    else:
        app.logger.info(f"Email transport: {email_service.provider}")

    if not app.config.get("STRIPE_SECRET_KEY"):
        app.logger.warning("STRIPE_SECRET_KEY not set; checkout endpoints will fail")

    # ---- Error tracking -----------------------------------------------------
    from layofftracker.monitoring import init_sentry

    init_sentry(app)

    # ---- Security headers ---------------------------------------------------
    @app.after_request
    def _security_headers(resp):
        resp.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if app.config.get("PREFERRED_URL_SCHEME", "https") == "https":
            resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return resp

    # ---- Register blueprints -----------------------------------------------
    from layofftracker.account import account_bp
    from layofftracker.auth import auth_bp
    from layofftracker.billing import billing_bp
    from layofftracker.companies import companies_bp
    from layofftracker.dashboard import dashboard_bp

    for bp in (auth_bp, billing_bp, account_bp, companies_bp, dashboard_bp):
        app.register_blueprint(bp)
        app.logger.info(f"{bp.name} registered")

    @app.route("/__health__")
    def __health__():
        return "ok", 200

    # ---- CLI commands -------------------------------------------------------
    @app.cli.command("create-stripe-price")
    def create_stripe_price():
        """Create the monthly Pro product/price in Stripe and print its id."""
        from layofftracker.services.stripe_service import create_pro_price

        product_id, price_id = create_pro_price()
        click.echo(f"Created product {product_id}")
        click.echo(f"STRIPE_PRICE_ID={price_id}")

    @app.cli.command("purge-magic-links")
    def purge_magic_links():
        """Delete expired magic-link tokens."""
        from layofftracker.auth.magic_link import purge_expired_tokens

        removed = purge_expired_tokens()
        click.echo(f"Removed {removed} expired magic-link token(s)")

    # ---- Error handlers (JSON API) -----------------------------------------
    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF failed: {getattr(e, 'description', str(e))}")
        return jsonify({"message": "Your session expired or the request was invalid. Please refresh and try again."}), 400

    @app.errorhandler(HTTPException)
    def _http_error(err):
        return jsonify({"message": err.description or err.name}), err.code

    @app.errorhandler(Exception)
    def _500(err):
        app.logger.exception(f"Unhandled exception on {request.method} {request.path}")
        return jsonify({"message": "Internal Server Error"}), 500

    return app
