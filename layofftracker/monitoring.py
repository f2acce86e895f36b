# layofftracker/monitoring.py
"""
Error tracking via Sentry.

Only active when SENTRY_DSN is configured.
"""

import sentry_sdk
from flask import Flask
from flask_login import current_user
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration


def init_sentry(app: Flask) -> bool:
    """
    Initialize Sentry error tracking and performance monitoring.

    Returns:
        True if Sentry was initialized
    """
    sentry_dsn = app.config.get("SENTRY_DSN")
    if not sentry_dsn:
        app.logger.info("Sentry DSN not configured - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            FlaskIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            LoggingIntegration(),
        ],
        traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.1),
        sample_rate=app.config.get("SENTRY_SAMPLE_RATE", 1.0),
        environment=app.config.get("SENTRY_ENVIRONMENT", "production"),
        release=app.config.get("SENTRY_RELEASE", "unknown"),
        send_default_pii=False,  # user id is attached below, never the email
        attach_stacktrace=True,
        before_send=before_send_event,
    )

    @app.before_request
    def _sentry_user_context():
        if current_user and current_user.is_authenticated:
            sentry_sdk.set_user({"id": str(current_user.id)})

    app.logger.info(
        f"Sentry initialized (environment={app.config.get('SENTRY_ENVIRONMENT', 'production')}, "
        f"traces_sample_rate={app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1)})"
    )
    return True


def before_send_event(event, hint):
    """Drop health-check noise and 404s before they reach Sentry."""
    if event.get("request", {}).get("url", "").endswith("/__health__"):
        return None

    values = event.get("exception", {}).get("values") or [{}]
    if values[0].get("type") == "NotFound":
        return None

    return event
