# layofftracker/auth/__init__.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, redirect, request, url_for
from flask_login import current_user, login_required
from flask_wtf.csrf import generate_csrf

from layofftracker.extensions import limiter
from layofftracker.auth.forms import MagicLinkRequestForm
from layofftracker.forms import INVALID_BODY, json_form, json_payload
from layofftracker.auth.magic_link import (
    EXPIRED,
    USED,
    MagicLinkError,
    consume_token,
    issue_token,
)
from layofftracker.auth.utils import (
    clear_user_session,
    find_or_create_user,
    is_safe_next,
    start_user_session,
)
from layofftracker.services.email_service import get_email_service

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/auth")

_ERROR_REDIRECTS = {
    EXPIRED: "/?error=expired-token",
    USED: "/?error=token-used",
}


def _magic_link_rate_limit() -> str:
    return current_app.config.get("MAGIC_LINK_RATE_LIMIT", "5 per minute")


def _magic_link_url(token: str) -> str:
    base = (current_app.config.get("BASE_URL") or request.host_url).rstrip("/")
    return base + url_for("auth_bp.verify_magic_link", token=token)


# ---------------------------------------------------------------------
# Magic link
# ---------------------------------------------------------------------
@auth_bp.post("/magic-link/request")
@limiter.limit(_magic_link_rate_limit)
def request_magic_link():
    payload = json_payload()
    if payload is None:
        return jsonify({"success": False, "message": INVALID_BODY}), 400

    form = json_form(MagicLinkRequestForm, payload)
    if not form.validate():
        return jsonify({"success": False, "message": form.first_error()}), 400

    token = issue_token(form.email.data)
    sent = get_email_service().send_magic_link(form.email.data.strip(), _magic_link_url(token))
    if not sent:
        return jsonify({"success": False, "message": "Failed to send magic link. Please try again."}), 500

    return jsonify({"success": True, "message": "Magic link sent! Check your email for the sign-in link."})


@auth_bp.get("/magic-link/verify")
def verify_magic_link():
    token = request.args.get("token", "")
    if not token:
        return redirect("/?error=invalid-token")

    try:
        record = consume_token(token)
    except MagicLinkError as e:
        current_app.logger.info(f"Magic link rejected: {e.reason}")
        return redirect(_ERROR_REDIRECTS.get(e.reason, "/?error=invalid-token"))

    try:
        user = find_or_create_user(record.email)
        start_user_session(user)
    except Exception:
        current_app.logger.exception("Magic link verification failed")
        return redirect("/?error=verification-failed")

    current_app.logger.info(f"User {user.id} signed in with a magic link")
    target = request.args.get("redirect", "")
    return redirect(target if is_safe_next(target) else "/dashboard")


@auth_bp.post("/magic-link/logout")
def logout():
    clear_user_session()
    return jsonify({"success": True, "message": "Logged out successfully"})


# ---------------------------------------------------------------------
# Session info
# ---------------------------------------------------------------------
@auth_bp.get("/user")
@login_required
def user():
    return jsonify(current_user.to_dict())


@auth_bp.get("/csrf")
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})
