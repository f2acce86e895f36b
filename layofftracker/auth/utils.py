# layofftracker/auth/utils.py
from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from flask import jsonify, session
from flask_login import login_user, logout_user

from layofftracker import db
from layofftracker.models import User, utcnow

# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_safe_next(next_url: Optional[str]) -> bool:
    """
    Allow only relative, same-site redirects for ?redirect=...
    """
    if not next_url:
        return False
    p = urlparse(next_url)
    return not p.scheme and not p.netloc and next_url.startswith("/") and not next_url.startswith("//")


def find_or_create_user(email: str) -> User:
    """Magic-link sign in doubles as sign up: unknown addresses get a new user."""
    email = normalize_email(email)
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(email=email)
        db.session.add(user)
    user.is_email_verified = True
    user.last_login_at = utcnow()
    db.session.commit()
    return user


# ---------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------

def start_user_session(user: User) -> None:
    session.permanent = True
    login_user(user)
    session["login_method"] = "magic-link"


def clear_user_session() -> None:
    logout_user()
    session.clear()


def unauthorized_json():
    """Single 401 policy for every @login_required endpoint."""
    return jsonify({"message": "Authentication required"}), 401


def load_user(user_id: str) -> Optional[User]:
    return db.session.get(User, user_id)
