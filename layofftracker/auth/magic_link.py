# layofftracker/auth/magic_link.py
"""
Single-use, time-limited sign-in tokens.

The link carries an itsdangerous-signed payload ``{"email", "nonce"}``; the
database keeps only sha256(nonce) with its expiry and a ``used_at`` stamp.
Every request issues an independent token, and consuming one never touches
the others issued for the same address.
"""
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from layofftracker import db
from layofftracker.auth.utils import normalize_email
from layofftracker.models import utcnow
from layofftracker.models_auth import MagicLinkToken

INVALID = "invalid"
EXPIRED = "expired"
USED = "used"


class MagicLinkError(Exception):
    def __init__(self, reason: str):
        super().__init__(f"magic link {reason}")
        self.reason = reason


def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("MAGIC_LINK_SECRET") or current_app.config["SECRET_KEY"]
    return URLSafeTimedSerializer(secret_key=secret, salt="magic-link")


def expiry_minutes() -> int:
    return int(current_app.config.get("MAGIC_LINK_EXPIRY_MINUTES", 15))


def _hash(nonce: str) -> str:
    return hashlib.sha256(nonce.encode("utf-8")).hexdigest()


def issue_token(email: str, now: Optional[datetime] = None) -> str:
    """Store a new token for ``email`` and return the signed value for the link."""
    email = normalize_email(email)
    nonce = secrets.token_urlsafe(32)
    now = now or utcnow()

    db.session.add(
        MagicLinkToken(
            email=email,
            token_hash=_hash(nonce),
            expires_at=now + timedelta(minutes=expiry_minutes()),
        )
    )
    db.session.commit()
    return _serializer().dumps({"email": email, "nonce": nonce})


def consume_token(token: str, now: Optional[datetime] = None) -> MagicLinkToken:
    """
    Validate and burn a token.

    Raises:
        MagicLinkError: ``reason`` is ``invalid``, ``expired`` or ``used``
    """
    try:
        data = _serializer().loads(token, max_age=expiry_minutes() * 60)
    except SignatureExpired:
        raise MagicLinkError(EXPIRED)
    except BadSignature:
        raise MagicLinkError(INVALID)

    nonce = data.get("nonce") if isinstance(data, dict) else None
    if not nonce:
        raise MagicLinkError(INVALID)

    row = MagicLinkToken.query.filter_by(token_hash=_hash(nonce)).first()
    if row is None or row.email != data.get("email"):
        raise MagicLinkError(INVALID)

    now = now or utcnow()
    if row.is_expired(now):
        raise MagicLinkError(EXPIRED)
    if row.used_at is not None:
        raise MagicLinkError(USED)

    # Conditional update so two concurrent clicks cannot both succeed
    burned = (
        MagicLinkToken.query
        .filter(MagicLinkToken.id == row.id, MagicLinkToken.used_at.is_(None))
        .update({"used_at": now}, synchronize_session="fetch")
    )
    db.session.commit()
    if burned != 1:
        raise MagicLinkError(USED)
    return row


def purge_expired_tokens(now: Optional[datetime] = None) -> int:
    """Delete expired tokens; returns how many were removed."""
    now = now or utcnow()
    removed = MagicLinkToken.query.filter(MagicLinkToken.expires_at < now).delete(synchronize_session=False)
    db.session.commit()
    return removed
