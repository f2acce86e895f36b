# layofftracker/models_auth.py
from datetime import datetime

from sqlalchemy import DateTime, Integer, String

from layofftracker import db
from layofftracker.models import utcnow


class MagicLinkToken(db.Model):
    __tablename__ = "magic_link_tokens"

    id = db.Column(Integer, primary_key=True)
    email = db.Column(String(255), index=True, nullable=False)
    token_hash = db.Column(String(64), unique=True, nullable=False)  # sha256 hex of the nonce
    expires_at = db.Column(DateTime, index=True, nullable=False)
    used_at = db.Column(DateTime, nullable=True)
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:
        return f"<MagicLinkToken id={self.id} email={self.email!r} used={self.used_at is not None}>"
