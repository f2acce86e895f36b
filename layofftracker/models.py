# layofftracker/models.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy import Boolean, DateTime, String, Text

from layofftracker import db


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


def _iso(v):
    return v.isoformat() if v else None


# -------------------------
# User
# -------------------------
class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(String(36), primary_key=True, default=_uuid)
    email = db.Column(String(255), unique=True, index=True, nullable=False)
    first_name = db.Column(String(120), nullable=True)
    last_name = db.Column(String(120), nullable=True)
    profile_image_url = db.Column(String(512), nullable=True)
    phone_number = db.Column(String(32), nullable=True)

    selected_company_id = db.Column(String(36), db.ForeignKey("companies.id"), nullable=True)

    # Alert preferences
    email_notifications = db.Column(Boolean, nullable=False, default=True)
    sms_notifications = db.Column(Boolean, nullable=False, default=False)

    is_email_verified = db.Column(Boolean, nullable=False, default=False)
    last_login_at = db.Column(DateTime, nullable=True)

    # Stripe mirror: ids are foreign keys into the gateway, status is for UI only
    stripe_customer_id = db.Column(String(64), unique=True, nullable=True)
    stripe_subscription_id = db.Column(String(64), unique=True, nullable=True)
    subscription_plan = db.Column(String(32), nullable=False, default="free")
    subscription_status = db.Column(String(32), nullable=True)  # trialing, active, incomplete, canceled, ...

    created_at = db.Column(DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    selected_company = db.relationship("Company", foreign_keys=[selected_company_id])
    notifications = db.relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan", lazy="dynamic"
    )

    @property
    def full_name(self) -> str | None:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "profileImageUrl": self.profile_image_url,
            "phoneNumber": self.phone_number,
            "selectedCompanyId": self.selected_company_id,
            "emailNotifications": self.email_notifications,
            "smsNotifications": self.sms_notifications,
            "isEmailVerified": self.is_email_verified,
            "lastLoginAt": _iso(self.last_login_at),
            "subscriptionPlan": self.subscription_plan,
            "subscriptionStatus": self.subscription_status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} plan={self.subscription_plan!r}>"


# -------------------------
# Notification
# -------------------------
class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(String(36), primary_key=True, default=_uuid)
    user_id = db.Column(String(36), db.ForeignKey("users.id"), index=True, nullable=True)
    title = db.Column(String(255), nullable=False)
    message = db.Column(Text, nullable=False)
    type = db.Column(String(16), nullable=False, default="info")  # info|warning|danger
    is_read = db.Column(Boolean, nullable=False, default=False)
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="notifications")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "isRead": self.is_read,
            "createdAt": _iso(self.created_at),
        }
