# layofftracker/models_companies.py
from __future__ import annotations

from sqlalchemy import JSON, DateTime, Integer, String, Text

from layofftracker import db
from layofftracker.models import _iso, _uuid, utcnow

COMPANY_STATUSES = ("safe", "monitoring", "active_layoffs")
ACTIVITY_TYPES = ("layoff", "hiring", "earnings", "announcement")


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(String(36), primary_key=True, default=_uuid)
    name = db.Column(String(255), nullable=False, index=True)
    industry = db.Column(String(120), nullable=False)
    employee_count = db.Column(String(32), nullable=True)  # free-form band, e.g. "10,000+"
    logo_url = db.Column(String(512), nullable=True)
    status = db.Column(String(32), nullable=False, default="safe")
    state = db.Column(String(64), nullable=True, index=True)  # HQ state, for regional breakdowns
    last_update = db.Column(DateTime, default=utcnow, nullable=False)
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    layoff_events = db.relationship(
        "LayoffEvent", back_populates="company", cascade="all, delete-orphan", lazy="dynamic"
    )
    activities = db.relationship(
        "CompanyActivity", back_populates="company", cascade="all, delete-orphan", lazy="dynamic"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "industry": self.industry,
            "employeeCount": self.employee_count,
            "logoUrl": self.logo_url,
            "status": self.status,
            "state": self.state,
            "lastUpdate": _iso(self.last_update),
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r} status={self.status!r}>"


class LayoffEvent(db.Model):
    __tablename__ = "layoff_events"

    id = db.Column(String(36), primary_key=True, default=_uuid)
    company_id = db.Column(String(36), db.ForeignKey("companies.id"), index=True, nullable=False)
    title = db.Column(String(255), nullable=False)
    description = db.Column(Text, nullable=True)
    affected_employees = db.Column(Integer, nullable=True)
    event_date = db.Column(DateTime, nullable=False)
    source = db.Column(String(255), nullable=True)
    severity = db.Column(String(16), nullable=True)  # low|medium|high
    affected_job_titles = db.Column(JSON, nullable=True)  # list of job title strings
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    company = db.relationship("Company", back_populates="layoff_events")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "title": self.title,
            "description": self.description,
            "affectedEmployees": self.affected_employees,
            "eventDate": _iso(self.event_date),
            "source": self.source,
            "severity": self.severity,
            "affectedJobTitles": self.affected_job_titles or [],
            "createdAt": _iso(self.created_at),
        }


class CompanyActivity(db.Model):
    __tablename__ = "company_activities"

    id = db.Column(String(36), primary_key=True, default=_uuid)
    company_id = db.Column(String(36), db.ForeignKey("companies.id"), index=True, nullable=False)
    description = db.Column(Text, nullable=False)
    activity_type = db.Column(String(32), nullable=False)
    activity_date = db.Column(DateTime, nullable=False)
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    company = db.relationship("Company", back_populates="activities")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "description": self.description,
            "activityType": self.activity_type,
            "activityDate": _iso(self.activity_date),
            "createdAt": _iso(self.created_at),
        }


class CompanySubscription(db.Model):
    """A company on a user's watch list (drives layoff alerts)."""
    __tablename__ = "company_subscriptions"

    user_id = db.Column(String(36), db.ForeignKey("users.id"), primary_key=True)
    company_id = db.Column(String(36), db.ForeignKey("companies.id"), primary_key=True)
    created_at = db.Column(DateTime, default=utcnow, nullable=False)

    company = db.relationship("Company")
