# layofftracker/account/__init__.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from layofftracker import db
from layofftracker.auth.utils import normalize_email
from layofftracker.forms import INVALID_BODY, ProfileForm, json_form, json_payload, snake_keys
from layofftracker.models import Notification, User, utcnow
from layofftracker.models_companies import Company, CompanySubscription

account_bp = Blueprint("account_bp", __name__, url_prefix="/api")

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "email_notifications",
    "sms_notifications",
)

# --------------------------- helpers ---------------------------

def _email_taken(email: str) -> bool:
    other = User.query.filter(User.email == email, User.id != current_user.id).first()
    return other is not None


def _apply_profile(payload: dict):
    """
    Validate and apply the profile fields present in ``payload``.

    Returns an error response tuple, or None on success. Missing keys are left
    untouched so clients can send partial updates.
    """
    form = json_form(ProfileForm, payload)
    if not form.validate():
        return jsonify({"message": "Invalid profile data", "errors": form.errors}), 400

    present = set(snake_keys(payload))
    for field in PROFILE_FIELDS:
        if field not in present:
            continue
        value = getattr(form, field).data
        if field == "email":
            value = normalize_email(value)
            if not value:
                continue
            if value != current_user.email and _email_taken(value):
                return jsonify({"message": "Email already in use"}), 409
            if value != current_user.email:
                current_user.is_email_verified = False
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(current_user, field, value)

    current_user.updated_at = utcnow()
    return None

# --------------------------- profile ---------------------------

@account_bp.get("/user/profile")
@login_required
def get_profile():
    return jsonify(current_user.to_dict())


@account_bp.put("/user/profile")
@login_required
def update_profile():
    payload = json_payload()
    if payload is None:
        return jsonify({"message": INVALID_BODY}), 400
    error = _apply_profile(payload)
    if error:
        db.session.rollback()
        return error
    db.session.commit()
    return jsonify(current_user.to_dict())


@account_bp.post("/user/select-company")
@login_required
def select_company():
    payload = json_payload()
    if payload is None:
        return jsonify({"message": INVALID_BODY}), 400
    company_id = payload.get("companyId")
    if not company_id or not isinstance(company_id, str):
        return jsonify({"message": "Company ID is required"}), 400
    if db.session.get(Company, company_id) is None:
        return jsonify({"message": "Company not found"}), 404

    current_user.selected_company_id = company_id
    current_user.updated_at = utcnow()
    db.session.commit()
    return jsonify({"message": "Company selected successfully"})

# ---------------------- company watch list ----------------------

@account_bp.get("/user/subscriptions")
@login_required
def list_company_subscriptions():
    rows = (
        CompanySubscription.query
        .filter_by(user_id=current_user.id)
        .order_by(CompanySubscription.created_at)
        .all()
    )
    return jsonify([r.company.to_dict() for r in rows])


@account_bp.post("/subscription/update")
@login_required
def update_company_subscriptions():
    payload = json_payload()
    if payload is None:
        return jsonify({"message": INVALID_BODY}), 400
    company_ids = payload.get("companies")
    if company_ids is not None and (
        not isinstance(company_ids, list) or not all(isinstance(c, str) for c in company_ids)
    ):
        return jsonify({"message": "companies must be a list of company ids"}), 400

    contact = {k: payload[k] for k in ("email", "phoneNumber", "emailNotifications", "smsNotifications") if k in payload}
    error = _apply_profile(contact)
    if error:
        db.session.rollback()
        return error

    if company_ids is not None:
        wanted = set(company_ids)
        known = {c.id for c in Company.query.filter(Company.id.in_(wanted)).all()} if wanted else set()
        unknown = wanted - known
        if unknown:
            db.session.rollback()
            return jsonify({"message": "Unknown company ids", "companies": sorted(unknown)}), 400

        CompanySubscription.query.filter_by(user_id=current_user.id).delete()
        for cid in sorted(known):
            db.session.add(CompanySubscription(user_id=current_user.id, company_id=cid))

    db.session.commit()
    current_app.logger.info(f"Updated alert preferences for user {current_user.id}")
    return jsonify({"success": True, "message": "Subscription updated successfully"})

# ------------------------- notifications -------------------------

@account_bp.get("/notifications")
@login_required
def list_notifications():
    rows = (
        Notification.query
        .filter_by(user_id=current_user.id)
        .order_by(Notification.created_at.desc())
        .all()
    )
    return jsonify([n.to_dict() for n in rows])


@account_bp.post("/notifications/<notification_id>/read")
@login_required
def mark_notification_read(notification_id: str):
    n = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if n is None:
        return jsonify({"message": "Notification not found"}), 404
    n.is_read = True
    db.session.commit()
    return jsonify({"message": "Notification marked as read"})
