# layofftracker/companies/__init__.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from layofftracker import db
from layofftracker.forms import INVALID_BODY, CompanyForm, json_form, json_payload
from layofftracker.models_companies import Company, CompanyActivity, LayoffEvent

companies_bp = Blueprint("companies_bp", __name__, url_prefix="/api/companies")

SEARCH_MIN_CHARS = 2
SEARCH_LIMIT = 10


def _company_or_404(company_id: str):
    company = db.session.get(Company, company_id)
    if company is None:
        return None, (jsonify({"message": "Company not found"}), 404)
    return company, None


@companies_bp.get("/search")
@login_required
def search():
    q = (request.args.get("q") or "").strip()
    if len(q) < SEARCH_MIN_CHARS:
        return jsonify([])
    rows = (
        Company.query
        .filter(Company.name.ilike(f"%{q}%"))
        .order_by(Company.name)
        .limit(SEARCH_LIMIT)
        .all()
    )
    return jsonify([c.to_dict() for c in rows])


@companies_bp.get("")
def list_companies():
    return jsonify([c.to_dict() for c in Company.query.order_by(Company.name).all()])


@companies_bp.post("")
@login_required
def create():
    payload = json_payload()
    if payload is None:
        return jsonify({"message": INVALID_BODY}), 400
    form = json_form(CompanyForm, payload)
    if not form.validate():
        return jsonify({"message": "Invalid company data", "errors": form.errors}), 400

    company = Company(
        name=form.name.data.strip(),
        industry=form.industry.data.strip(),
        employee_count=form.employee_count.data or None,
        logo_url=form.logo_url.data or None,
        state=(form.state.data or "").strip() or None,
        status=form.status.data,
    )
    db.session.add(company)
    db.session.commit()
    return jsonify(company.to_dict()), 201


@companies_bp.get("/<company_id>")
@login_required
def get_company(company_id: str):
    company, error = _company_or_404(company_id)
    if error:
        return error
    return jsonify(company.to_dict())


@companies_bp.get("/<company_id>/layoffs")
@login_required
def layoffs(company_id: str):
    company, error = _company_or_404(company_id)
    if error:
        return error
    rows = company.layoff_events.order_by(LayoffEvent.event_date.desc()).all()
    return jsonify([e.to_dict() for e in rows])


@companies_bp.get("/<company_id>/activities")
@login_required
def activities(company_id: str):
    company, error = _company_or_404(company_id)
    if error:
        return error
    rows = company.activities.order_by(CompanyActivity.activity_date.desc()).all()
    return jsonify([a.to_dict() for a in rows])
