# layofftracker/forms.py
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional as Opt

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, SelectField, StringField
from wtforms.validators import URL, DataRequired, Email, Length, Optional, Regexp

from layofftracker.models_companies import COMPANY_STATUSES

# The SPA posts camelCase keys; forms use snake_case field names
_CAMEL_TO_SNAKE = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phoneNumber": "phone_number",
    "emailNotifications": "email_notifications",
    "smsNotifications": "sms_notifications",
    "employeeCount": "employee_count",
    "logoUrl": "logo_url",
}

INVALID_BODY = "Request body must be a JSON object"
INVALID_VALUE = "Invalid value."


def snake_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {_CAMEL_TO_SNAKE.get(k, k): v for k, v in (payload or {}).items()}


def json_payload() -> Opt[Dict[str, Any]]:
    """
    The request's JSON object.

    Returns {} for an empty or unparsable body and None when the body is
    valid JSON but not an object (list, string, number).
    """
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def _form_value(value: Any) -> Opt[str]:
    # form fields only ever see strings; BooleanField treats "false" as False
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


class JsonForm(FlaskForm):
    """FlaskForm bound from a parsed JSON object instead of request.form."""

    _bad_types: tuple = ()

    def validate(self, extra_validators=None) -> bool:
        ok = super().validate(extra_validators=extra_validators)
        for name in self._bad_types:
            field = self._fields.get(name)
            if field is not None:
                field.errors = list(field.errors) + [INVALID_VALUE]
                ok = False
        return ok


def json_form(form_cls, payload: Mapping[str, Any]):
    """Bind a JsonForm to an already-parsed JSON payload (CSRF is enforced app-wide)."""
    data, bad = {}, []
    for key, value in snake_keys(payload).items():
        if value is None:
            continue
        as_text = _form_value(value)
        if as_text is None:
            bad.append(key)
        else:
            data[key] = as_text
    form = form_cls(formdata=MultiDict(data), meta={"csrf": False})
    form._bad_types = tuple(bad)
    return form


class ProfileForm(JsonForm):
    first_name = StringField("First name", validators=[Optional(), Length(max=120)])
    last_name = StringField("Last name", validators=[Optional(), Length(max=120)])
    email = StringField("Email", validators=[Optional(), Length(max=254), Email()])
    phone_number = StringField(
        "Phone",
        validators=[Optional(), Regexp(r"^[0-9+()\-.\s]{7,32}$", message="Enter a valid phone number.")],
    )
    email_notifications = BooleanField("Email alerts")
    sms_notifications = BooleanField("SMS alerts")


class CompanyForm(JsonForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=255)])
    industry = StringField("Industry", validators=[DataRequired(), Length(max=120)])
    employee_count = StringField("Employees", validators=[Optional(), Length(max=32)])
    logo_url = StringField("Logo URL", validators=[Optional(), URL(), Length(max=512)])
    state = StringField("State", validators=[Optional(), Length(max=64)])
    status = SelectField("Status", choices=[(s, s) for s in COMPANY_STATUSES], default="safe")
