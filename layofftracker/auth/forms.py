from __future__ import annotations

from wtforms import StringField
from wtforms.validators import DataRequired, Email, Length

from layofftracker.forms import JsonForm


class MagicLinkRequestForm(JsonForm):
    email = StringField(
        "Email",
        validators=[
            DataRequired(message="Email is required"),
            Length(max=254),
            Email(message="Please enter a valid email address"),
        ],
    )

    def first_error(self) -> str:
        for errors in self.errors.values():
            if errors:
                return errors[0]
        return "Invalid request"
