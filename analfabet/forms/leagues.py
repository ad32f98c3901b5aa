from wtforms import BooleanField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

from analfabet.forms import JsonForm


class CreateLeagueForm(JsonForm):
    name = StringField(
        "League Name",
        validators=[
            DataRequired(),
            Length(
                min=3,
                max=100,
                message="League name must be between 3 and 100 characters",
            ),
            Regexp(r"^[\w .-]+$", message="League name contains invalid characters"),
        ],
    )
    description = TextAreaField(
        "Description",
        validators=[
            Length(max=500, message="Description cannot exceed 500 characters")
        ],
    )
    is_public = BooleanField("Make this league public", default=False)
    max_members = IntegerField(
        "Maximum Members",
        validators=[
            Optional(),
            NumberRange(
                min=2, max=100, message="Maximum members must be between 2 and 100"
            ),
        ],
    )


class JoinLeagueForm(JsonForm):
    invite_code = StringField(
        "Invite Code",
        validators=[
            DataRequired(),
            Length(min=8, max=8, message="Invite codes are 8 characters long"),
        ],
    )
