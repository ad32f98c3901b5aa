import html

from flask_wtf import FlaskForm


def sanitize_input(text):
    """Sanitize user input to prevent XSS"""
    if not text:
        return text
    return html.escape(text.strip())


class JsonForm(FlaskForm):
    """Form bound to a JSON request body"""

    class Meta:
        # CSRFProtect already checks the X-CSRFToken header on every POST
        csrf = False
