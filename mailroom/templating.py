import re
from html import escape

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

RTL_WRAPPER = '<div dir="rtl" style="direction: rtl; text-align: right;">{body}</div>'


def recipient_variables(recipient):
    name = " ".join(str(recipient.get("name") or "").split())
    parts = name.split(" ") if name else []
    first_name = parts[0] if parts else ""
    last_name = " ".join(parts[1:])
    email = str(recipient.get("email") or "").strip()

    return {
        "name": name,
        "fullName": name,
        "full_name": name,
        "firstName": first_name,
        "first_name": first_name,
        "lastName": last_name,
        "last_name": last_name,
        "email": email,
    }


def render_placeholders(text, variables):
    """Replace every ``{{key}}`` with the HTML-escaped value for ``key``.

    Keys missing from ``variables`` render as an empty string.
    """
    escaped = {key: escape(str(value), quote=True) for key, value in variables.items()}
    return PLACEHOLDER_PATTERN.sub(
        lambda match: escaped.get(match.group(1), ""), text or ""
    )


def wrap_rtl(body_html):
    return RTL_WRAPPER.format(body=body_html)
