"""Hidden form value extraction for the IES portal pages.

The portal has no API contract for its login and settings pages, so values are
scraped from the raw HTML. Every extractor returns ``None`` when the value is
missing instead of raising, letting the caller produce a precise error.
"""

import re
from html import unescape
from urllib.parse import unquote

CSRF_FIELD = "__RequestVerificationToken"
RETURN_URL_FIELD = "ReturnUrl"
CODE_FIELD = "code"
ID_TOKEN_FIELD = "id_token"
SESSION_STATE_FIELD = "session_state"

_INPUT_TAG = re.compile(r"<input\b(?P<attributes>[^>]*)>", re.IGNORECASE)
_ATTRIBUTE = re.compile(
    r"""(?P<key>[\w:.-]+)\s*=\s*(?:"(?P<double>[^"]*)"|'(?P<single>[^']*)')""",
)
_LOGIN_FORM = re.compile(
    r"""<form\b[^>]*action\s*=\s*["'][^"']*/Account/Login""", re.IGNORECASE
)
_PASSWORD_INPUT = re.compile(
    r"""<input\b[^>]*name\s*=\s*["']Password["']""", re.IGNORECASE
)


def _parse_attributes(attributes: str) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for match in _ATTRIBUTE.finditer(attributes):
        value = match.group("double")
        if value is None:
            value = match.group("single")
        parsed.setdefault(match.group("key").lower(), value)
    return parsed


def extract_input_value(html: str, name: str) -> str | None:
    """Return the entity-decoded value of the first input named ``name``.

    Attribute order inside the tag does not matter. Empty values count as
    missing.
    """
    for match in _INPUT_TAG.finditer(html):
        attributes = _parse_attributes(match.group("attributes"))
        if attributes.get("name") != name:
            continue
        value = unescape(attributes.get("value", ""))
        return value or None
    return None


def extract_csrf_token(html: str) -> str | None:
    return extract_input_value(html, CSRF_FIELD)


def extract_return_url(html: str) -> str | None:
    """Return the login form's ReturnUrl as a usable path.

    Some pages render the value percent-encoded (``%2Fconnect%2Fauthorize``),
    others as a plain path.
    """
    value = extract_input_value(html, RETURN_URL_FIELD)
    if value is None:
        return None
    if not value.startswith(("/", "http://", "https://")):
        value = unquote(value)
    return value


def extract_authorization_code(html: str) -> str | None:
    return extract_input_value(html, CODE_FIELD)


def extract_id_token(html: str) -> str | None:
    return extract_input_value(html, ID_TOKEN_FIELD)


def extract_session_state(html: str) -> str | None:
    return extract_input_value(html, SESSION_STATE_FIELD)


def is_login_page(html: str) -> bool:
    """Return True if the page is the identity provider's login form."""
    return bool(_LOGIN_FORM.search(html) or _PASSWORD_INPUT.search(html))
