"""HTTP helpers shared by the login handshake and the data endpoints."""

import logging
from typing import Any

import httpx

from .const import REQUEST_TIMEOUT, USER_AGENT
from .exceptions import IesApiNetworkError, IesApiTimeoutError

_LOGGER = logging.getLogger(__name__)

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_JSON = "application/json, text/plain, */*"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_MULTIPLE_CHOICES = 300
HTTP_BAD_REQUEST = 400


def mask_token(token: str | None) -> str:
    """Mask a token for safe logging."""
    if not token:
        return "<none>"
    if len(token) <= 8:  # noqa: PLR2004
        return "****"
    return f"{token[:4]}...{token[-4:]}"


def create_headers(
    cookie_jar: str | None = None,
    bearer_token: str | None = None,
    *,
    accept: str = ACCEPT_HTML,
    form: bool = False,
) -> dict[str, str]:
    """Create HTTP headers for portal requests.

    Args:
        cookie_jar: Optional ``name=value; ...`` string sent as the Cookie header.
        bearer_token: Optional token sent as ``Authorization: Bearer``.
        accept: Value of the Accept header.
        form: Whether the body is a URL-encoded form.

    Returns:
        Dictionary containing HTTP headers.

    """
    headers = {
        "user-agent": USER_AGENT,
        "accept": accept,
        "accept-language": "en-GB,en;q=0.9",
    }
    if cookie_jar:
        headers["cookie"] = cookie_jar
    if bearer_token:
        headers["authorization"] = f"Bearer {bearer_token}"
    if form:
        headers["content-type"] = FORM_CONTENT_TYPE
    return headers


def is_redirect(response: httpx.Response) -> bool:
    return HTTP_MULTIPLE_CHOICES <= response.status_code < HTTP_BAD_REQUEST


def is_auth_status(status: int) -> bool:
    """Check if HTTP status code indicates an expired or rejected session."""
    return status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN)


def is_login_location(url: str | httpx.URL | None) -> bool:
    """Check if a URL points at the identity provider's login page."""
    return url is not None and "login" in str(url).lower()


def set_cookie_headers(
    response: httpx.Response, *, include_history: bool = False
) -> list[str]:
    """Return raw Set-Cookie headers, optionally across the redirect chain."""
    responses = [*response.history, response] if include_history else [response]
    headers: list[str] = []
    for item in responses:
        headers.extend(item.headers.get_list("set-cookie"))
    return headers


async def async_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request with the fixed timeout and map transport failures.

    Cookies travel only in the explicit Cookie header built from the session;
    the client jar httpx fills while following redirects is emptied after
    every request.

    Raises:
        IesApiTimeoutError: If the request timed out.
        IesApiNetworkError: If the connection failed.

    """
    kwargs.setdefault("timeout", REQUEST_TIMEOUT)
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as err:
        error_msg = f"Request timed out: {method} {url}"
        raise IesApiTimeoutError(error_msg) from err
    except httpx.RequestError as err:
        error_msg = f"Network error: {err}"
        raise IesApiNetworkError(error_msg) from err
    finally:
        client.cookies.clear()

    _LOGGER.debug("%s %s -> HTTP %s", method, response.url, response.status_code)
    return response
