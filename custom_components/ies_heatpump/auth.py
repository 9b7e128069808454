"""OIDC login handshake for the IES heat pump portal.

The portal has no token API. A session is obtained by replaying what a browser
does: follow the portal's redirect to the identity provider, submit the login
form, collect the auto-submitted authorization response and post it back to the
portal's OIDC callback. The ID token from that response is the bearer token.
"""

import base64
import json
import logging
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx

from . import scraper
from .const import (
    BASE_URL,
    DEFAULT_TOKEN_LIFETIME,
    INVALID_CREDENTIALS_MARKER,
    LOGIN_PATH,
    OIDC_CALLBACK_PATH,
    OIDC_CLIENT_ID,
    OIDC_SCOPE,
    TOKEN_PATH,
)
from .exceptions import IesApiAuthError, IesApiClientError
from .models import JWT, Session, merge_cookie_jar
from .transport import (
    ACCEPT_JSON,
    async_request,
    create_headers,
    is_redirect,
    mask_token,
    set_cookie_headers,
)

_LOGGER = logging.getLogger(__name__)


def extract_jwt_expiry(token: str) -> datetime:
    """Extract expiration timestamp from JWT token's 'exp' claim.

    Args:
        token: JWT token string.

    Returns:
        Expiration datetime from the JWT token.

    Raises:
        ValueError: If token is malformed or missing 'exp' claim.

    """
    jwt_parts_count = 3
    base64_padding_mod = 4

    parts = token.split(".")
    if len(parts) != jwt_parts_count:
        error_msg = "Invalid JWT format: expected 3 parts"
        raise ValueError(error_msg)

    payload_encoded = parts[1]
    padding = len(payload_encoded) % base64_padding_mod
    if padding:
        payload_encoded += "=" * (base64_padding_mod - padding)

    payload = json.loads(base64.urlsafe_b64decode(payload_encoded).decode("utf-8"))
    if not isinstance(payload, dict):
        error_msg = "JWT payload is not a JSON object"
        raise ValueError(error_msg)

    exp_timestamp = payload.get("exp")
    if exp_timestamp is None:
        error_msg = "JWT token missing 'exp' claim"
        raise ValueError(error_msg)
    if isinstance(exp_timestamp, bool) or not isinstance(exp_timestamp, int | float):
        error_msg = f"JWT 'exp' claim is not numeric: {exp_timestamp!r}"
        raise ValueError(error_msg)

    return datetime.fromtimestamp(exp_timestamp, tz=UTC)


def create_jwt(token: str, now: datetime | None = None) -> JWT:
    """Create a JWT object, defaulting to a one hour lifetime if undecodable."""
    try:
        expire_at = extract_jwt_expiry(token)
    except (ValueError, OverflowError, OSError) as err:
        issued_at = now or datetime.now(UTC)
        expire_at = issued_at + timedelta(seconds=DEFAULT_TOKEN_LIFETIME)
        _LOGGER.debug(
            "Could not decode token expiry (%s), assuming %s", err, expire_at
        )
    return JWT(token=token, expire_at=expire_at)


def _origin(url: str | httpx.URL) -> str:
    parts = urlsplit(str(url))
    return f"{parts.scheme}://{parts.netloc}"


def _extract_state(login_url: str) -> str | None:
    """Return the OIDC state from the login redirect.

    IdentityServer nests the authorize request (and its state) inside ReturnUrl,
    other setups pass it at the top level.
    """
    query = parse_qs(urlsplit(login_url).query)
    if query.get("state"):
        return query["state"][0]
    for return_url in query.get("ReturnUrl", []):
        nested = parse_qs(urlsplit(return_url).query)
        if nested.get("state"):
            return nested["state"][0]
    return None


async def _async_bootstrap(
    client: httpx.AsyncClient, base_url: str
) -> tuple[str, str | None, str]:
    """Step 1: let the portal redirect us to the identity provider."""
    response = await async_request(
        client, "GET", f"{base_url}/", headers=create_headers(), follow_redirects=False
    )
    location = response.headers.get("location")
    if not location:
        error_msg = "Main app did not redirect to auth server"
        raise IesApiAuthError(error_msg)

    login_url = urljoin(f"{base_url}/", location)
    app_cookies = merge_cookie_jar("", set_cookie_headers(response))
    state = _extract_state(login_url)
    if state is None:
        _LOGGER.debug("Login redirect carried no state parameter: %s", login_url)
    return login_url, state, app_cookies


async def _async_fetch_login_page(
    client: httpx.AsyncClient, login_url: str
) -> tuple[str, str, str, str]:
    """Step 2: load the login form and collect its hidden values."""
    response = await async_request(
        client, "GET", login_url, headers=create_headers(), follow_redirects=True
    )
    if not response.is_success:
        error_msg = f"Login page request failed: HTTP {response.status_code}"
        raise IesApiAuthError(error_msg)

    html = response.text
    csrf_token = scraper.extract_csrf_token(html)
    if csrf_token is None:
        error_msg = "Could not find CSRF token on login page"
        raise IesApiAuthError(error_msg)

    return_url = scraper.extract_return_url(html)
    if return_url is None:
        error_msg = "Could not find ReturnUrl on login page"
        raise IesApiAuthError(error_msg)

    session_cookies = merge_cookie_jar(
        "", set_cookie_headers(response, include_history=True)
    )
    if not session_cookies:
        error_msg = "Login page did not set any session cookies"
        raise IesApiAuthError(error_msg)

    return _origin(response.url), csrf_token, return_url, session_cookies


async def _async_submit_credentials(  # noqa: PLR0913
    client: httpx.AsyncClient,
    identity_url: str,
    username: str,
    password: str,
    csrf_token: str,
    return_url: str,
    session_cookies: str,
) -> str:
    """Step 3: post the credentials, returning the updated session cookies."""
    response = await async_request(
        client,
        "POST",
        f"{identity_url}{LOGIN_PATH}",
        headers={
            **create_headers(session_cookies, form=True),
            "origin": identity_url,
        },
        data={
            "Username": username,
            "Password": password,
            scraper.CSRF_FIELD: csrf_token,
            scraper.RETURN_URL_FIELD: return_url,
        },
        follow_redirects=False,
    )

    if is_redirect(response):
        return merge_cookie_jar(session_cookies, set_cookie_headers(response))

    if response.is_success and INVALID_CREDENTIALS_MARKER in response.text:
        error_msg = "Invalid username or password"
        raise IesApiAuthError(error_msg, auth_failure=True)

    error_msg = f"Unexpected login response: HTTP {response.status_code}"
    raise IesApiAuthError(error_msg)


async def _async_fetch_authorization(
    client: httpx.AsyncClient,
    identity_url: str,
    return_url: str,
    session_cookies: str,
) -> tuple[str, str, str | None]:
    """Step 4: read code and id_token from the auto-submitting form."""
    response = await async_request(
        client,
        "GET",
        urljoin(f"{identity_url}/", return_url),
        headers=create_headers(session_cookies),
        follow_redirects=False,
    )

    html = response.text
    code = scraper.extract_authorization_code(html)
    if code is None:
        error_msg = (
            f"Authorization response did not contain a code "
            f"(HTTP {response.status_code})"
        )
        raise IesApiAuthError(error_msg)

    id_token = scraper.extract_id_token(html)
    if id_token is None:
        error_msg = "Authorization response did not contain an id_token"
        raise IesApiAuthError(error_msg)

    return code, id_token, scraper.extract_session_state(html)


async def _async_complete_oidc(  # noqa: PLR0913
    client: httpx.AsyncClient,
    base_url: str,
    code: str,
    id_token: str,
    state: str | None,
    session_state: str | None,
    app_cookies: str,
) -> str:
    """Step 5: hand the authorization response to the portal callback."""
    form = {
        "code": code,
        "id_token": id_token,
        "scope": OIDC_SCOPE,
        "state": state or "",
    }
    if session_state:
        form["session_state"] = session_state

    response = await async_request(
        client,
        "POST",
        f"{base_url}{OIDC_CALLBACK_PATH}",
        headers=create_headers(app_cookies, form=True),
        data=form,
        follow_redirects=False,
    )
    if not is_redirect(response):
        error_msg = f"OIDC completion failed: HTTP {response.status_code}"
        raise IesApiAuthError(error_msg)

    return merge_cookie_jar(app_cookies, set_cookie_headers(response))


async def async_authenticate(
    client: httpx.AsyncClient,
    username: str,
    password: str,
    base_url: str = BASE_URL,
) -> Session:
    """Log in to the IES portal and return a populated session.

    Args:
        client: HTTP client.
        username: Account e-mail address.
        password: Account password.
        base_url: Portal root URL.

    Returns:
        Session holding the bearer token, its expiry and the portal cookies.

    Raises:
        IesApiAuthError: If a handshake step fails or credentials are rejected.
        IesApiNetworkError: If the portal or identity provider is unreachable.

    """
    _LOGGER.info("Authenticating with IES portal")
    client.cookies.clear()

    login_url, state, app_cookies = await _async_bootstrap(client, base_url)
    identity_url, csrf_token, return_url, session_cookies = (
        await _async_fetch_login_page(client, login_url)
    )
    session_cookies = await _async_submit_credentials(
        client,
        identity_url,
        username,
        password,
        csrf_token,
        return_url,
        session_cookies,
    )
    code, id_token, session_state = await _async_fetch_authorization(
        client, identity_url, return_url, session_cookies
    )
    cookie_jar = await _async_complete_oidc(
        client, base_url, code, id_token, state, session_state, app_cookies
    )

    session = Session(cookie_jar=cookie_jar)
    session.apply_token(create_jwt(id_token))
    _LOGGER.info("Successfully authenticated with IES portal")
    _LOGGER.debug(
        "Bearer token %s expires at %s",
        mask_token(session.bearer_token),
        session.expires_at,
    )
    return session


async def _async_request_token_refresh(
    client: httpx.AsyncClient, identity_url: str, refresh_token: str
) -> tuple[JWT, str | None]:
    response = await async_request(
        client,
        "POST",
        f"{identity_url}{TOKEN_PATH}",
        headers=create_headers(accept=ACCEPT_JSON, form=True),
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": OIDC_CLIENT_ID,
        },
    )
    if not response.is_success:
        error_msg = f"Token refresh failed: HTTP {response.status_code}"
        raise IesApiAuthError(error_msg)

    data = response.json()
    token = data.get("id_token") or data.get("access_token")
    if not token:
        error_msg = "Token refresh response did not contain a token"
        raise IesApiAuthError(error_msg)
    return create_jwt(token), data.get("refresh_token", refresh_token)


async def async_refresh_tokens(  # noqa: PLR0913
    client: httpx.AsyncClient,
    session: Session,
    username: str,
    password: str,
    base_url: str,
    identity_url: str,
) -> None:
    """Renew the bearer token in place, logging in again when that fails.

    Raises:
        IesApiAuthError: If the fallback login fails.
        IesApiNetworkError: If the fallback login cannot reach the portal.

    """
    if not session.refresh_token:
        _LOGGER.debug("No refresh token held, performing full authentication")
        session.replace(await async_authenticate(client, username, password, base_url))
        return

    try:
        jwt, refresh_token = await _async_request_token_refresh(
            client, identity_url, session.refresh_token
        )
    except (IesApiClientError, ValueError, AttributeError) as err:
        # Every refresh failure falls back to a full login, so a permanently
        # invalid refresh token is never reported on its own.
        _LOGGER.warning(
            "Token refresh failed, falling back to full authentication: %s", err
        )
        session.replace(await async_authenticate(client, username, password, base_url))
        return

    session.apply_token(jwt, refresh_token)
    _LOGGER.debug("Refreshed bearer token, expires at %s", jwt.expire_at)
