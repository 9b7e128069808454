"""API client for IES heat pumps.

This module provides the authenticated session client used by the
integration: it keeps the portal session alive, reads telemetry and
configuration values, and submits the settings form.
"""

import asyncio
import logging
import math
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client

from . import auth, scraper
from .const import (
    BASE_URL,
    CONFIGURATIONS_JSON_PATH,
    CONFIGURATIONS_PAGE_PATH,
    CONFIGURATIONS_SAVE_PATH,
    FIELD_COMPENSATION_TYPE,
    FIELD_CURVE_OFFSET,
    FIELD_HEATING_ROOM_SETPOINT,
    FIELD_HOT_WATER_SETPOINT,
    FIELD_SEASON_MODE,
    IDENTITY_URL,
    MONITORING_PATH,
    REQUEST_TIMEOUT,
    SEASON_MODE_MAP,
    SETTINGS_FORM_FIELDS,
    TOKEN_REFRESH_BUFFER,
)
from .exceptions import IesApiError
from .models import Reading, Session
from .transport import (
    ACCEPT_HTML,
    ACCEPT_JSON,
    async_request,
    create_headers,
    is_auth_status,
    is_login_location,
    is_redirect,
)

_LOGGER = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

_T = TypeVar("_T")

_KNOWN_FIELDS = frozenset(form_field.name for form_field in SETTINGS_FORM_FIELDS)
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def format_decimal(value: float) -> str:
    """Format a numeric setting the way the form expects ("22.0", not "22")."""
    return f"{value:.1f}"


def build_settings_form(
    device_id: str,
    field_name: str,
    value: str,
    csrf_token: str,
) -> dict[str, str]:
    """Build the full settings form with a single changed field.

    Args:
        device_id: Target device identifier.
        field_name: Form field to change.
        value: Formatted value for ``field_name``.
        csrf_token: Token scraped from the configurations page.

    Returns:
        Ordered form data; every other field carries its "unchanged" sentinel.

    Raises:
        ValueError: If ``field_name`` is not part of the settings form.

    """
    if field_name not in _KNOWN_FIELDS:
        error_msg = f"Unknown settings field: {field_name}"
        raise ValueError(error_msg)

    form = {"btnSubmit": "", "hdnDeviceId": device_id}
    for form_field in SETTINGS_FORM_FIELDS:
        form[form_field.name] = (
            value if form_field.name == field_name else form_field.sentinel
        )
    form[scraper.CSRF_FIELD] = csrf_token
    return form


def _parse_number(raw: Any) -> float | None:
    """Return raw as a finite float, or None for booleans and non-numeric text."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int | float):
        value = float(raw)
    elif isinstance(raw, str) and _NUMBER.fullmatch(raw.strip()):
        value = float(raw)
    else:
        return None
    return value if math.isfinite(value) else None


def parse_readings(data: Any, endpoint_name: str) -> dict[str, Reading]:
    """Parse a ``groups[].viewParameters[]`` payload into readings.

    Parameters without an id, or whose value is not a finite number
    (e.g. ``TOGGLE_VALUE_OFFON_1``), are skipped.
    """
    readings: dict[str, Reading] = {}
    now = datetime.now(UTC)

    groups = data.get("groups") if isinstance(data, dict) else None
    if not isinstance(groups, list):
        _LOGGER.warning("API response missing groups array")
        return readings

    for group in groups:
        parameters = group.get("viewParameters") if isinstance(group, dict) else None
        if not isinstance(parameters, list):
            continue

        for parameter in parameters:
            if not isinstance(parameter, dict):
                continue
            param_id = parameter.get("id")
            raw = parameter.get("actualValue")
            if not param_id or raw is None:
                continue

            value = _parse_number(raw)
            if value is None:
                _LOGGER.debug("Skipping non-numeric value for %s: %s", param_id, raw)
                continue

            readings[param_id] = Reading(
                id=param_id, value=value, raw=str(raw), observed_at=now
            )

    _LOGGER.debug("Parsed %d readings from %s", len(readings), endpoint_name)
    return readings


def _check_session(response: httpx.Response) -> None:
    """Raise an auth-failure IesApiError if the portal session has expired."""
    if is_auth_status(response.status_code):
        error_msg = f"Authentication failed (HTTP {response.status_code})"
        raise IesApiError(
            error_msg, status_code=response.status_code, auth_failure=True
        )

    if response.history and is_login_location(response.url):
        error_msg = "Session expired - redirected to login page"
        raise IesApiError(
            error_msg,
            status_code=response.history[0].status_code,
            auth_failure=True,
        )

    if is_redirect(response) and is_login_location(response.headers.get("location")):
        error_msg = "Session expired - redirected to login page"
        raise IesApiError(
            error_msg, status_code=response.status_code, auth_failure=True
        )

    if "text/html" in response.headers.get("content-type", "") and (
        scraper.is_login_page(response.text)
    ):
        error_msg = "Session expired - login page returned"
        raise IesApiError(
            error_msg, status_code=response.status_code, auth_failure=True
        )


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create HTTP client for the IES portal.

    Args:
        hass: Home Assistant instance.

    Returns:
        Configured httpx AsyncClient.

    """
    return create_async_httpx_client(hass, timeout=REQUEST_TIMEOUT)


class IesApiClient:
    """Authenticated session client for one IES heat pump."""

    def __init__(  # noqa: PLR0913
        self,
        client: httpx.AsyncClient,
        username: str,
        password: str,
        device_id: str,
        *,
        base_url: str = BASE_URL,
        identity_url: str = IDENTITY_URL,
        session: Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client: HTTP client used for every request.
            username: Account e-mail address.
            password: Account password.
            device_id: Heat pump identifier on the portal.
            base_url: Portal root URL.
            identity_url: Identity provider root URL, used for token refresh.
            session: Existing session state; a fresh empty one by default.

        """
        self._client = client
        self._username = username
        self._password = password
        self._device_id = device_id
        self._base_url = base_url.rstrip("/")
        self._identity_url = identity_url.rstrip("/")
        self.session = session if session is not None else Session()
        self._auth_lock = asyncio.Lock()

    @property
    def device_id(self) -> str:
        """Return the heat pump identifier."""
        return self._device_id

    async def async_authenticate(self) -> None:
        """Run the full login handshake and replace the held session."""
        async with self._auth_lock:
            await self._async_authenticate()

    async def _async_authenticate(self) -> None:
        self.session.replace(
            await auth.async_authenticate(
                self._client, self._username, self._password, self._base_url
            )
        )

    async def async_refresh_tokens(self) -> None:
        """Renew the bearer token, falling back to a full login."""
        async with self._auth_lock:
            await self._async_refresh_tokens()

    async def _async_refresh_tokens(self) -> None:
        await auth.async_refresh_tokens(
            self._client,
            self.session,
            self._username,
            self._password,
            self._base_url,
            self._identity_url,
        )

    async def async_ensure_authenticated(self) -> None:
        """Make sure the held token stays valid for at least the refresh buffer.

        No request is made while the token expires more than
        ``TOKEN_REFRESH_BUFFER`` seconds from now.
        """
        async with self._auth_lock:
            if not self.session.is_authenticated:
                _LOGGER.debug("No valid session, authenticating")
                await self._async_authenticate()
            elif self.session.expires_within(
                datetime.now(UTC), timedelta(seconds=TOKEN_REFRESH_BUFFER)
            ):
                _LOGGER.debug("Bearer token about to expire, refreshing")
                await self._async_refresh_tokens()

    async def _async_with_auth_retry(
        self,
        operation: Callable[[], Awaitable[_T]],
        *,
        retry_on_auth_failure: bool = True,
        clear_cookies: bool = False,
    ) -> _T:
        """Run ``operation`` on a live session, re-authenticating at most once.

        Raises:
            IesApiError: With ``auth_failure`` set when the session is still
                rejected after the permitted attempts.

        """
        attempts = MAX_ATTEMPTS if retry_on_auth_failure else 1
        last_error: IesApiError | None = None

        for attempt in range(1, attempts + 1):
            await self.async_ensure_authenticated()
            token = self.session.bearer_token
            try:
                return await operation()
            except IesApiError as err:
                if not err.auth_failure:
                    raise
                last_error = err
                self.session.invalidate(token, clear_cookies=clear_cookies)
                if attempt < attempts:
                    _LOGGER.debug(
                        "Received 401/403, re-authenticating and retrying..."
                    )

        error_msg = "Authentication failed - check your credentials"
        raise IesApiError(
            error_msg,
            status_code=last_error.status_code if last_error else None,
            auth_failure=True,
        ) from last_error

    async def async_fetch_monitoring(
        self, *, retry_on_auth_failure: bool = True
    ) -> dict[str, Reading]:
        """Fetch monitoring data (temperatures, states)."""
        return await self._async_fetch_endpoint(
            MONITORING_PATH, "monitoring", retry_on_auth_failure=retry_on_auth_failure
        )

    async def async_fetch_settings(
        self, *, retry_on_auth_failure: bool = True
    ) -> dict[str, Reading]:
        """Fetch settings data (setpoints, configuration)."""
        return await self._async_fetch_endpoint(
            CONFIGURATIONS_JSON_PATH,
            "settings",
            retry_on_auth_failure=retry_on_auth_failure,
        )

    async def async_fetch_readings(
        self, *, retry_on_auth_failure: bool = True
    ) -> dict[str, Reading]:
        """Fetch monitoring and settings data concurrently and merge them.

        Settings values override monitoring values for the same parameter.
        """
        tasks = [
            asyncio.create_task(
                self.async_fetch_monitoring(retry_on_auth_failure=retry_on_auth_failure)
            ),
            asyncio.create_task(
                self.async_fetch_settings(retry_on_auth_failure=retry_on_auth_failure)
            ),
        ]
        try:
            monitoring, settings = await asyncio.gather(*tasks)
        except Exception:
            # The surviving fetch must not re-authenticate after the caller
            # already received the error.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return {**monitoring, **settings}

    async def _async_fetch_endpoint(
        self, path: str, endpoint_name: str, *, retry_on_auth_failure: bool
    ) -> dict[str, Reading]:
        url = f"{self._base_url}{path}"

        async def _fetch() -> dict[str, Reading]:
            _LOGGER.debug("Fetching %s from: %s", endpoint_name, url)
            response = await async_request(
                self._client,
                "GET",
                url,
                params={"deviceId": self._device_id},
                headers=create_headers(
                    self.session.cookie_jar,
                    self.session.bearer_token,
                    accept=ACCEPT_JSON,
                ),
                follow_redirects=True,
            )
            _check_session(response)
            if not response.is_success:
                error_msg = f"API request failed with status {response.status_code}"
                raise IesApiError(error_msg, status_code=response.status_code)

            try:
                data = response.json()
            except ValueError as err:
                error_msg = f"Invalid JSON returned by {endpoint_name} endpoint"
                raise IesApiError(error_msg, status_code=response.status_code) from err
            return parse_readings(data, endpoint_name)

        return await self._async_with_auth_retry(
            _fetch, retry_on_auth_failure=retry_on_auth_failure
        )

    async def _async_fetch_csrf_token(self) -> str:
        """Fetch the CSRF token from the configurations page.

        The page is protected by the cookie session only, not the bearer token.
        """
        url = f"{self._base_url}{CONFIGURATIONS_PAGE_PATH}"
        _LOGGER.debug("Fetching CSRF token from: %s", url)
        response = await async_request(
            self._client,
            "GET",
            url,
            params={"deviceId": self._device_id},
            headers=create_headers(self.session.cookie_jar, accept=ACCEPT_HTML),
            follow_redirects=True,
        )
        _check_session(response)
        if not response.is_success:
            error_msg = f"Failed to fetch configurations page: {response.status_code}"
            raise IesApiError(error_msg, status_code=response.status_code)

        csrf_token = scraper.extract_csrf_token(response.text)
        if csrf_token is None:
            error_msg = "Could not find CSRF token in configurations page"
            raise IesApiError(error_msg, status_code=response.status_code)
        return csrf_token

    async def _async_post_settings(self, form: dict[str, str]) -> None:
        url = f"{self._base_url}{CONFIGURATIONS_SAVE_PATH}"
        response = await async_request(
            self._client,
            "POST",
            url,
            headers={
                **create_headers(self.session.cookie_jar, form=True),
                "origin": self._base_url,
                "referer": (
                    f"{self._base_url}{CONFIGURATIONS_PAGE_PATH}"
                    f"?deviceId={self._device_id}"
                ),
            },
            data=form,
            follow_redirects=False,
        )
        _LOGGER.debug(
            "Settings POST response status: %s, location: %s",
            response.status_code,
            response.headers.get("location"),
        )
        _check_session(response)
        if is_redirect(response) or response.is_success:
            return

        error_msg = f"Failed to save setting: {response.status_code}"
        raise IesApiError(error_msg, status_code=response.status_code)

    async def async_write_setting(
        self,
        field_name: str,
        value: str,
        *,
        retry_on_auth_failure: bool = True,
    ) -> None:
        """Persist one settings form field.

        Args:
            field_name: Settings form field name.
            value: Formatted value to submit.
            retry_on_auth_failure: Re-authenticate and resubmit once if the
                session was rejected.

        Raises:
            ValueError: If ``field_name`` is not part of the settings form.
            IesApiError: If the portal rejects the submission.

        """
        if field_name not in _KNOWN_FIELDS:
            error_msg = f"Unknown settings field: {field_name}"
            raise ValueError(error_msg)

        async def _write() -> None:
            csrf_token = await self._async_fetch_csrf_token()
            form = build_settings_form(self._device_id, field_name, value, csrf_token)
            await self._async_post_settings(form)

        _LOGGER.debug("POSTing setting %s=%s", field_name, value)
        await self._async_with_auth_retry(
            _write, retry_on_auth_failure=retry_on_auth_failure, clear_cookies=True
        )
        _LOGGER.info("Successfully set %s to %s", field_name, value)

    async def async_set_hot_water_setpoint(self, temperature: float) -> None:
        """Set the hot water setpoint."""
        _LOGGER.info("Setting hot water setpoint to %s°C", temperature)
        await self.async_write_setting(
            FIELD_HOT_WATER_SETPOINT, format_decimal(temperature)
        )

    async def async_set_curve_offset(self, offset: float) -> None:
        """Set the heating curve offset."""
        _LOGGER.info("Setting curve offset to %s°C", offset)
        await self.async_write_setting(FIELD_CURVE_OFFSET, format_decimal(offset))

    async def async_set_heating_room_setpoint(self, temperature: float) -> None:
        """Set the heating room setpoint."""
        _LOGGER.info("Setting heating room setpoint to %s°C", temperature)
        await self.async_write_setting(
            FIELD_HEATING_ROOM_SETPOINT, format_decimal(temperature)
        )

    async def async_set_season_mode(self, mode: int) -> None:
        """Set the season mode (0 = Summer, 1 = Winter, 2 = Auto)."""
        if mode not in SEASON_MODE_MAP:
            error_msg = f"Invalid season mode: {mode}"
            raise ValueError(error_msg)
        _LOGGER.info("Setting season mode to %s (%d)", SEASON_MODE_MAP[mode], mode)
        await self.async_write_setting(FIELD_SEASON_MODE, str(mode))

    async def async_set_compensation_type(self, compensation_type: int) -> None:
        """Set the heating setpoint compensation type."""
        _LOGGER.info("Setting compensation type to %d", compensation_type)
        await self.async_write_setting(
            FIELD_COMPENSATION_TYPE, str(compensation_type)
        )
