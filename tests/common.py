"""Shared constants and response builders for IES Heat Pump tests."""

import base64
import json
from datetime import UTC, datetime

from pytest_httpx import HTTPXMock

from custom_components.ies_heatpump.const import BASE_URL, IDENTITY_URL

DEVICE_ID = "test-device-123"
USERNAME = "test@example.com"
PASSWORD = "test-password"  # noqa: S105

LOGIN_URL = f"{IDENTITY_URL}/Account/Login?state=abc"
AUTHORIZE_URL = f"{IDENTITY_URL}/auth"
MONITORING_URL = f"{BASE_URL}/Monitoring/AsJSON/?deviceId={DEVICE_ID}"
SETTINGS_URL = f"{BASE_URL}/Configurations/AsJSON/?deviceId={DEVICE_ID}"
CONFIGURATIONS_PAGE_URL = f"{BASE_URL}/Configurations/?deviceId={DEVICE_ID}"
SAVE_URL = f"{BASE_URL}/Configurations/Save"

LOGIN_PAGE_HTML = """
<form method="post" action="/Account/Login?ReturnUrl=%2Fauth">
  <input id="Username" name="Username" type="email" value="">
  <input id="Password" name="Password" type="password">
  <input name="ReturnUrl" type="hidden" value="%2Fauth">
  <input name="__RequestVerificationToken" type="hidden" value="tok1" />
</form>
"""

CONFIGURATIONS_PAGE_HTML = """
<form action="/Configurations/Save" method="post">
  <input name="__RequestVerificationToken" type="hidden" value="csrf-token" />
  <select name="_USER_Parameters_SeasonMode_C"><option value="-1"></option></select>
</form>
"""


def create_test_jwt(exp_timestamp: int | None = None) -> str:
    """Create a test JWT token with optional expiration timestamp.

    Args:
        exp_timestamp: Optional expiration timestamp. If None, defaults to
            1 hour from now.

    Returns:
        A JWT token string with header, payload, and signature.

    """
    if exp_timestamp is None:
        exp_timestamp = int(datetime.now(UTC).timestamp()) + 3600

    header = {"alg": "RS256", "typ": "JWT"}
    payload = {"exp": exp_timestamp, "sub": "test_user"}

    header_encoded = (
        base64.urlsafe_b64encode(json.dumps(header).encode()).decode().rstrip("=")
    )
    payload_encoded = (
        base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
    )

    return f"{header_encoded}.{payload_encoded}.signature"


def authorization_html(code: str = "c1", id_token: str | None = None) -> str:
    """Return the auto-submitting form served after a successful login."""
    id_token = id_token or create_test_jwt()
    return f"""
    <html><body onload="javascript:document.forms[0].submit()">
      <form method="post" action="{BASE_URL}/signin-oidc">
        <input type="hidden" name="code" value="{code}" />
        <input type="hidden" name="id_token" value="{id_token}" />
        <input type="hidden" name="scope" value="openid profile" />
        <input type="hidden" name="state" value="abc" />
        <input type="hidden" name="session_state" value="ss1" />
      </form>
    </body></html>
    """


def add_auth_flow_responses(
    httpx_mock: HTTPXMock,
    id_token: str | None = None,
    final_cookie: str = "sid=xyz",
) -> None:
    """Register the five responses of a successful login handshake."""
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE_URL}/",
        status_code=302,
        headers=[
            ("location", LOGIN_URL),
            ("set-cookie", "oidc-nonce=n1; path=/; secure; httponly"),
        ],
    )
    httpx_mock.add_response(
        method="GET",
        url=LOGIN_URL,
        headers=[("set-cookie", "idsrv.antiforgery=s1; path=/")],
        html=LOGIN_PAGE_HTML,
    )
    httpx_mock.add_response(
        method="POST",
        url=f"{IDENTITY_URL}/Account/Login",
        status_code=302,
        headers=[
            ("location", "/auth"),
            ("set-cookie", "idsrv=a1; path=/; secure; httponly"),
        ],
    )
    httpx_mock.add_response(
        method="GET",
        url=AUTHORIZE_URL,
        html=authorization_html(id_token=id_token),
    )
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/signin-oidc",
        status_code=302,
        headers=[
            ("location", "/"),
            ("set-cookie", f"{final_cookie}; path=/; secure; httponly"),
        ],
    )


def monitoring_payload() -> dict:
    """Return a sample monitoring endpoint payload."""
    return {
        "groups": [
            {
                "id": "group1",
                "name": "Temperatures",
                "viewParameters": [
                    {"id": "_USER.Input.Tamb", "actualValue": "15.5"},
                    {"id": "_USER.Input.TWaterTank", "actualValue": "48.2"},
                    {"id": "_USER.Input.THeatSupply", "actualValue": "32.5"},
                ],
            },
            {
                "id": "group2",
                "name": "Settings",
                "viewParameters": [
                    {"id": "_USER.HotWater.SetPoint", "actualValue": "50.0"},
                    {
                        "id": "_USER.Output.HotTapWater",
                        "actualValue": "TOGGLE_VALUE_OFFON_1",
                    },
                ],
            },
        ],
        "deviceId": DEVICE_ID,
    }


def settings_payload() -> dict:
    """Return a sample configurations endpoint payload."""
    return {
        "groups": [
            {
                "id": "settings",
                "name": "User Settings",
                "viewParameters": [
                    {"id": "_USER.HeatSPCtrl.ToffSet", "actualValue": "2.0"},
                    {"id": "_USER.HeatSPCtrl.TroomSet", "actualValue": "21.0"},
                    {
                        "id": "_USER.Parameters.SeasonMode",
                        "actualValue": "TXT_TGT_SEA_MODE1",
                    },
                ],
            },
        ],
        "deviceId": DEVICE_ID,
    }


