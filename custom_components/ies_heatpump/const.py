"""Constants for IES Heat Pump integration.

This module contains all the constants used throughout the integration,
including portal endpoints, configuration keys and the settings form catalog.
"""

from .models import FieldKind, FormField

DOMAIN = "ies_heatpump"

BASE_URL = "https://www.ies-heatpumps.com"
IDENTITY_URL = "https://login.ies-heatpumps.com"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Identity provider paths, resolved against the host the portal redirects to
LOGIN_PATH = "/Account/Login"
TOKEN_PATH = "/connect/token"  # noqa: S105
OIDC_CALLBACK_PATH = "/signin-oidc"
OIDC_SCOPE = "openid profile"
OIDC_CLIENT_ID = "ies-portal"

MONITORING_PATH = "/Monitoring/AsJSON/"
CONFIGURATIONS_JSON_PATH = "/Configurations/AsJSON/"
CONFIGURATIONS_PAGE_PATH = "/Configurations/"
CONFIGURATIONS_SAVE_PATH = "/Configurations/Save"

REQUEST_TIMEOUT = 30.0
TOKEN_REFRESH_BUFFER = 60  # Seconds before expiry when the token is renewed
DEFAULT_TOKEN_LIFETIME = 3600  # Used when the ID token carries no usable exp

INVALID_CREDENTIALS_MARKER = "Invalid username or password"

DEFAULT_POLL_INTERVAL = 60
MIN_POLL_INTERVAL = 30

CONF_DEVICE_ID = "device_id"

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"

# Readable parameter ids (dotted form used by the JSON endpoints)
PARAM_OUTDOOR_TEMPERATURE = "_USER.Input.Tamb"
PARAM_HOT_WATER_TEMPERATURE = "_USER.Input.TWaterTank"
PARAM_HOT_WATER_SETPOINT = "_USER.HotWater.SetPoint"
PARAM_HOT_WATER_HEATING = "_USER.Output.HotTapWater"
PARAM_CURVE_OFFSET = "_USER.HeatSPCtrl.ToffSet"
PARAM_HEATING_ROOM_SETPOINT = "_USER.HeatSPCtrl.TroomSet"
PARAM_SEASON_MODE = "_USER.Parameters.SeasonMode"

# Writable form field names (underscore form used by the settings page)
FIELD_MAIN_SWITCH = "_USER_Parameters_MainSwitch_C"
FIELD_SEASON_MODE = "_USER_Parameters_SeasonMode_C"
FIELD_COMPENSATION_TYPE = "_USER_HeatSPCtrl_Type_C"
FIELD_HEATING_CURVE = "_USER_HeatSPCtrl_Curve_C"
FIELD_HOT_WATER_SOURCE = "_USER_HotWater_Source_C"
FIELD_HEATING_SOURCE = "_USER_Heating_Source_C"
FIELD_HEATING_CONTROL_MODE = "_USER_Heating_CtrlMode_C"
FIELD_CURVE_OFFSET = "_USER_HeatSPCtrl_ToffSet_T"
FIELD_HOT_WATER_SETPOINT = "_USER_HotWater_SetPoint_T"
FIELD_HEATING_SETPOINT_MIN = "_USER_Heating_SetPointMin_T"
FIELD_HEATING_ROOM_SETPOINT = "_USER_HeatSPCtrl_TroomSet_T"

# The save endpoint rejects partial submissions, so every field is always sent.
SETTINGS_FORM_FIELDS: tuple[FormField, ...] = (
    FormField(FIELD_MAIN_SWITCH, FieldKind.SELECT),
    FormField(FIELD_SEASON_MODE, FieldKind.SELECT),
    FormField(FIELD_COMPENSATION_TYPE, FieldKind.SELECT),
    FormField(FIELD_HEATING_CURVE, FieldKind.SELECT),
    FormField(FIELD_HOT_WATER_SOURCE, FieldKind.SELECT),
    FormField(FIELD_HEATING_SOURCE, FieldKind.SELECT),
    FormField(FIELD_HEATING_CONTROL_MODE, FieldKind.SELECT),
    FormField(FIELD_CURVE_OFFSET, FieldKind.TEXT),
    FormField(FIELD_HOT_WATER_SETPOINT, FieldKind.TEXT),
    FormField(FIELD_HEATING_SETPOINT_MIN, FieldKind.TEXT),
    FormField(FIELD_HEATING_ROOM_SETPOINT, FieldKind.TEXT),
    FormField("_USER_Time_Year_T", FieldKind.TEXT),
    FormField("_USER_Time_Month_T", FieldKind.TEXT),
    FormField("_USER_Time_Day_T", FieldKind.TEXT),
    FormField("_USER_Time_Hour_T", FieldKind.TEXT),
    FormField("_USER_Time_Minute_T", FieldKind.TEXT),
)

SEASON_MODE_MAP = {
    0: "Summer",
    1: "Winter",
    2: "Auto",
}
