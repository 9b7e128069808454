"""
Configuration flow for IES Heat Pump integration.

This module handles the setup and re-authentication of the IES Heat Pump
integration through Home Assistant's config flow system.
"""

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import CONF_PASSWORD, CONF_SCAN_INTERVAL, CONF_USERNAME

from . import api
from .const import (
    CONF_DEVICE_ID,
    DEFAULT_POLL_INTERVAL,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
    MIN_POLL_INTERVAL,
)
from .exceptions import (
    IesApiAuthError,
    IesApiClientError,
    IesApiNetworkError,
    IesApiTimeoutError,
)

_LOGGER = logging.getLogger(__name__)

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): str,
        vol.Required(CONF_DEVICE_ID): str,
        vol.Optional(CONF_SCAN_INTERVAL, default=DEFAULT_POLL_INTERVAL): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_POLL_INTERVAL)
        ),
    }
)


class IesHeatPumpConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for IES Heat Pump integration."""

    VERSION = 1

    async def _async_validate(
        self, username: str, password: str, device_id: str
    ) -> dict[str, str]:
        """Log in with the given credentials, returning form errors if any."""
        errors: dict[str, str] = {}
        try:
            client = api.IesApiClient(
                api.create_session_client(self.hass), username, password, device_id
            )
            await client.async_authenticate()
            _LOGGER.info("Successfully authenticated with IES portal")

        except IesApiAuthError as err:
            if err.auth_failure:
                _LOGGER.warning(
                    "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                )
                errors["base"] = ERROR_INVALID_AUTH
            else:
                _LOGGER.warning("Login handshake failed (%s): %s", ERROR_API_ERROR, err)
                errors["base"] = ERROR_API_ERROR
        except IesApiTimeoutError:
            _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
            errors["base"] = ERROR_TIMEOUT
        except IesApiNetworkError:
            _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
            errors["base"] = ERROR_CANNOT_CONNECT
        except IesApiClientError:
            _LOGGER.exception("API client error (%s)", ERROR_API_ERROR)
            errors["base"] = ERROR_API_ERROR
        except Exception:
            _LOGGER.exception(
                "Unexpected error during authentication (%s)",
                ERROR_UNKNOWN,
            )
            errors["base"] = ERROR_UNKNOWN
        return errors

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing credentials and device id.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            username = user_input[CONF_USERNAME]
            device_id = user_input[CONF_DEVICE_ID].strip()

            await self.async_set_unique_id(device_id)
            self._abort_if_unique_id_configured()

            errors = await self._async_validate(
                username, user_input[CONF_PASSWORD], device_id
            )
            if not errors:
                return self.async_create_entry(
                    title=f"IES Heat Pump ({device_id})",
                    data={
                        CONF_USERNAME: username,
                        CONF_PASSWORD: user_input[CONF_PASSWORD],
                        CONF_DEVICE_ID: device_id,
                        CONF_SCAN_INTERVAL: user_input.get(
                            CONF_SCAN_INTERVAL, DEFAULT_POLL_INTERVAL
                        ),
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )

    async def async_step_reauth(
        self, entry_data: Mapping[str, Any]
    ) -> ConfigFlowResult:
        """Handle re-authentication when the portal rejects the credentials."""
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Ask for new credentials and store them on the existing entry."""
        errors: dict[str, str] = {}
        reauth_entry = self._get_reauth_entry()

        if user_input is not None:
            errors = await self._async_validate(
                user_input[CONF_USERNAME],
                user_input[CONF_PASSWORD],
                reauth_entry.data[CONF_DEVICE_ID],
            )
            if not errors:
                return self.async_update_reload_and_abort(
                    reauth_entry,
                    data={
                        **reauth_entry.data,
                        CONF_USERNAME: user_input[CONF_USERNAME],
                        CONF_PASSWORD: user_input[CONF_PASSWORD],
                    },
                )

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_USERNAME,
                        default=reauth_entry.data.get(CONF_USERNAME, ""),
                    ): str,
                    vol.Required(CONF_PASSWORD): str,
                }
            ),
            errors=errors,
        )
