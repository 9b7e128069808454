"""Coordinator for IES Heat Pump integration."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import DEFAULT_POLL_INTERVAL, DOMAIN
from .exceptions import (
    IesApiAuthError,
    IesApiError,
    IesApiNetworkError,
    IesApiTimeoutError,
)
from .models import Reading

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .api import IesApiClient

_LOGGER = logging.getLogger(__name__)


class IesReadingsCoordinator(DataUpdateCoordinator[dict[str, Reading]]):
    """Coordinator that polls IES heat pump readings."""

    def __init__(
        self,
        hass: HomeAssistant,
        client: IesApiClient,
        config_entry: ConfigEntry,
        poll_interval: int = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=f"{DOMAIN}_{client.device_id}",
            update_interval=timedelta(seconds=poll_interval),
        )
        self.client = client
        self.config_entry = config_entry
        self.data = {}

    async def _async_update_data(self) -> dict[str, Reading]:
        """Fetch the merged monitoring and settings readings."""
        try:
            readings = await self.client.async_fetch_readings()
        except IesApiAuthError as err:
            if err.auth_failure:
                error_msg = f"Credentials rejected by IES portal: {err}"
                raise ConfigEntryAuthFailed(error_msg) from err
            error_msg = f"Login to IES portal failed: {err}"
            raise UpdateFailed(error_msg) from err
        except IesApiError as err:
            if err.auth_failure:
                error_msg = f"Authentication failed while polling readings: {err}"
                raise ConfigEntryAuthFailed(error_msg) from err
            error_msg = f"API error while polling readings: {err}"
            raise UpdateFailed(error_msg) from err
        except IesApiTimeoutError as err:
            error_msg = f"Timeout while polling readings: {err}"
            raise UpdateFailed(error_msg) from err
        except IesApiNetworkError as err:
            error_msg = f"Connection error while polling readings: {err}"
            raise UpdateFailed(error_msg) from err

        _LOGGER.debug(
            "Polled %d readings for device %s", len(readings), self.client.device_id
        )
        return readings
