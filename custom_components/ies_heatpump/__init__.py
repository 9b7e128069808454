from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, CONF_SCAN_INTERVAL, CONF_USERNAME
from homeassistant.core import HomeAssistant

from . import api
from .api import create_session_client
from .const import CONF_DEVICE_ID, DEFAULT_POLL_INTERVAL, DOMAIN
from .coordinator import IesReadingsCoordinator

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up IES Heat Pump integration for entry %s", entry.entry_id)

    missing = [
        key
        for key in (CONF_USERNAME, CONF_PASSWORD, CONF_DEVICE_ID)
        if not entry.data.get(key)
    ]
    if missing:
        _LOGGER.error(
            "Missing %s in configuration for entry %s",
            ", ".join(missing),
            entry.entry_id,
        )
        return False

    client = api.IesApiClient(
        create_session_client(hass),
        entry.data[CONF_USERNAME],
        entry.data[CONF_PASSWORD],
        entry.data[CONF_DEVICE_ID],
    )
    coordinator = IesReadingsCoordinator(
        hass,
        client,
        entry,
        entry.data.get(CONF_SCAN_INTERVAL, DEFAULT_POLL_INTERVAL),
    )

    # Raises ConfigEntryAuthFailed / ConfigEntryNotReady on failure
    await coordinator.async_config_entry_first_refresh()
    _LOGGER.info(
        "Retrieved %d readings for device %s",
        len(coordinator.data),
        client.device_id,
    )

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "client": client,
        "coordinator": coordinator,
    }
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading IES Heat Pump integration for entry %s", entry.entry_id)

    if DOMAIN in hass.data and entry.entry_id in hass.data[DOMAIN]:
        hass.data[DOMAIN].pop(entry.entry_id)
        _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)
    return True
