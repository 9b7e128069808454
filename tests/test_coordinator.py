"""Tests for the IES readings coordinator."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import UpdateFailed

from custom_components.ies_heatpump.const import (
    CONF_DEVICE_ID,
    DOMAIN,
    PARAM_OUTDOOR_TEMPERATURE,
)
from custom_components.ies_heatpump.coordinator import IesReadingsCoordinator
from custom_components.ies_heatpump.exceptions import (
    IesApiAuthError,
    IesApiError,
    IesApiNetworkError,
    IesApiTimeoutError,
)
from custom_components.ies_heatpump.models import Reading

from .common import DEVICE_ID, PASSWORD, USERNAME


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    return Mock()


@pytest.fixture
def mock_client() -> Mock:
    """Create a mock API client."""
    client = Mock()
    client.device_id = DEVICE_ID
    client.async_fetch_readings = AsyncMock()
    return client


@pytest.fixture
def mock_config_entry() -> Mock:
    """Create a mock config entry for testing."""
    entry = Mock()
    entry.data = {
        CONF_USERNAME: USERNAME,
        CONF_PASSWORD: PASSWORD,
        CONF_DEVICE_ID: DEVICE_ID,
    }
    entry.entry_id = "test_entry_id"
    return entry


@pytest.fixture
def coordinator(
    mock_hass: Mock, mock_client: Mock, mock_config_entry: Mock
) -> IesReadingsCoordinator:
    """Create a coordinator polling every two minutes."""
    return IesReadingsCoordinator(mock_hass, mock_client, mock_config_entry, 120)


class TestIesReadingsCoordinatorInit:
    """Tests for IesReadingsCoordinator initialization."""

    def test_init_sets_client_and_config_entry(
        self,
        coordinator: IesReadingsCoordinator,
        mock_client: Mock,
        mock_config_entry: Mock,
    ) -> None:
        """Test that init keeps the client and config entry."""
        assert coordinator.client == mock_client
        assert coordinator.config_entry == mock_config_entry
        assert coordinator.data == {}
        assert coordinator.name == f"{DOMAIN}_{DEVICE_ID}"

    def test_init_sets_update_interval(
        self, coordinator: IesReadingsCoordinator
    ) -> None:
        """Test that the poll interval becomes the update interval."""
        assert coordinator.update_interval == timedelta(seconds=120)

    def test_init_defaults_update_interval(
        self, mock_hass: Mock, mock_client: Mock, mock_config_entry: Mock
    ) -> None:
        """Test that the default poll interval is one minute."""
        coordinator = IesReadingsCoordinator(mock_hass, mock_client, mock_config_entry)
        assert coordinator.update_interval == timedelta(seconds=60)


class TestIesReadingsCoordinatorAsyncUpdateData:
    """Tests for _async_update_data method."""

    @pytest.mark.asyncio
    async def test_async_update_data_returns_readings(
        self, coordinator: IesReadingsCoordinator, mock_client: Mock
    ) -> None:
        """Test that merged readings are returned as coordinator data."""
        readings = {
            PARAM_OUTDOOR_TEMPERATURE: Reading(
                id=PARAM_OUTDOOR_TEMPERATURE,
                value=15.5,
                raw="15.5",
                observed_at=datetime.now(UTC),
            )
        }
        mock_client.async_fetch_readings.return_value = readings

        # Accessing private member for testing purposes
        result = await coordinator._async_update_data()

        assert result == readings
        mock_client.async_fetch_readings.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            IesApiAuthError("Invalid username or password", auth_failure=True),
            IesApiError("Authentication failed", status_code=401, auth_failure=True),
        ],
    )
    async def test_async_update_data_raises_auth_failed_on_rejected_credentials(
        self,
        coordinator: IesReadingsCoordinator,
        mock_client: Mock,
        error: Exception,
    ) -> None:
        """Test that rejected credentials start the reauth flow."""
        mock_client.async_fetch_readings.side_effect = error

        with pytest.raises(ConfigEntryAuthFailed):
            # Accessing private member for testing purposes
            await coordinator._async_update_data()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "message"),
        [
            (IesApiAuthError("Unexpected login response: HTTP 500"), "Login"),
            (IesApiError("API request failed", status_code=500), "API error"),
            (IesApiTimeoutError("Request timed out"), "Timeout"),
            (IesApiNetworkError("Network error"), "Connection error"),
        ],
    )
    async def test_async_update_data_raises_update_failed_on_other_errors(
        self,
        coordinator: IesReadingsCoordinator,
        mock_client: Mock,
        error: Exception,
        message: str,
    ) -> None:
        """Test that transient failures mark the update as failed."""
        mock_client.async_fetch_readings.side_effect = error

        with pytest.raises(UpdateFailed, match=message):
            # Accessing private member for testing purposes
            await coordinator._async_update_data()
