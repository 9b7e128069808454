"""Pytest configuration and fixtures for IES Heat Pump tests."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio

from custom_components.ies_heatpump.api import IesApiClient
from custom_components.ies_heatpump.models import Session

from .common import DEVICE_ID, PASSWORD, USERNAME, create_test_jwt


@pytest.fixture
def sample_id_token() -> str:
    """Fixture providing an ID token expiring in one hour."""
    return create_test_jwt()


@pytest.fixture
def authenticated_session(sample_id_token: str) -> Session:
    """Fixture providing a session that stays valid for an hour."""
    return Session(
        bearer_token=sample_id_token,
        expires_at=datetime.now(UTC) + timedelta(hours=1),
        cookie_jar="oidc-nonce=n1; sid=xyz",
    )


@pytest_asyncio.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Fixture providing an HTTP client intercepted by pytest-httpx."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def client(http_client: httpx.AsyncClient) -> IesApiClient:
    """Fixture providing an API client without a session."""
    return IesApiClient(http_client, USERNAME, PASSWORD, DEVICE_ID)


@pytest.fixture
def authenticated_client(
    http_client: httpx.AsyncClient, authenticated_session: Session
) -> IesApiClient:
    """Fixture providing an API client holding a valid session."""
    return IesApiClient(
        http_client,
        USERNAME,
        PASSWORD,
        DEVICE_ID,
        session=authenticated_session,
    )
