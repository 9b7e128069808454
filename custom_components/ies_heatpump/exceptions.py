"""Exceptions for the IES Heat Pump integration."""


class IesApiClientError(Exception):
    """Base exception for IES API client errors."""


class IesApiNetworkError(IesApiClientError):
    """Connection to the portal failed."""


class IesApiTimeoutError(IesApiNetworkError):
    """A request to the portal did not complete within the timeout."""


class IesApiAuthError(IesApiClientError):
    """A step of the login handshake failed.

    ``auth_failure`` is True only when the portal rejected the credentials;
    otherwise the handshake broke on an unexpected response.
    """

    def __init__(self, message: str, *, auth_failure: bool = False) -> None:
        super().__init__(message)
        self.auth_failure = auth_failure


class IesApiError(IesApiClientError):
    """A data endpoint returned a non-success response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        auth_failure: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.auth_failure = auth_failure
