"""
Base Service Interface

All services inherit from this base class.
Domain errors raised by the ingestion pipeline live here too.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for all services.

    Each service:
    - Has a defined input type
    - Has a defined output type
    - Can check its health
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name for logging."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Execute the service's main function.

        Args:
            input_data: Validated input conforming to InputT schema

        Returns:
            Output conforming to OutputT schema

        Raises:
            ServiceError: If execution fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if service is healthy and can process requests."""
        pass


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class MarketDataError(ServiceError):
    """
    Domain error for the ingestion pipeline.

    Carries a human-readable message and, where the failure came from a
    provider, the upstream HTTP status and response body.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        service_name: str = "MarketDataService",
        details: dict = None,
    ):
        self.status = status
        self.body = body
        super().__init__(service_name, message, details)

    @property
    def retryable(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        if self.status is not None:
            data["status"] = self.status
        if self.body:
            data["body"] = self.body
        return data


class NotFoundError(MarketDataError):
    """Stock or data source id unknown."""
    pass


class InactiveDataSourceError(MarketDataError):
    """Data source is flagged inactive."""
    pass


class ProviderUnsupportedError(MarketDataError):
    """No registered adapter supports the data source."""
    pass


class CredentialMissingError(MarketDataError):
    """Data source has no API key or token configured."""
    pass


class TokenExchangeError(MarketDataError):
    """Key+secret token exchange failed."""
    pass


class ProviderHttpError(MarketDataError):
    """Remote call failed at the HTTP or transport level."""

    @property
    def retryable(self) -> bool:
        return self.status is not None and self.status >= 500


class ProviderPayloadError(MarketDataError):
    """Provider answered 200 but the payload reports an error or cannot be used."""
    pass


class RecordParseError(MarketDataError):
    """A single record could not be parsed. Recovered per record."""
    pass
