"""Error taxonomy shared by the executor, rate limiter, and providers."""

from enum import Enum
from typing import Optional, Any


class ErrorKind(Enum):
    """Kind of provider failure."""

    CONFIGURATION = "configuration"  # Caller-fixable, never retried
    RATE_LIMITED = "rate_limited"  # Back off and try later
    COMMUNICATION = "communication"  # Transport failed after all retries
    API = "api"  # Backend answered but rejected the request or sent garbage


class ProviderError(Exception):
    """Base exception for provider errors."""

    kind: ErrorKind = ErrorKind.API

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.response = response

    @property
    def retryable(self) -> bool:
        """Whether trying the same backend again later could succeed."""
        return False


class ConfigurationError(ProviderError):
    """Raised when a backend is missing credentials or is misconfigured."""

    kind = ErrorKind.CONFIGURATION


class RateLimitExceeded(ProviderError):
    """Raised when the local rate limiter denies admission."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        provider: str,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class CommunicationError(ProviderError):
    """Raised when the transport keeps failing after all retries."""

    kind = ErrorKind.COMMUNICATION

    @property
    def retryable(self) -> bool:
        return True


class ApiError(ProviderError):
    """Raised when a backend signals failure or returns an unexpected payload."""

    kind = ErrorKind.API

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500
