"""Resilient request executor shared by every backend."""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from .errors import ApiError, CommunicationError, ConfigurationError, ProviderError, RateLimitExceeded
from .ratelimit import RateLimiter
from .retry import RetryConfig, RetryState
from .transport import PreparedRequest, Transport, TransportResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def extract_error_message(data: Any) -> str:
    """
    Pull an error message out of a backend's error envelope.

    Checks ``error.message``, then ``error`` when it is a string, then
    ``message``.
    """
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
    return "Unknown API error"


def is_retryable_status(status_code: int) -> bool:
    """429 and 5xx responses are worth another attempt."""
    return status_code == 429 or status_code >= 500


class _RetryableStatus(Exception):
    """Internal marker for a response that should be retried."""

    def __init__(self, error: ApiError):
        super().__init__(error.message)
        self.error = error


class RequestExecutor:
    """
    Turns one logical backend call into a reliable operation.

    Checks availability, takes a rate limiter token, sends the request with
    exponential backoff between attempts, and maps the outcome onto the
    provider error taxonomy. Backend specifics come in as a request builder
    and a response parser, so this logic exists once for all backends.
    """

    def __init__(
        self,
        transport: Transport,
        rate_limiter: Optional[RateLimiter] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        on_retry: Optional[Callable[[str, int, Exception, float], None]] = None,
    ):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._sleep = sleep
        self.on_retry = on_retry

    def _admit(self, backend: str, wait_for_token: Optional[float]) -> None:
        """Take one admission token or raise RateLimitExceeded."""
        if self.rate_limiter is None:
            return

        if wait_for_token:
            admitted = self.rate_limiter.wait_and_acquire(backend, wait_for_token)
        else:
            admitted = self.rate_limiter.acquire(backend)

        if not admitted:
            wait_time = self.rate_limiter.wait_time(backend)
            raise RateLimitExceeded(
                f"Rate limit exceeded for {backend}, retry in {wait_time:.2f}s",
                provider=backend,
                retry_after=wait_time,
            )

    def _decode(self, backend: str, response: TransportResponse) -> Dict[str, Any]:
        """Decode a response body and raise ApiError for error statuses."""
        try:
            data = json.loads(response.body) if response.body else {}
        except ValueError as e:
            error = ApiError(
                f"Invalid JSON response: {e}",
                provider=backend,
                status_code=response.status_code,
                response=response,
            )
            if is_retryable_status(response.status_code):
                raise _RetryableStatus(error) from e
            raise error from e

        if response.status_code >= 400:
            error = ApiError(
                extract_error_message(data),
                provider=backend,
                status_code=response.status_code,
                response=data,
            )
            if is_retryable_status(response.status_code):
                raise _RetryableStatus(error)
            raise error

        return data

    def execute(
        self,
        backend: str,
        build_request: Callable[[], PreparedRequest],
        parse_response: Callable[[Dict[str, Any]], T],
        *,
        available: bool = True,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        wait_for_token: Optional[float] = None,
    ) -> T:
        """
        Execute one backend call.

        Args:
            backend: Backend identifier, used for rate limiting and errors
            build_request: Returns the request to send; called once
            parse_response: Turns the decoded payload into the result
            available: Whether the backend has its credentials and config
            max_retries: Total attempts (defaults to the retry config)
            timeout: Per-attempt timeout in seconds
            wait_for_token: Seconds to wait for a rate limiter token instead
                of failing immediately

        Returns:
            Whatever parse_response returns

        Raises:
            ConfigurationError: The backend is unavailable
            RateLimitExceeded: Admission was denied
            CommunicationError: The transport failed on every attempt
            ApiError: The backend rejected the request or sent a bad payload
        """
        if not available:
            raise ConfigurationError(
                f"Provider '{backend}' is not properly configured",
                provider=backend,
            )

        self._admit(backend, wait_for_token)

        request = build_request()
        state = RetryState(self.retry_config, max_retries)
        attempt_timeout = timeout if timeout is not None else self.timeout

        while True:
            try:
                response = self.transport.execute(
                    request.url,
                    request.method,
                    request.headers,
                    request.body,
                    attempt_timeout,
                )
                data = self._decode(backend, response)
                break
            except ProviderError:
                raise
            except Exception as e:
                state.increment(e)
                if state.exhausted:
                    self._log_exhausted(backend, state, e)
                    if isinstance(e, _RetryableStatus):
                        raise e.error from e
                    raise CommunicationError(
                        f"Provider '{backend}' communication error: {e}",
                        provider=backend,
                    ) from e

                delay = state.get_delay()
                logger.info(
                    "Retrying backend request",
                    extra={
                        "event": "retry_scheduled",
                        "provider": backend,
                        "attempt": state.attempt,
                        "max_retries": state.max_retries,
                        "delay_seconds": delay,
                        "error_message": str(e),
                    },
                )
                if self.on_retry:
                    self.on_retry(backend, state.attempt, e, delay)
                self._sleep(delay)

        return self._parse(backend, parse_response, data)

    def _parse(self, backend: str, parse_response: Callable[[Dict[str, Any]], T], data: Dict[str, Any]) -> T:
        try:
            return parse_response(data)
        except ApiError:
            raise
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ApiError(
                f"Invalid response structure: missing {e}",
                provider=backend,
                response=data,
            ) from e

    def _log_exhausted(self, backend: str, state: RetryState, error: Exception) -> None:
        logger.error(
            "Retry exhausted",
            extra={
                "event": "retry_failed",
                "provider": backend,
                "attempt": state.attempt,
                "max_retries": state.max_retries,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "total_delay_seconds": state.total_delay,
            },
        )
