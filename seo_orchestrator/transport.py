"""Pluggable HTTP transport used by the request executor."""

import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Protocol

import httpx


@dataclass
class PreparedRequest:
    """A backend request ready to hand to a transport."""

    url: str
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    method: str = "POST"


@dataclass
class TransportResponse:
    """Raw response from a transport."""

    status_code: int
    body: str


class TransportError(Exception):
    """Raised by a transport on connection-level failure."""

    pass


class Transport(Protocol):
    """Anything that can send a request and return status code and raw body."""

    def execute(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        timeout: float,
    ) -> TransportResponse:
        ...


class HttpxTransport:
    """Transport backed by a synchronous httpx client."""

    def __init__(self, client: Optional[httpx.Client] = None):
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def execute(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        timeout: float,
    ) -> TransportResponse:
        """Send one request. Any httpx failure becomes a TransportError."""
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers)

        try:
            response = self.client.request(
                method,
                url,
                headers=request_headers,
                content=json.dumps(body),
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return TransportResponse(status_code=response.status_code, body=response.text)

    def close(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
