"""Provider capability contract and backend descriptions."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Callable, Mapping, Tuple

from ..errors import (
    ErrorKind,
    ProviderError,
    ConfigurationError,
    RateLimitExceeded,
    CommunicationError,
    ApiError,
)
from ..transport import PreparedRequest

DEFAULT_SYSTEM_MESSAGE = "You are an SEO expert. Generate high-quality, optimized content."


@dataclass
class ProviderSettings:
    """Configuration for one backend."""

    api_key: Optional[str] = None
    api_key_env: Optional[str] = None  # Environment variable name for API key
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None  # None uses the global timeout
    max_retries: Optional[int] = None  # None uses the global retry config
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)
    extra_params: Dict[str, Any] = field(default_factory=dict)

    def get_api_key(self) -> Optional[str]:
        """Get API key from config or environment."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    def as_dict(self) -> Dict[str, Any]:
        """Plain mapping of the resolved settings, as validate_config expects."""
        return {
            "api_key": self.get_api_key(),
            "model": self.model,
            "base_url": self.base_url,
        }


RequestBuilder = Callable[[ProviderSettings, str, Mapping[str, Any]], PreparedRequest]
ResponseParser = Callable[[Dict[str, Any]], str]


def generation_params(
    settings: ProviderSettings, options: Mapping[str, Any], default_max_tokens: int = 1024
) -> Tuple[str, int, float]:
    """
    Resolve system message, max tokens and temperature for one request.

    Per-call options win over provider settings, which win over defaults.
    """
    system_message = options.get("system_message") or DEFAULT_SYSTEM_MESSAGE
    max_tokens = options.get("max_tokens") or settings.max_tokens or default_max_tokens
    temperature = options.get("temperature")
    if temperature is None:
        temperature = settings.temperature if settings.temperature is not None else 0.7
    return system_message, int(max_tokens), float(temperature)


@dataclass(frozen=True)
class BackendSpec:
    """
    Everything that differs between AI vendors.

    A backend is described by its defaults, a function that builds the HTTP
    request for a prompt, and a function that pulls the generated text out of
    the decoded response.
    """

    name: str
    default_model: str
    default_base_url: str
    build_request: RequestBuilder
    parse_response: ResponseParser
    supported_models: Tuple[str, ...] = ()
    api_key_env: Optional[str] = None
    requires_api_key: bool = True

    def resolve(self, settings: Optional[ProviderSettings] = None) -> ProviderSettings:
        """Fill unset settings with this backend's defaults."""
        settings = settings or ProviderSettings()
        return replace(
            settings,
            api_key_env=settings.api_key_env or self.api_key_env,
            model=settings.model or self.default_model,
            base_url=(settings.base_url or self.default_base_url).rstrip("/"),
        )


class BaseProvider(ABC):
    """Capability contract every backend adapter satisfies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""

    def get_name(self) -> str:
        return self.name

    @property
    def supported_models(self) -> List[str]:
        return []

    def get_supported_models(self) -> List[str]:
        return list(self.supported_models)

    @abstractmethod
    def generate(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate free-form text.

        Args:
            prompt: The prompt to send
            options: system_message, max_tokens, temperature

        Returns:
            The generated text
        """

    @abstractmethod
    def generate_title(self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
        """Generate a page title from content analysis."""

    @abstractmethod
    def generate_description(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        """Generate a meta description from content analysis."""

    @abstractmethod
    def generate_keywords(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> List[str]:
        """Generate keywords from content analysis."""

    @abstractmethod
    def is_available(self) -> bool:
        """True if credentials and config are present. Never touches the network."""

    @abstractmethod
    def validate_config(self, config: Mapping[str, Any]) -> bool:
        """Structural check of a candidate configuration."""

    def close(self) -> None:
        """Release resources."""

    def __enter__(self) -> "BaseProvider":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


__all__ = [
    "DEFAULT_SYSTEM_MESSAGE",
    "ProviderSettings",
    "BackendSpec",
    "BaseProvider",
    "RequestBuilder",
    "generation_params",
    "ResponseParser",
    "ErrorKind",
    "ProviderError",
    "ConfigurationError",
    "RateLimitExceeded",
    "CommunicationError",
    "ApiError",
]
