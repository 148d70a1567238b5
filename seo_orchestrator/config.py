"""Orchestrator configuration."""

import json
import os
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Mapping, Union

from .errors import ConfigurationError
from .providers.base import ProviderSettings
from .ratelimit import RateLimitConfig
from .retry import RetryConfig

# Conventional API key variable per built-in backend
API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "xai": "XAI_API_KEY",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

_PROVIDER_KEYS = {
    "api_key": "api_key",
    "apiKey": "api_key",
    "api_key_env": "api_key_env",
    "apiKeyEnv": "api_key_env",
    "model": "model",
    "base_url": "base_url",
    "baseUrl": "base_url",
    "timeout": "timeout",
    "timeoutSeconds": "timeout",
    "max_retries": "max_retries",
    "maxRetries": "max_retries",
    "max_tokens": "max_tokens",
    "maxTokens": "max_tokens",
    "temperature": "temperature",
    "extra_headers": "extra_headers",
    "extraHeaders": "extra_headers",
    "extra_params": "extra_params",
    "extraParams": "extra_params",
}


def _invalid(message: str) -> ConfigurationError:
    return ConfigurationError(message, provider="config")


def _pick(data: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First present key among names (snake_case and camelCase spellings)."""
    for name in names:
        if name in data:
            return data[name]
    return default


def _to_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise _invalid(f"Invalid boolean for {name}: {value!r}")


def _to_number(value: Any, name: str, cast: type = float, minimum: Optional[float] = None) -> Any:
    try:
        number = cast(value)
    except (TypeError, ValueError) as e:
        raise _invalid(f"Invalid value for {name}: {value!r}") from e
    if minimum is not None and number < minimum:
        raise _invalid(f"{name} must be at least {minimum}, got {number}")
    return number


def _to_chain(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    return [str(name).strip().lower() for name in value if str(name).strip()]


@dataclass
class OrchestratorConfig:
    """Configuration for the SEO orchestrator."""

    # Backend selection
    default_backend: str = "openai"
    fallback_chain: Optional[List[str]] = None  # None means [default_backend]
    fallback_enabled: bool = True  # Local fallback content when every backend fails

    # Rate limiting
    rate_limiting: RateLimitConfig = field(default_factory=RateLimitConfig)
    wait_for_token: Optional[float] = None  # Seconds to wait for a token instead of failing

    # Response cache
    cache_enabled: bool = True
    cache_ttl: int = 3600

    # Requests
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout: float = 30.0

    # Per-backend settings
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.default_backend = self.default_backend.lower()
        if self.fallback_chain is not None:
            self.fallback_chain = _to_chain(self.fallback_chain)
        self.providers = {name.lower(): settings for name, settings in self.providers.items()}

    def get_fallback_chain(self) -> List[str]:
        """Configured chain, or just the default backend."""
        return list(self.fallback_chain) if self.fallback_chain else [self.default_backend]

    def settings_for(self, backend: str) -> ProviderSettings:
        """
        Settings for one backend with global timeout and retries filled in.

        Built-in backends also get their conventional API key variable.
        """
        backend = backend.lower()
        settings = self.providers.get(backend) or ProviderSettings()
        return replace(
            settings,
            api_key_env=settings.api_key_env or API_KEY_ENV_VARS.get(backend),
            timeout=settings.timeout if settings.timeout is not None else self.timeout,
            max_retries=(
                settings.max_retries if settings.max_retries is not None else self.retry_config.max_retries
            ),
            extra_headers=dict(settings.extra_headers),
            extra_params=dict(settings.extra_params),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrchestratorConfig":
        """
        Build a config from a mapping.

        Accepts snake_case keys and the camelCase keys used by JSON config
        files (``defaultBackend``, ``fallbackChain``, ``rateLimiting``,
        ``cacheTtlSeconds``, ``maxRetries``, ``timeoutSeconds``, ...).

        Raises:
            ConfigurationError: A value has the wrong type or range
        """
        config = cls()

        default_backend = _pick(data, "default_backend", "defaultBackend")
        if default_backend is not None:
            config.default_backend = str(default_backend).lower()

        config.fallback_chain = _to_chain(_pick(data, "fallback_chain", "fallbackChain"))

        fallback_enabled = _pick(data, "fallback_enabled", "fallbackEnabled")
        if fallback_enabled is not None:
            config.fallback_enabled = _to_bool(fallback_enabled, "fallback_enabled")

        rate_limiting = _pick(data, "rate_limiting", "rateLimiting")
        if rate_limiting is not None:
            config.rate_limiting = _rate_limit_from_dict(rate_limiting)

        wait_for_token = _pick(data, "wait_for_token", "waitForToken")
        if wait_for_token is not None:
            config.wait_for_token = _to_number(wait_for_token, "wait_for_token", minimum=0)

        cache_enabled = _pick(data, "cache_enabled", "cacheEnabled")
        if cache_enabled is not None:
            config.cache_enabled = _to_bool(cache_enabled, "cache_enabled")

        cache_ttl = _pick(data, "cache_ttl", "cacheTtl", "cacheTtlSeconds")
        if cache_ttl is not None:
            config.cache_ttl = _to_number(cache_ttl, "cache_ttl", int, minimum=1)

        retry = dict(_pick(data, "retry", default={}) or {})
        max_retries = _pick(data, "max_retries", "maxRetries")
        if max_retries is not None:
            retry["max_retries"] = max_retries
        if retry:
            config.retry_config = _retry_from_dict(retry)

        timeout = _pick(data, "timeout", "timeoutSeconds")
        if timeout is not None:
            config.timeout = _to_number(timeout, "timeout", minimum=0.001)

        providers = _pick(data, "providers", default={}) or {}
        if not isinstance(providers, Mapping):
            raise _invalid("providers must be a mapping of backend name to settings")
        config.providers = {
            str(name).lower(): _provider_from_dict(str(name), values) for name, values in providers.items()
        }

        return config

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike]) -> "OrchestratorConfig":
        """Load a JSON config file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise _invalid(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, Mapping):
            raise _invalid(f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, prefix: str = "SEO_AI_", environ: Optional[Mapping[str, str]] = None) -> "OrchestratorConfig":
        """
        Build a config from environment variables.

        Reads ``<prefix>DEFAULT_BACKEND``, ``FALLBACK_CHAIN`` (comma
        separated), ``FALLBACK_ENABLED``, ``RATE_LIMITING``, ``RATE_LIMIT``
        (requests per minute), ``BLOCK_ON_LIMIT``, ``CACHE_ENABLED``,
        ``CACHE_TTL``, ``MAX_RETRIES`` and ``TIMEOUT``. API keys are read
        later from each backend's own variable.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(prefix + name)

        data: Dict[str, Any] = {}
        for name, key in (
            ("DEFAULT_BACKEND", "default_backend"),
            ("FALLBACK_CHAIN", "fallback_chain"),
            ("FALLBACK_ENABLED", "fallback_enabled"),
            ("CACHE_ENABLED", "cache_enabled"),
            ("CACHE_TTL", "cache_ttl"),
            ("MAX_RETRIES", "max_retries"),
            ("TIMEOUT", "timeout"),
            ("WAIT_FOR_TOKEN", "wait_for_token"),
        ):
            value = get(name)
            if value is not None:
                data[key] = value

        rate_limiting: Dict[str, Any] = {}
        for name, key in (
            ("RATE_LIMITING", "enabled"),
            ("RATE_LIMIT", "requests_per_minute"),
            ("BLOCK_ON_LIMIT", "block_on_limit"),
        ):
            value = get(name)
            if value is not None:
                rate_limiting[key] = value
        if rate_limiting:
            data["rate_limiting"] = rate_limiting

        return cls.from_dict(data)


def _rate_limit_overrides(data: Any, name: str) -> Dict[str, Any]:
    """Fields explicitly set in a rate limiting mapping, validated."""
    if isinstance(data, bool):
        return {"enabled": data}
    if not isinstance(data, Mapping):
        raise _invalid(f"{name} must be a mapping")

    values: Dict[str, Any] = {}
    enabled = _pick(data, "enabled")
    if enabled is not None:
        values["enabled"] = _to_bool(enabled, f"{name}.enabled")
    rpm = _pick(data, "requests_per_minute", "requestsPerMinute")
    if rpm is not None:
        values["requests_per_minute"] = _to_number(rpm, f"{name}.requests_per_minute", int, minimum=1)
    block = _pick(data, "block_on_limit", "blockOnLimit")
    if block is not None:
        values["block_on_limit"] = _to_bool(block, f"{name}.block_on_limit")
    capacity = _pick(data, "capacity")
    if capacity is not None:
        values["capacity"] = _to_number(capacity, f"{name}.capacity", int, minimum=1)
    refill_rate = _pick(data, "refill_rate", "refillRate")
    if refill_rate is not None:
        values["refill_rate"] = _to_number(refill_rate, f"{name}.refill_rate", minimum=1e-9)
    poll_interval = _pick(data, "poll_interval", "pollInterval")
    if poll_interval is not None:
        values["poll_interval"] = _to_number(poll_interval, f"{name}.poll_interval", minimum=1e-3)
    return values


def _rate_limit_from_dict(data: Any, name: str = "rate_limiting") -> RateLimitConfig:
    config = RateLimitConfig(**_rate_limit_overrides(data, name))
    if isinstance(data, Mapping):
        backends = _pick(data, "backends", default={}) or {}
        if not isinstance(backends, Mapping):
            raise _invalid(f"{name}.backends must be a mapping")
        # Partial overrides, unset fields inherit the global settings
        config.backends = {
            str(backend).lower(): _rate_limit_overrides(values, f"{name}.backends.{backend}")
            for backend, values in backends.items()
        }
    return config


def _retry_from_dict(data: Mapping[str, Any]) -> RetryConfig:
    values: Dict[str, Any] = {}
    for names, key, cast in (
        (("max_retries", "maxRetries"), "max_retries", int),
        (("base_delay", "baseDelay"), "base_delay", float),
        (("max_delay", "maxDelay"), "max_delay", float),
        (("exponential_base", "exponentialBase"), "exponential_base", float),
        (("jitter",), "jitter", float),
    ):
        value = _pick(data, *names)
        if value is not None:
            values[key] = _to_number(value, key, cast)
    try:
        return RetryConfig(**values)
    except ValueError as e:
        raise _invalid(str(e)) from e


def _provider_from_dict(name: str, data: Any) -> ProviderSettings:
    if isinstance(data, ProviderSettings):
        return data
    if not isinstance(data, Mapping):
        raise _invalid(f"Settings for provider '{name}' must be a mapping")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        field_name = _PROVIDER_KEYS.get(key)
        if field_name is None:
            raise _invalid(f"Unknown setting '{key}' for provider '{name}'")
        if value is None:
            continue
        if field_name == "timeout":
            value = _to_number(value, f"{name}.timeout", minimum=0.001)
        elif field_name in ("max_retries", "max_tokens"):
            value = _to_number(value, f"{name}.{field_name}", int, minimum=1)
        elif field_name == "temperature":
            value = _to_number(value, f"{name}.temperature", minimum=0)
        values[field_name] = value
    return ProviderSettings(**values)
