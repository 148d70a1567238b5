"""Creates backend adapters from configuration."""

import logging
import threading
from dataclasses import replace
from typing import Optional, List, Dict

from .cache import ResponseCache
from .config import OrchestratorConfig
from .errors import ConfigurationError
from .executor import RequestExecutor
from .providers import BUILTIN_BACKENDS
from .providers.backend import BackendProvider
from .providers.base import BackendSpec
from .ratelimit import RateLimiter
from .transport import Transport, HttpxTransport

logger = logging.getLogger(__name__)


class ProviderFactory:
    """
    Creates one adapter per backend name.

    Every adapter shares the factory's executor, and with it the transport
    and rate limiter, plus the response cache.
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        transport: Optional[Transport] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        executor: Optional[RequestExecutor] = None,
    ):
        self.config = config or OrchestratorConfig()
        if executor is None:
            self._owns_transport = transport is None
            transport = transport or HttpxTransport()
            executor = RequestExecutor(
                transport,
                rate_limiter=rate_limiter or RateLimiter(self.config.rate_limiting),
                retry_config=self.config.retry_config,
                timeout=self.config.timeout,
            )
        else:
            self._owns_transport = False
        self.executor = executor
        self.cache = cache
        self._backends: Dict[str, BackendSpec] = dict(BUILTIN_BACKENDS)
        self._lock = threading.Lock()

    @property
    def rate_limiter(self) -> Optional[RateLimiter]:
        return self.executor.rate_limiter

    def register_backend(self, spec: BackendSpec) -> None:
        """Register a custom backend, or replace a built-in one."""
        spec = replace(spec, name=spec.name.lower())
        with self._lock:
            self._backends[spec.name] = spec

    def supported_providers(self) -> List[str]:
        """Names of every backend this factory can create."""
        with self._lock:
            return list(self._backends)

    def get_spec(self, name: str) -> BackendSpec:
        name = name.lower()
        with self._lock:
            spec = self._backends.get(name)
            supported = ", ".join(self._backends)
        if spec is None:
            raise ConfigurationError(
                f"Unsupported provider: {name}. Supported providers: {supported}",
                provider=name,
            )
        return spec

    def create(self, name: str) -> BackendProvider:
        """
        Create an adapter for a backend.

        Raises:
            ConfigurationError: Unknown backend name
        """
        spec = self.get_spec(name)
        return BackendProvider(
            spec,
            self.config.settings_for(spec.name),
            self.executor,
            cache=self.cache,
            wait_for_token=self.config.wait_for_token,
        )

    def create_default(self) -> BackendProvider:
        return self.create(self.config.default_backend)

    def create_all(self) -> Dict[str, BackendProvider]:
        """Adapters for every backend that validates and is available."""
        providers: Dict[str, BackendProvider] = {}
        for name in self.supported_providers():
            provider = self.create(name)
            if provider.validate_config(provider.settings.as_dict()) and provider.is_available():
                providers[name] = provider
            else:
                logger.debug(
                    "Backend not configured",
                    extra={"event": "provider_skipped", "provider": name},
                )
        return providers

    def is_provider_available(self, name: str) -> bool:
        """True for a known backend with usable configuration."""
        try:
            provider = self.create(name)
        except ConfigurationError:
            return False
        return provider.is_available()

    def available_providers(self) -> List[str]:
        return list(self.create_all())

    def close(self) -> None:
        """Close the transport if this factory created it."""
        if self._owns_transport:
            close = getattr(self.executor.transport, "close", None)
            if close is not None:
                close()
