"""High-level SEO generation client."""

import logging
from typing import Optional, List, Dict, Any, Callable, Mapping, Sequence, TypeVar

from . import prompts
from .cache import GenerationRequest, KeyValueStore, MemoryStore, Operation, ResponseCache
from .config import OrchestratorConfig
from .factory import ProviderFactory
from .providers.base import ProviderSettings
from .ratelimit import RateLimiter
from .registry import FallbackExhaustedError, ProviderRegistry
from .transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SeoClient:
    """
    SEO metadata generation with rate limiting, retries, caching and
    fallback across AI backends.

    Wires a rate limiter, a response cache, a provider factory and a
    provider registry from one OrchestratorConfig.
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        transport: Optional[Transport] = None,
        store: Optional[KeyValueStore] = None,
        on_fallback: Optional[Callable[[str, str, Exception], None]] = None,
    ):
        self.config = config or OrchestratorConfig()

        if store is None and self.config.cache_enabled:
            store = MemoryStore()
        self.cache = ResponseCache(store, enabled=self.config.cache_enabled, ttl=self.config.cache_ttl)

        self.rate_limiter = RateLimiter(self.config.rate_limiting)
        self.factory = ProviderFactory(
            self.config,
            transport=transport,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
        )
        self.registry = ProviderRegistry(self.factory, self.config, on_fallback=on_fallback)

    def _generate(
        self,
        request: GenerationRequest,
        compute: Callable[[], T],
        local_fallback: Optional[Callable[[], T]] = None,
    ) -> T:
        key = self.cache.key_generator.for_request(request)
        try:
            return self.cache.remember(key, compute)
        except FallbackExhaustedError as e:
            if local_fallback is None or not self.config.fallback_enabled:
                raise
            logger.warning(
                "Using locally derived content",
                extra={
                    "event": "local_fallback",
                    "operation": request.operation.value,
                    "backends": e.backends,
                },
            )
            return local_fallback()

    def generate(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate free-form text.

        Args:
            prompt: The prompt to send
            options: system_message, max_tokens, temperature

        Returns:
            Generated text

        Raises:
            FallbackExhaustedError: No backend produced an answer
        """
        options = dict(options or {})
        request = GenerationRequest(Operation.FREEFORM, {"prompt": prompt}, options)
        return self._generate(request, lambda: self.registry.generate_with_fallback(prompt, options))

    def generate_title(self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate a page title from content analysis.

        Falls back to the first heading or the summary when every backend
        fails and fallback is enabled.
        """
        options = dict(options or {})
        request = GenerationRequest(Operation.TITLE, dict(analysis), options)
        return self._generate(
            request,
            lambda: self.registry.generate_title_with_fallback(analysis, options),
            lambda: prompts.fallback_title(analysis),
        )

    def generate_description(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        """Generate a meta description from content analysis."""
        options = dict(options or {})
        request = GenerationRequest(Operation.DESCRIPTION, dict(analysis), options)
        return self._generate(
            request,
            lambda: self.registry.generate_description_with_fallback(analysis, options),
            lambda: prompts.fallback_description(analysis),
        )

    def generate_keywords(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> List[str]:
        """Generate keywords from content analysis."""
        options = dict(options or {})
        request = GenerationRequest(Operation.KEYWORDS, dict(analysis), options)
        return self._generate(
            request,
            lambda: self.registry.generate_keywords_with_fallback(analysis, options),
            lambda: prompts.fallback_keywords(analysis),
        )

    def set_fallback_chain(self, names: Sequence[str]) -> None:
        self.registry.set_fallback_chain(names)

    def provider_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Availability of every supported backend.

        Returns:
            Mapping of backend name to model, availability and chain position
        """
        chain = self.registry.get_fallback_chain_names()
        status = {}
        for name in self.factory.supported_providers():
            provider = self.registry.get(name)
            status[name] = {
                "model": provider.model,
                "available": provider.is_available(),
                "in_chain": name in chain,
                "tokens": self.rate_limiter.available_tokens(name),
            }
        return status

    def clear_cache(self) -> bool:
        return self.cache.invalidate_all()

    def close(self) -> None:
        """Close all resources."""
        self.registry.close()
        self.factory.close()

    def __enter__(self) -> "SeoClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_client(
    backend: str = "openai",
    api_key: Optional[str] = None,
    fallback_chain: Optional[Sequence[str]] = None,
    cache_enabled: bool = True,
    fallback_enabled: bool = True,
) -> SeoClient:
    """
    Create an SEO client with simple configuration.

    Args:
        backend: Default backend ("openai", "anthropic", "google", "xai", "ollama")
        api_key: API key for the default backend (uses environment variable if not provided)
        fallback_chain: Backends to try in order (defaults to just the default backend)
        cache_enabled: Enable the in-memory response cache
        fallback_enabled: Return locally derived content when every backend fails

    Returns:
        Configured SeoClient
    """
    config = OrchestratorConfig(
        default_backend=backend,
        fallback_chain=list(fallback_chain) if fallback_chain else None,
        cache_enabled=cache_enabled,
        fallback_enabled=fallback_enabled,
    )
    if api_key:
        config.providers[backend.lower()] = ProviderSettings(api_key=api_key)

    return SeoClient(config)
