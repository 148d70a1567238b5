"""
seo-orchestrator - AI backend orchestration for SEO metadata generation.

This package generates page titles, meta descriptions and keywords through
several AI backends with:
- Ordered fallback chains across OpenAI, Anthropic, Google, xAI and Ollama
- Per-backend token bucket rate limiting
- Exponential backoff retries with typed errors
- A fail-open, content-addressed response cache

Basic usage:
    from seo_orchestrator import create_client

    client = create_client("openai")
    title = client.generate_title({"summary": "A guide to sourdough baking"})
    print(title)

With configuration:
    from seo_orchestrator import SeoClient, OrchestratorConfig, RateLimitConfig

    config = OrchestratorConfig(
        default_backend="anthropic",
        fallback_chain=["anthropic", "openai", "ollama"],
        rate_limiting=RateLimitConfig(enabled=True, requests_per_minute=30),
    )
    with SeoClient(config) as client:
        keywords = client.generate_keywords({"main_content": article})

Wiring the parts yourself:
    from seo_orchestrator import ProviderFactory, ProviderRegistry, RateLimiter

    factory = ProviderFactory(config, rate_limiter=RateLimiter(config.rate_limiting))
    registry = ProviderRegistry(factory)
    text = registry.generate_with_fallback("Write a tagline for a bakery")
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    ErrorKind,
    ProviderError,
    ConfigurationError,
    RateLimitExceeded,
    CommunicationError,
    ApiError,
)

# Rate limiting
from .ratelimit import (
    RateLimitConfig,
    TokenBucket,
    RateLimiter,
)

# Retry policy and execution
from .retry import RetryConfig, RetryState, backoff_delays
from .transport import (
    Transport,
    TransportError,
    TransportResponse,
    PreparedRequest,
    HttpxTransport,
)
from .executor import RequestExecutor

# Cache
from .cache import (
    CacheKeyGenerator,
    GenerationRequest,
    Operation,
    KeyValueStore,
    MemoryStore,
    ResponseCache,
)

# Providers
from .providers import (
    BaseProvider,
    BackendSpec,
    BackendProvider,
    ProviderSettings,
    BUILTIN_BACKENDS,
)

# Orchestration
from .config import OrchestratorConfig
from .factory import ProviderFactory
from .registry import (
    ProviderRegistry,
    ProviderErrorRecord,
    FallbackExhaustedError,
)
from .client import SeoClient, create_client

__all__ = [
    # Version
    "__version__",
    # Errors
    "ErrorKind",
    "ProviderError",
    "ConfigurationError",
    "RateLimitExceeded",
    "CommunicationError",
    "ApiError",
    # Rate limiting
    "RateLimitConfig",
    "TokenBucket",
    "RateLimiter",
    # Retry and execution
    "RetryConfig",
    "RetryState",
    "backoff_delays",
    "Transport",
    "TransportError",
    "TransportResponse",
    "PreparedRequest",
    "HttpxTransport",
    "RequestExecutor",
    # Cache
    "CacheKeyGenerator",
    "GenerationRequest",
    "Operation",
    "KeyValueStore",
    "MemoryStore",
    "ResponseCache",
    # Providers
    "BaseProvider",
    "BackendSpec",
    "BackendProvider",
    "ProviderSettings",
    "BUILTIN_BACKENDS",
    # Orchestration
    "OrchestratorConfig",
    "ProviderFactory",
    "ProviderRegistry",
    "ProviderErrorRecord",
    "FallbackExhaustedError",
    "SeoClient",
    "create_client",
]
