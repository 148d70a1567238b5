"""Ordered fallback across AI backends."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable, Mapping, Sequence, TypeVar

from .config import OrchestratorConfig
from .errors import ErrorKind
from .factory import ProviderFactory
from .providers.base import BaseProvider
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderErrorRecord:
    """One failed backend attempt within an orchestrated call."""

    backend: str
    message: str
    error_type: str
    kind: Optional[ErrorKind] = None  # None for errors outside the provider taxonomy


class FallbackExhaustedError(Exception):
    """Raised when every backend in the fallback chain failed or none was available."""

    def __init__(
        self,
        message: str,
        attempts: Optional[List[ProviderErrorRecord]] = None,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.attempts = attempts or []
        self.last_error = last_error

    @property
    def backends(self) -> List[str]:
        """Attempted backends in attempt order."""
        return [record.backend for record in self.attempts]


class ProviderRegistry:
    """
    Runs generations across an ordered chain of backends.

    Backends are tried strictly in chain order, one at a time, and the first
    success wins. Chain entries that cannot be created or are not available
    are skipped. The chain order is never changed by the registry.
    """

    def __init__(
        self,
        factory: ProviderFactory,
        config: Optional[OrchestratorConfig] = None,
        on_fallback: Optional[Callable[[str, str, Exception], None]] = None,  # (from, to, error)
    ):
        self.factory = factory
        self.config = config or factory.config
        self.on_fallback = on_fallback
        self._providers: Dict[str, BaseProvider] = {}
        self._chain: List[str] = [name.lower() for name in self.config.get_fallback_chain()]
        self._lock = threading.RLock()

    @property
    def rate_limiter(self) -> Optional[RateLimiter]:
        return self.factory.rate_limiter

    def register(self, name: str, provider: BaseProvider) -> None:
        """Register a provider instance under a name."""
        with self._lock:
            self._providers[name.lower()] = provider

    def get(self, name: str) -> BaseProvider:
        """
        Get a provider by name, creating it on first use.

        Raises:
            ConfigurationError: Unknown backend name
        """
        name = name.lower()
        with self._lock:
            if name not in self._providers:
                self._providers[name] = self.factory.create(name)
            return self._providers[name]

    def get_primary(self) -> BaseProvider:
        return self.get(self.config.default_backend)

    def get_fallback_chain(self) -> List[BaseProvider]:
        """
        Available providers of the chain, in chain order.

        A backend listed more than once is attempted only at its first
        position.
        """
        providers = []
        seen = set()
        for name in self.get_fallback_chain_names():
            if name in seen:
                continue
            seen.add(name)
            try:
                provider = self.get(name)
            except Exception as e:
                logger.debug(
                    "Skipping backend that cannot be created",
                    extra={"event": "provider_skipped", "provider": name, "error_message": str(e)},
                )
                continue
            if provider.is_available():
                providers.append(provider)
            else:
                logger.debug(
                    "Skipping unavailable backend",
                    extra={"event": "provider_skipped", "provider": name},
                )
        return providers

    def set_fallback_chain(self, names: Sequence[str]) -> None:
        with self._lock:
            self._chain = [name.lower() for name in names]

    def get_fallback_chain_names(self) -> List[str]:
        with self._lock:
            return list(self._chain)

    def has_available_provider(self) -> bool:
        return bool(self.get_fallback_chain())

    def _run(self, operation: str, call: Callable[[BaseProvider], T]) -> T:
        providers = self.get_fallback_chain()
        if not providers:
            chain = ", ".join(self.get_fallback_chain_names()) or "(empty)"
            logger.error(
                "No backend available",
                extra={"event": "fallback_exhausted", "operation": operation, "chain": chain},
            )
            raise FallbackExhaustedError(
                f"No AI providers are available for {operation}. Configured fallback chain: {chain}"
            )

        attempts: List[ProviderErrorRecord] = []
        last_error: Optional[Exception] = None

        for i, provider in enumerate(providers):
            try:
                return call(provider)
            except Exception as e:
                last_error = e
                attempts.append(
                    ProviderErrorRecord(
                        backend=provider.name,
                        message=str(e),
                        error_type=type(e).__name__,
                        kind=getattr(e, "kind", None),
                    )
                )
                logger.warning(
                    "Backend failed",
                    extra={
                        "event": "provider_failed",
                        "provider": provider.name,
                        "operation": operation,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                )
                if self.on_fallback and i < len(providers) - 1:
                    self.on_fallback(provider.name, providers[i + 1].name, e)

        details = "; ".join(f"{record.backend}: {record.message}" for record in attempts)
        logger.error(
            "All backends failed",
            extra={
                "event": "fallback_exhausted",
                "operation": operation,
                "backends": [record.backend for record in attempts],
            },
        )
        raise FallbackExhaustedError(
            f"All providers failed to generate {operation}: {details}",
            attempts=attempts,
            last_error=last_error,
        )

    def generate_with_fallback(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> str:
        return self._run("content", lambda provider: provider.generate(prompt, options))

    def generate_title_with_fallback(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._run("title", lambda provider: provider.generate_title(analysis, options))

    def generate_description_with_fallback(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._run("description", lambda provider: provider.generate_description(analysis, options))

    def generate_keywords_with_fallback(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> List[str]:
        return self._run("keywords", lambda provider: provider.generate_keywords(analysis, options))

    def close(self) -> None:
        """Close all providers."""
        with self._lock:
            for provider in self._providers.values():
                provider.close()
            self._providers.clear()

    def __enter__(self) -> "ProviderRegistry":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
