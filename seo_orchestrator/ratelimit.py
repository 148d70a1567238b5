"""Token bucket rate limiting for AI backend requests."""

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Any, Mapping, Union

from .errors import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for per-backend rate limiting."""

    enabled: bool = False  # Disabled means unlimited
    requests_per_minute: int = 10
    block_on_limit: bool = True  # Raise instead of returning False
    capacity: Optional[int] = None  # Overrides the derived burst size
    refill_rate: Optional[float] = None  # Overrides the derived tokens/second
    poll_interval: float = 0.1  # Max sleep per step in wait_and_acquire
    # Per-backend overrides: a mapping of changed fields, or a complete config
    backends: Dict[str, Union[Mapping[str, Any], "RateLimitConfig"]] = field(default_factory=dict)

    def for_backend(self, backend: str) -> "RateLimitConfig":
        """
        Get the effective config for a backend.

        Override mappings only replace the fields they name; everything else
        is inherited from this config.
        """
        override = self.backends.get(backend)
        if override is None:
            return self
        if isinstance(override, RateLimitConfig):
            return override
        return replace(self, backends={}, **override)

    def bucket_capacity(self) -> int:
        """Burst size: explicit capacity or half the per-minute limit."""
        if self.capacity is not None:
            return self.capacity
        return max(1, self.requests_per_minute // 2)

    def bucket_refill_rate(self) -> float:
        """Tokens added per second."""
        if self.refill_rate is not None:
            return self.refill_rate
        return self.requests_per_minute / 60.0


def _check_tokens(tokens: int) -> None:
    if tokens <= 0:
        raise ValueError("tokens must be positive")


class TokenBucket:
    """
    Token bucket admission counter.

    Tokens refill continuously at ``refill_rate`` per second up to ``capacity``.
    Refill is computed lazily from elapsed time on every access, so no
    background timer is needed.
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        self._capacity = capacity
        self._refill_rate = float(refill_rate)
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_rate(self) -> float:
        return self._refill_rate

    @property
    def available_tokens(self) -> float:
        """Current token count after refill."""
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(float(self._capacity), self._tokens + elapsed * self._refill_rate)
            self._last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """
        Try to consume tokens.

        Args:
            tokens: Number of tokens to take

        Returns:
            True if the tokens were available and taken, False otherwise
        """
        _check_tokens(tokens)
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def has_tokens(self, tokens: int = 1) -> bool:
        """Check availability without consuming."""
        _check_tokens(tokens)
        with self._lock:
            self._refill()
            return self._tokens >= tokens

    def time_until_next_token(self) -> float:
        """Seconds until one token is available, 0 if one is available now."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                return 0.0
            return (1.0 - self._tokens) / self._refill_rate

    def reset(self) -> None:
        """Refill the bucket to full capacity."""
        with self._lock:
            self._tokens = float(self._capacity)
            self._last_refill = self._clock()

    def get_stats(self) -> Dict[str, Any]:
        """Get bucket statistics."""
        with self._lock:
            self._refill()
            return {
                "capacity": self._capacity,
                "refill_rate": self._refill_rate,
                "available_tokens": self._tokens,
            }


class RateLimiter:
    """
    Per-backend rate limiter.

    Owns one TokenBucket per backend identifier, created on first use from
    the configuration. When disabled every request is admitted.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.RLock()

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    def is_enabled_for(self, backend: str) -> bool:
        return self.config.for_backend(backend).enabled

    def get_bucket(self, backend: str) -> TokenBucket:
        """Get or create the bucket for a backend."""
        with self._lock:
            if backend not in self._buckets:
                backend_config = self.config.for_backend(backend)
                self._buckets[backend] = TokenBucket(
                    backend_config.bucket_capacity(),
                    backend_config.bucket_refill_rate(),
                    clock=self._clock,
                )
            return self._buckets[backend]

    def acquire(self, backend: str) -> bool:
        """
        Take one admission token for a backend.

        Args:
            backend: Backend identifier

        Returns:
            True if admitted; False if denied and blocking is disabled

        Raises:
            RateLimitExceeded: If denied and ``block_on_limit`` is set
        """
        if not self.is_enabled_for(backend):
            return True

        bucket = self.get_bucket(backend)
        if bucket.consume():
            return True

        wait_time = bucket.time_until_next_token()
        logger.warning(
            "Rate limit reached",
            extra={"event": "rate_limited", "provider": backend, "wait_seconds": round(wait_time, 3)},
        )

        if self.config.for_backend(backend).block_on_limit:
            raise RateLimitExceeded(
                f"Rate limit exceeded for {backend}, retry in {wait_time:.2f}s",
                provider=backend,
                retry_after=wait_time,
            )
        return False

    def can_acquire(self, backend: str) -> bool:
        """Check whether a request would be admitted, without consuming."""
        if not self.is_enabled_for(backend):
            return True
        return self.get_bucket(backend).has_tokens()

    def wait_and_acquire(self, backend: str, max_wait: float = 30.0) -> bool:
        """
        Wait until a token is available, then take it.

        Sleeps in small steps until a token refills or ``max_wait`` seconds
        have been spent waiting.

        Returns:
            True if a token was taken
        """
        if not self.is_enabled_for(backend):
            return True

        bucket = self.get_bucket(backend)
        poll_interval = self.config.for_backend(backend).poll_interval
        waited = 0.0

        while not bucket.has_tokens() and waited < max_wait:
            delay = min(bucket.time_until_next_token(), poll_interval, max_wait - waited)
            if delay <= 0:
                break
            self._sleep(delay)
            waited += delay

        return bucket.consume()

    def wait_time(self, backend: str) -> float:
        """Seconds until the backend admits another request."""
        if not self.is_enabled_for(backend):
            return 0.0
        return self.get_bucket(backend).time_until_next_token()

    def available_tokens(self, backend: str) -> float:
        """Tokens currently available for a backend."""
        if not self.is_enabled_for(backend):
            return math.inf
        return self.get_bucket(backend).available_tokens

    def reset(self, backend: str) -> None:
        """Refill a backend's bucket."""
        with self._lock:
            bucket = self._buckets.get(backend)
        if bucket is not None:
            bucket.reset()

    def reset_all(self) -> None:
        """Refill every bucket."""
        with self._lock:
            buckets = list(self._buckets.values())
        for bucket in buckets:
            bucket.reset()

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get stats for every bucket created so far."""
        with self._lock:
            return {name: bucket.get_stats() for name, bucket in self._buckets.items()}
