"""Exponential backoff policy for backend requests."""

import random
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3  # Total attempts per backend, not extra attempts
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: float = 0.0  # Random jitter factor (0-1), off by default

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")


class RetryState:
    """Tracks retry state across attempts for one backend call."""

    def __init__(self, config: RetryConfig, max_retries: Optional[int] = None):
        self.config = config
        self.max_retries = max_retries if max_retries is not None else config.max_retries
        self.attempt = 0
        self.last_exception: Optional[Exception] = None
        self.total_delay = 0.0

    @property
    def exhausted(self) -> bool:
        """True once every allowed attempt has been made."""
        return self.attempt >= self.max_retries

    def increment(self, exception: Exception) -> None:
        """Record a failed attempt."""
        self.attempt += 1
        self.last_exception = exception

    def get_delay(self) -> float:
        """
        Delay before the next attempt.

        With the defaults this is 1s after the first failure, then 2s, 4s, ...
        """
        delay = self.config.base_delay * (self.config.exponential_base ** max(0, self.attempt - 1))
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            jitter_range = delay * self.config.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        self.total_delay += delay
        return delay


def backoff_delays(config: RetryConfig) -> Iterator[float]:
    """Yield the sleeps taken between attempts when every attempt fails."""
    state = RetryState(config)
    for _ in range(config.max_retries - 1):
        state.attempt += 1
        yield state.get_delay()
