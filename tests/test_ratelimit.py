import math
import random

import pytest

from seo_orchestrator.errors import ErrorKind, RateLimitExceeded
from seo_orchestrator.ratelimit import RateLimitConfig, RateLimiter, TokenBucket


def test_bucket_starts_full(clock):
    bucket = TokenBucket(5, 1.0, clock=clock)
    assert bucket.available_tokens == 5
    assert bucket.capacity == 5
    assert bucket.refill_rate == 1.0


def test_bucket_rejects_invalid_parameters():
    with pytest.raises(ValueError):
        TokenBucket(0, 1.0)
    with pytest.raises(ValueError):
        TokenBucket(1, 0)
    bucket = TokenBucket(2, 1.0)
    for tokens in (0, -5):
        with pytest.raises(ValueError):
            bucket.consume(tokens)
        with pytest.raises(ValueError):
            bucket.has_tokens(tokens)
    assert bucket.available_tokens == 2


def test_consume_until_empty(clock):
    bucket = TokenBucket(3, 1.0, clock=clock)
    assert [bucket.consume() for _ in range(4)] == [True, True, True, False]
    assert bucket.available_tokens == 0


def test_failed_consume_leaves_tokens_untouched(clock):
    bucket = TokenBucket(3, 1.0, clock=clock)
    assert bucket.consume(2)
    assert not bucket.consume(2)
    assert bucket.available_tokens == 1


def test_refill_is_capped_at_capacity(clock):
    bucket = TokenBucket(2, 1.0, clock=clock)
    bucket.consume(2)
    clock.advance(1000)
    assert bucket.available_tokens == 2


def test_refill_is_monotonic_without_consumption(clock):
    bucket = TokenBucket(10, 0.5, clock=clock)
    bucket.consume(10)
    readings = []
    for _ in range(5):
        clock.advance(1.3)
        readings.append(bucket.available_tokens)
    assert readings == sorted(readings)
    assert 0 <= readings[0] <= readings[-1] <= 10


def test_time_until_next_token(clock):
    bucket = TokenBucket(1, 0.5, clock=clock)
    assert bucket.time_until_next_token() == 0
    bucket.consume()
    assert bucket.time_until_next_token() == pytest.approx(2.0)
    clock.advance(1.0)
    assert bucket.time_until_next_token() == pytest.approx(1.0)
    assert not bucket.has_tokens()
    clock.advance(1.0)
    assert bucket.has_tokens()


def test_reset_restores_capacity(clock):
    bucket = TokenBucket(4, 1.0, clock=clock)
    bucket.consume(4)
    bucket.reset()
    assert bucket.available_tokens == 4


def test_config_derives_bucket_parameters():
    config = RateLimitConfig(requests_per_minute=60)
    assert config.bucket_capacity() == 30
    assert config.bucket_refill_rate() == pytest.approx(1.0)
    assert RateLimitConfig(requests_per_minute=1).bucket_capacity() == 1


def test_disabled_limiter_admits_everything(clock):
    limiter = RateLimiter(RateLimitConfig(enabled=False, requests_per_minute=2), clock=clock)
    assert all(limiter.acquire("openai") for _ in range(100))
    assert limiter.available_tokens("openai") == math.inf
    assert limiter.wait_time("openai") == 0


def test_exhaustion_raises_when_blocking(clock):
    limiter = RateLimiter(RateLimitConfig(enabled=True, requests_per_minute=4), clock=clock)
    assert limiter.acquire("openai")
    assert limiter.acquire("openai")

    with pytest.raises(RateLimitExceeded) as exc_info:
        limiter.acquire("openai")

    error = exc_info.value
    assert error.provider == "openai"
    assert error.kind is ErrorKind.RATE_LIMITED
    assert error.retryable
    assert error.retry_after == pytest.approx(15.0)


def test_exhaustion_returns_false_when_not_blocking(clock):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=2, block_on_limit=False), clock=clock
    )
    assert limiter.acquire("openai")
    assert limiter.acquire("openai") is False
    assert limiter.can_acquire("openai") is False


def test_backends_have_independent_buckets(clock):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=2, block_on_limit=False), clock=clock
    )
    assert limiter.acquire("openai")
    assert not limiter.acquire("openai")
    assert limiter.acquire("anthropic")


def test_per_backend_override_inherits_unset_fields(clock):
    config = RateLimitConfig(
        enabled=True,
        requests_per_minute=2,
        block_on_limit=False,
        backends={"ollama": {"requests_per_minute": 600}},
    )
    limiter = RateLimiter(config, clock=clock)
    assert limiter.get_bucket("ollama").capacity == 300
    assert limiter.get_bucket("openai").capacity == 1

    effective = config.for_backend("ollama")
    assert effective.enabled
    assert effective.block_on_limit is False
    assert effective.poll_interval == config.poll_interval


def test_per_backend_override_can_disable_limiting(clock):
    config = RateLimitConfig(
        enabled=True,
        requests_per_minute=2,
        block_on_limit=False,
        backends={"ollama": {"enabled": False}},
    )
    limiter = RateLimiter(config, clock=clock)
    assert all(limiter.acquire("ollama") for _ in range(20))
    assert limiter.available_tokens("ollama") == math.inf
    assert limiter.acquire("openai")
    assert limiter.acquire("openai") is False


def test_per_backend_override_accepts_complete_config(clock):
    config = RateLimitConfig(
        enabled=True,
        requests_per_minute=2,
        backends={"ollama": RateLimitConfig(enabled=True, requests_per_minute=60)},
    )
    assert RateLimiter(config, clock=clock).get_bucket("ollama").capacity == 30


def test_wait_and_acquire_sleeps_until_refill(clock):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=60, capacity=1, poll_interval=0.25),
        clock=clock,
        sleep=clock.sleep,
    )
    assert limiter.acquire("openai")
    assert limiter.wait_and_acquire("openai", max_wait=5.0)
    assert sum(clock.sleeps) == pytest.approx(1.0)
    assert max(clock.sleeps) <= 0.25


def test_wait_and_acquire_gives_up_after_max_wait(clock):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=1, capacity=1),
        clock=clock,
        sleep=clock.sleep,
    )
    assert limiter.acquire("openai")
    assert limiter.wait_and_acquire("openai", max_wait=2.0) is False
    assert sum(clock.sleeps) == pytest.approx(2.0)


def test_reset_and_stats(clock):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=4, block_on_limit=False), clock=clock
    )
    limiter.acquire("openai")
    limiter.acquire("openai")
    assert limiter.get_stats()["openai"]["available_tokens"] == 0

    limiter.reset("openai")
    assert limiter.available_tokens("openai") == 2

    limiter.acquire("anthropic")
    limiter.reset_all()
    assert limiter.available_tokens("anthropic") == 2


def test_bounds_hold_for_any_sequence(clock):
    rng = random.Random(7)
    bucket = TokenBucket(5, 2.0, clock=clock)
    for _ in range(500):
        if rng.random() < 0.6:
            bucket.consume(rng.randint(1, 3))
        else:
            clock.advance(rng.uniform(0, 2))
        assert 0 <= bucket.available_tokens <= 5


def test_refill_after_short_wait(clock):
    bucket = TokenBucket(10, 10.0, clock=clock)
    bucket.consume(5)
    clock.advance(0.1)
    assert bucket.available_tokens == pytest.approx(6.0)


@pytest.mark.parametrize("block_on_limit", [True, False])
def test_third_immediate_acquire_is_denied(clock, block_on_limit):
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, capacity=2, refill_rate=1.0, block_on_limit=block_on_limit),
        clock=clock,
    )
    assert limiter.acquire("openai")
    assert limiter.acquire("openai")
    if block_on_limit:
        with pytest.raises(RateLimitExceeded):
            limiter.acquire("openai")
    else:
        assert limiter.acquire("openai") is False
