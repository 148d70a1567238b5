import pytest

from conftest import FakeClock, FakeTransport, chat_response, error_response

from seo_orchestrator.errors import (
    ApiError,
    CommunicationError,
    ConfigurationError,
    ErrorKind,
    RateLimitExceeded,
)
from seo_orchestrator.executor import RequestExecutor, extract_error_message
from seo_orchestrator.ratelimit import RateLimitConfig, RateLimiter
from seo_orchestrator.retry import RetryConfig, backoff_delays
from seo_orchestrator.transport import PreparedRequest, TransportError, TransportResponse


def make_request():
    return PreparedRequest(url="https://api.example.com/chat", body={"prompt": "hi"})


def parse(data):
    return data["choices"][0]["message"]["content"]


def make_executor(transport, clock=None, **kwargs):
    clock = clock or FakeClock()
    return RequestExecutor(transport, sleep=clock.sleep, **kwargs), clock


def test_success_on_first_attempt():
    transport = FakeTransport(chat_response("hello"))
    executor, clock = make_executor(transport)

    assert executor.execute("openai", make_request, parse) == "hello"
    assert len(transport.calls) == 1
    assert clock.sleeps == []


def test_unavailable_backend_fails_before_building_request():
    transport = FakeTransport(chat_response("hello"))
    executor, _ = make_executor(transport)
    built = []

    with pytest.raises(ConfigurationError) as exc_info:
        executor.execute("openai", lambda: built.append(1) or make_request(), parse, available=False)

    assert exc_info.value.kind is ErrorKind.CONFIGURATION
    assert not exc_info.value.retryable
    assert built == []
    assert transport.calls == []


def test_transport_failures_are_retried_with_backoff():
    transport = FakeTransport(TransportError("reset"), TransportError("reset"), chat_response("third time"))
    executor, clock = make_executor(transport)

    assert executor.execute("openai", make_request, parse) == "third time"
    assert len(transport.calls) == 3
    assert clock.sleeps == [1.0, 2.0]


def test_retry_bound_and_communication_error():
    transport = FakeTransport(TransportError("connection refused"))
    executor, clock = make_executor(transport)

    with pytest.raises(CommunicationError) as exc_info:
        executor.execute("openai", make_request, parse)

    assert len(transport.calls) == 3
    assert clock.sleeps == [1.0, 2.0]
    assert "connection refused" in str(exc_info.value)
    assert exc_info.value.retryable


def test_per_call_max_retries():
    transport = FakeTransport(TransportError("down"))
    executor, clock = make_executor(transport)

    with pytest.raises(CommunicationError):
        executor.execute("openai", make_request, parse, max_retries=5)

    assert len(transport.calls) == 5
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0]


def test_request_is_built_once():
    transport = FakeTransport(TransportError("down"), chat_response("ok"))
    executor, _ = make_executor(transport)
    built = []

    def build():
        built.append(1)
        return make_request()

    executor.execute("openai", build, parse)
    assert built == [1]


def test_server_errors_are_retried_then_raised_as_api_error():
    transport = FakeTransport(error_response(503, "overloaded"))
    executor, _ = make_executor(transport)

    with pytest.raises(ApiError) as exc_info:
        executor.execute("openai", make_request, parse)

    assert len(transport.calls) == 3
    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "overloaded"
    assert exc_info.value.retryable


def test_rate_limited_status_recovers():
    transport = FakeTransport(error_response(429, "slow down"), chat_response("ok"))
    executor, clock = make_executor(transport)

    assert executor.execute("openai", make_request, parse) == "ok"
    assert clock.sleeps == [1.0]


def test_client_errors_fail_immediately():
    transport = FakeTransport(error_response(401, "Invalid API key"))
    executor, clock = make_executor(transport)

    with pytest.raises(ApiError) as exc_info:
        executor.execute("openai", make_request, parse)

    assert len(transport.calls) == 1
    assert clock.sleeps == []
    assert exc_info.value.status_code == 401
    assert str(exc_info.value) == "Invalid API key"
    assert not exc_info.value.retryable


def test_invalid_json_is_an_api_error():
    transport = FakeTransport(TransportResponse(200, "<html>oops</html>"))
    executor, _ = make_executor(transport)

    with pytest.raises(ApiError) as exc_info:
        executor.execute("openai", make_request, parse)

    assert "Invalid JSON response" in str(exc_info.value)
    assert len(transport.calls) == 1


def test_missing_payload_shape_is_an_api_error():
    transport = FakeTransport({"choices": []})
    executor, _ = make_executor(transport)

    with pytest.raises(ApiError) as exc_info:
        executor.execute("openai", make_request, parse)

    assert "Invalid response structure" in str(exc_info.value)
    assert exc_info.value.kind is ErrorKind.API


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"error": {"message": "nested"}}, "nested"),
        ({"error": "flat"}, "flat"),
        ({"message": "top level"}, "top level"),
        ({"detail": "other"}, "Unknown API error"),
        ([], "Unknown API error"),
    ],
)
def test_extract_error_message(payload, expected):
    assert extract_error_message(payload) == expected


def test_rate_limiter_denial_raises_without_transport_call():
    limiter = RateLimiter(RateLimitConfig(enabled=True, requests_per_minute=2), clock=FakeClock())
    transport = FakeTransport(chat_response("ok"))
    executor, _ = make_executor(transport, rate_limiter=limiter)

    executor.execute("openai", make_request, parse)
    with pytest.raises(RateLimitExceeded):
        executor.execute("openai", make_request, parse)

    assert len(transport.calls) == 1


def test_non_blocking_denial_still_raises():
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=2, block_on_limit=False), clock=FakeClock()
    )
    transport = FakeTransport(chat_response("ok"))
    executor, _ = make_executor(transport, rate_limiter=limiter)

    executor.execute("openai", make_request, parse)
    with pytest.raises(RateLimitExceeded) as exc_info:
        executor.execute("openai", make_request, parse)

    assert exc_info.value.retry_after == pytest.approx(30.0)
    assert len(transport.calls) == 1


def test_wait_for_token_waits_instead_of_failing():
    clock = FakeClock()
    limiter = RateLimiter(
        RateLimitConfig(enabled=True, requests_per_minute=60, capacity=1),
        clock=clock,
        sleep=clock.sleep,
    )
    transport = FakeTransport(chat_response("ok"))
    executor, _ = make_executor(transport, clock=clock, rate_limiter=limiter)

    executor.execute("openai", make_request, parse)
    assert executor.execute("openai", make_request, parse, wait_for_token=5.0) == "ok"
    assert sum(clock.sleeps) == pytest.approx(1.0)


def test_on_retry_callback_and_timeout():
    seen = []
    transport = FakeTransport(TransportError("blip"), chat_response("ok"))
    executor, _ = make_executor(
        transport,
        timeout=12.0,
        on_retry=lambda backend, attempt, error, delay: seen.append((backend, attempt, delay)),
    )

    executor.execute("anthropic", make_request, parse)
    assert seen == [("anthropic", 1, 1.0)]
    assert transport.calls[0]["timeout"] == 12.0

    executor.execute("anthropic", make_request, parse, timeout=3.0)
    assert transport.calls[-1]["timeout"] == 3.0


def test_backoff_delays_are_capped():
    config = RetryConfig(max_retries=6, base_delay=1.0, max_delay=5.0)
    assert list(backoff_delays(config)) == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_retry_config_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryConfig(max_retries=0)
