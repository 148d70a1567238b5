import threading

import pytest

from conftest import FailingStore

from seo_orchestrator.cache import (
    CacheKeyGenerator,
    GenerationRequest,
    MemoryStore,
    Operation,
    ResponseCache,
)


def test_keys_ignore_mapping_order():
    keys = CacheKeyGenerator()
    first = keys.for_title_generation({"summary": "s", "keywords": ["a", "b"]}, {"max_length": 60})
    second = keys.for_title_generation({"keywords": ["a", "b"], "summary": "s"}, {"max_length": 60})
    assert first == second


def test_keys_ignore_nested_mapping_order():
    keys = CacheKeyGenerator()
    first = keys.hash_data({"outer": {"a": 1, "b": 2}})
    second = keys.hash_data({"outer": {"b": 2, "a": 1}})
    assert first == second


def test_key_format():
    keys = CacheKeyGenerator()
    key = keys.for_description_generation({"summary": "s"})
    namespace, operation, data_hash, options_hash = key.split(":")
    assert (namespace, operation) == ("seo", "description")
    assert len(data_hash) == 12
    assert options_hash == "empty"


def test_keys_differ_by_operation_and_input():
    keys = CacheKeyGenerator()
    analysis = {"summary": "s"}
    assert keys.for_title_generation(analysis) != keys.for_description_generation(analysis)
    assert keys.for_title_generation(analysis) != keys.for_title_generation({"summary": "t"})


def test_provider_response_key():
    keys = CacheKeyGenerator()
    key = keys.for_provider_response("openai", "gpt-4o-mini", "prompt", {"temperature": 0.5})
    assert key.startswith("seo:provider:openai:gpt-4o-mini:")
    assert key == keys.for_provider_response("openai", "gpt-4o-mini", "prompt", {"temperature": 0.5})
    assert key != keys.for_provider_response("anthropic", "gpt-4o-mini", "prompt", {"temperature": 0.5})


def test_request_keys_match_operation_keys():
    keys = CacheKeyGenerator()
    analysis = {"summary": "s"}
    request = GenerationRequest(Operation.KEYWORDS, analysis, {"max_keywords": 5})
    assert keys.for_request(request) == keys.for_keywords_generation(analysis, {"max_keywords": 5})

    freeform = keys.for_request(GenerationRequest(Operation.FREEFORM, {"prompt": "hi"}))
    assert freeform.startswith("seo:freeform:")


def test_other_key_kinds():
    keys = CacheKeyGenerator(namespace="site")
    assert keys.for_content_analysis("<p>x</p>").startswith("site:analysis:")
    assert keys.for_meta_tags_generation({"url": "/"}).startswith("site:metatags:")
    assert keys.for_image_alt_generation({"src": "a.png"}).startswith("site:imagealt:")


def test_remember_computes_once():
    cache = ResponseCache(MemoryStore())
    calls = []

    def compute():
        calls.append(1)
        return "value"

    assert cache.remember("k", compute) == "value"
    assert cache.remember("k", compute) == "value"
    assert len(calls) == 1


def test_cached_lists_are_not_shared_with_callers():
    cache = ResponseCache(MemoryStore())

    first = cache.remember("k", lambda: ["alpha", "beta"])
    first.append("changed")
    second = cache.remember("k", lambda: ["other"])
    assert second == ["alpha", "beta"]

    second.clear()
    assert cache.get("k") == ["alpha", "beta"]


def test_remember_does_not_store_none():
    cache = ResponseCache(MemoryStore())
    assert cache.remember("k", lambda: None) is None
    assert not cache.has("k")


def test_remember_propagates_compute_errors():
    cache = ResponseCache(MemoryStore())

    def compute():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        cache.remember("k", compute)
    assert not cache.has("k")


def test_disabled_cache_always_computes():
    cache = ResponseCache(MemoryStore(), enabled=False)
    calls = []
    cache.remember("k", lambda: calls.append(1) or "v")
    cache.remember("k", lambda: calls.append(1) or "v")
    assert len(calls) == 2
    assert not cache.is_enabled


def test_cache_without_store_is_disabled():
    cache = ResponseCache(None)
    assert not cache.is_enabled
    assert cache.remember("k", lambda: "v") == "v"
    assert cache.get("k") is None


def test_failing_store_fails_open(caplog):
    store = FailingStore()
    cache = ResponseCache(store)

    assert cache.remember("k", lambda: "computed") == "computed"
    assert cache.get("k", "default") == "default"
    assert cache.set("k", "v") is False
    assert cache.has("k") is False
    assert cache.delete("k") is False
    assert cache.invalidate_all() is False
    assert "get" in store.calls and "set" in store.calls
    assert any(getattr(r, "event", None) == "cache_store_error" for r in caplog.records)


def test_memory_store_ttl(clock):
    store = MemoryStore(clock=clock)
    store.set("k", "v", ttl=10)
    store.set("forever", "v")
    store.set("zero", "v", ttl=0)
    assert store.get("k") == "v"
    clock.advance(10)
    assert store.get("k") is None
    assert store.has("forever")
    assert store.has("zero")
    assert len(store) == 2


def test_cache_uses_default_ttl(clock):
    store = MemoryStore(clock=clock)
    cache = ResponseCache(store, ttl=5)
    cache.set("k", "v")
    clock.advance(4)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None


def test_invalidate_content():
    cache = ResponseCache(MemoryStore())
    key = cache.key_generator.for_content_analysis("<p>hello</p>")
    cache.set(key, {"summary": "hello"})
    assert cache.invalidate_content("<p>hello</p>")
    assert not cache.has(key)


def test_concurrent_remember_runs_compute_once():
    cache = ResponseCache(MemoryStore())
    calls = []
    barrier = threading.Barrier(5)
    results = []

    def compute():
        calls.append(1)
        return "value"

    def worker():
        barrier.wait()
        results.append(cache.remember("shared", compute))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == ["value"] * 5
    assert len(calls) == 1
