"""Read-through response cache with content-addressed keys."""

import copy
import hashlib
import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any, Callable, Iterator, Mapping, Protocol, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class Operation(Enum):
    """Generation operation a request belongs to."""

    TITLE = "title"
    DESCRIPTION = "description"
    KEYWORDS = "keywords"
    FREEFORM = "freeform"


@dataclass(frozen=True)
class GenerationRequest:
    """Inputs of one generation call, used only to derive its cache key."""

    operation: Operation
    inputs: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)


class CacheKeyGenerator:
    """
    Builds deterministic cache keys.

    Mappings are serialized as canonical JSON with sorted keys before hashing,
    so the same inputs in any key order give the same key. Keys look like
    ``<namespace>:<operation>:<hash>[:<hash>]``.
    """

    def __init__(self, namespace: str = "seo", digest_size: int = 12):
        self.namespace = namespace
        self.digest_size = digest_size

    def _key(self, *parts: str) -> str:
        return ":".join((self.namespace,) + parts)

    def hash_content(self, content: str) -> str:
        """Truncated SHA-256 of a string."""
        return hashlib.sha256(content.encode("utf-8")).hexdigest()[: self.digest_size]

    def hash_data(self, data: Optional[Mapping[str, Any]]) -> str:
        """Truncated SHA-256 of a mapping's canonical JSON form."""
        if not data:
            return "empty"
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
        return self.hash_content(canonical)

    def for_content_analysis(self, content: str, metadata: Optional[Mapping[str, Any]] = None) -> str:
        return self._key("analysis", self.hash_content(content), self.hash_data(metadata))

    def for_title_generation(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._key("title", self.hash_data(analysis), self.hash_data(options))

    def for_description_generation(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._key("description", self.hash_data(analysis), self.hash_data(options))

    def for_keywords_generation(
        self, analysis: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._key("keywords", self.hash_data(analysis), self.hash_data(options))

    def for_meta_tags_generation(
        self, page_data: Mapping[str, Any], overrides: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._key("metatags", self.hash_data(page_data), self.hash_data(overrides))

    def for_image_alt_generation(
        self, image: Mapping[str, Any], page_data: Optional[Mapping[str, Any]] = None
    ) -> str:
        return self._key("imagealt", self.hash_data(image), self.hash_data(page_data))

    def for_provider_response(
        self,
        provider: str,
        model: str,
        prompt: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Key for one backend's raw answer to one prompt."""
        return self._key("provider", provider, model, self.hash_content(prompt), self.hash_data(options))

    def for_request(self, request: GenerationRequest) -> str:
        """Key for a GenerationRequest."""
        if request.operation is Operation.FREEFORM:
            prompt = str(request.inputs.get("prompt", ""))
            return self._key("freeform", self.hash_content(prompt), self.hash_data(request.options))
        return self._key(
            request.operation.value,
            self.hash_data(request.inputs),
            self.hash_data(request.options),
        )


class KeyValueStore(Protocol):
    """Store the response cache delegates to. Any method may raise."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    def has(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self) -> bool:
        ...


class MemoryStore:
    """Thread-safe in-process store with per-entry TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return _MISSING
        return value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._live(key)
            return default if value is _MISSING else value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value; a ttl of None or 0 means it never expires."""
        with self._lock:
            expires_at = self._clock() + ttl if ttl else None
            self._data[key] = (value, expires_at)
            return True

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not _MISSING

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> bool:
        with self._lock:
            self._data.clear()
            return True

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._data) if self._live(key) is not _MISSING)


class ResponseCache:
    """
    Fail-open, read-through cache over an injected key-value store.

    Every store operation is wrapped: an exception from the store is logged
    and treated as a miss or a no-op, so a broken cache only costs
    performance, never a generation.

    Values are copied on the way in and out, so callers never share a
    mutable value with the store.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        enabled: bool = True,
        ttl: int = 3600,
        key_generator: Optional[CacheKeyGenerator] = None,
    ):
        self.store = store
        self.ttl = ttl
        self._enabled = enabled and store is not None
        self._key_generator = key_generator or CacheKeyGenerator()
        self._key_locks: Dict[str, List[Any]] = {}  # key -> [lock, waiters]
        self._locks_guard = threading.Lock()

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def key_generator(self) -> CacheKeyGenerator:
        return self._key_generator

    def _store_failed(self, operation: str, key: Optional[str], error: Exception) -> None:
        logger.warning(
            "Cache store operation failed",
            extra={
                "event": "cache_store_error",
                "operation": operation,
                "key": key,
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )

    def get(self, key: str, default: Any = None) -> Any:
        if not self._enabled:
            return default
        try:
            return copy.deepcopy(self.store.get(key, default))
        except Exception as e:
            self._store_failed("get", key, e)
            return default

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(self.store.set(key, copy.deepcopy(value), ttl if ttl is not None else self.ttl))
        except Exception as e:
            self._store_failed("set", key, e)
            return False

    def has(self, key: str) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(self.store.has(key))
        except Exception as e:
            self._store_failed("has", key, e)
            return False

    def delete(self, key: str) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(self.store.delete(key))
        except Exception as e:
            self._store_failed("delete", key, e)
            return False

    def clear(self) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(self.store.clear())
        except Exception as e:
            self._store_failed("clear", None, e)
            return False

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        """Hold the lock for one key; the lock is dropped once nobody waits on it."""
        with self._locks_guard:
            entry = self._key_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    def remember(self, key: str, compute: Callable[[], T], ttl: Optional[int] = None) -> T:
        """
        Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key
            compute: Called on a miss; a None result is returned but not stored
            ttl: Time to live in seconds (None uses the default)

        Returns:
            Cached or freshly computed value
        """
        if not self._enabled:
            return compute()

        with self._locked(key):
            value = self.get(key)
            if value is not None:
                return value

            value = compute()
            if value is not None:
                self.set(key, value, ttl)
            return value

    def invalidate_content(self, content: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        """Drop the cached analysis of a piece of content."""
        return self.delete(self._key_generator.for_content_analysis(content, metadata))

    def invalidate_all(self) -> bool:
        """Clear the whole store."""
        return self.clear()
