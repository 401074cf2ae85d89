"""Namespaced cache for resolved category data.

Values are stored as JSON produced by a pydantic ``TypeAdapter``, so entries
written by one process can be read by another sharing the same Redis.
Namespaces are cleared wholesale; there is no per-key invalidation. Each
namespace carries a generation number that is part of every key and is bumped
on invalidation, so a value computed before an invalidation is stored under a
key nobody reads any more.
"""

import logging
import threading
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, Protocol

from pydantic import TypeAdapter
from redis import Redis
from redis.exceptions import RedisError

from .config import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "catalog_paths"


class CacheBackend(Protocol):
    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, value: bytes, ttl: int) -> None:
        ...

    def clear_namespace(self, namespace: str) -> int:
        ...

    def generation(self, namespace: str) -> int:
        ...

    def bump_generation(self, namespace: str) -> int:
        ...


class RedisCacheBackend:
    def __init__(self, client: Redis):
        self.client = client

    def get(self, key: str) -> bytes | None:
        return self.client.get(key)

    def set(self, key: str, value: bytes, ttl: int) -> None:
        self.client.setex(key, ttl, value)

    def clear_namespace(self, namespace: str) -> int:
        keys = list(self.client.scan_iter(f"{KEY_PREFIX}:{namespace}:*"))
        if keys:
            self.client.delete(*keys)
        return len(keys)

    def generation(self, namespace: str) -> int:
        return int(self.client.get(_generation_key(namespace)) or 0)

    def bump_generation(self, namespace: str) -> int:
        return int(self.client.incr(_generation_key(namespace)))


@dataclass
class _Entry:
    value: bytes
    expires_at: float


class InMemoryCacheBackend:
    def __init__(self) -> None:
        self._data: dict[str, _Entry] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expires_at <= time.monotonic():
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: bytes, ttl: int) -> None:
        with self._lock:
            self._data[key] = _Entry(value=value, expires_at=time.monotonic() + ttl)

    def clear_namespace(self, namespace: str) -> int:
        prefix = f"{KEY_PREFIX}:{namespace}:"
        with self._lock:
            stale = [key for key in self._data if key.startswith(prefix)]
            for key in stale:
                del self._data[key]
        return len(stale)

    def generation(self, namespace: str) -> int:
        with self._lock:
            return self._generations.get(namespace, 0)

    def bump_generation(self, namespace: str) -> int:
        with self._lock:
            self._generations[namespace] = self._generations.get(namespace, 0) + 1
            return self._generations[namespace]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class CacheManager:
    def __init__(self) -> None:
        self.backend: CacheBackend | None = None

    def init_backend(self) -> None:
        if self.backend is not None:
            return

        redis_url = get_settings().REDIS_URL
        if redis_url:
            try:
                client = Redis.from_url(redis_url)
                client.ping()
            except (RedisError, OSError) as exc:
                logger.warning("Redis unavailable (%s); caching category paths in memory.", exc)
            else:
                self.backend = RedisCacheBackend(client)
                logger.info("Caching category paths in Redis.")
                return
        self.backend = InMemoryCacheBackend()
        logger.info("Caching category paths in memory.")

    def use_backend(self, backend: CacheBackend) -> None:
        self.backend = backend

    def get_backend(self) -> CacheBackend:
        if self.backend is None:
            self.init_backend()
        return self.backend

    def invalidate_namespace(self, namespace: str) -> None:
        backend = self.get_backend()
        generation = backend.bump_generation(namespace)
        removed = backend.clear_namespace(namespace)
        logger.debug("Cleared %d cached entries from %s, now at generation %d", removed, namespace, generation)


cache_manager = CacheManager()


def _generation_key(namespace: str) -> str:
    return f"{KEY_PREFIX}:generation:{namespace}"


def cache_key(namespace: str, generation: int, identifier: str) -> str:
    return f"{KEY_PREFIX}:{namespace}:{generation}:{identifier}"


def cache(
    ttl: int,
    namespace: str,
    key_builder: Callable[..., str],
    value_type: Any,
):
    """
    Cache the return value of a synchronous function.

    Parameters:
        ttl: seconds an entry stays valid
        namespace: group cleared together by ``invalidate_cache``
        key_builder: receives the call's arguments and returns the key suffix
        value_type: return type, used to dump and load the cached JSON

    Exceptions propagate and are never cached.
    """

    adapter = TypeAdapter(value_type)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args, **kwargs):
            backend = cache_manager.get_backend()
            key = cache_key(namespace, backend.generation(namespace), key_builder(*args, **kwargs))
            cached: Optional[bytes] = backend.get(key)
            if cached is not None:
                return adapter.validate_json(cached)

            result = func(*args, **kwargs)
            backend.set(key, adapter.dump_json(result, by_alias=True), ttl)
            return result

        return wrapper

    return decorator


def invalidate_cache(*namespaces: str) -> None:
    for namespace in namespaces:
        cache_manager.invalidate_namespace(namespace)
