"""Read-through cache over a key-value store.

CacheRepository implements the cache-aside pattern: ``fetch`` reads a key,
and on a miss calls a loader for the authoritative value, stores its JSON
form with a time-to-live and returns the round-tripped value. ``delete``
removes keys after writes. The repository knows nothing about tigers; it is
parameterized by key, TTL, loader and the encode/decode pair that maps
values to JSON-compatible data.

Two clients satisfy CacheClientProtocol: ``redis.Redis`` in production and
InMemoryCacheClient for tests and local development.

Example:
    Cache a list for one minute:
        >>> import datetime
        >>> from tigerhall.db.cache import CacheRepository, InMemoryCacheClient
        >>> cache = CacheRepository(InMemoryCacheClient())
        >>> cache.fetch(
        ...     ctx,
        ...     "numbers",
        ...     datetime.timedelta(minutes=1),
        ...     loader=lambda: [1, 2, 3],
        ...     encode=list,
        ...     decode=list,
        ... )
        [1, 2, 3]
"""

from __future__ import annotations

import datetime
import json
import threading
import time
from typing import TYPE_CHECKING, Any, Protocol

import redis
import redis.exceptions

from tigerhall.core import errors

if TYPE_CHECKING:
    from collections.abc import Callable

    from tigerhall.core import config
    from tigerhall.core import context


class CacheClientProtocol(Protocol):
    """The subset of the Redis command set the cache relies on."""

    def get(self, name: str) -> bytes | str | None: ...

    def set(
        self,
        name: str,
        value: bytes | str,
        ex: datetime.timedelta | int | None = None,
    ) -> Any: ...

    def delete(self, *names: str) -> int: ...


class InMemoryCacheClient(CacheClientProtocol):
    """Thread-safe dictionary cache with per-key expiry.

    Mirrors the Redis semantics used by CacheRepository: ``get`` returns
    None for missing or expired keys and ``delete`` returns the number of
    keys removed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, tuple[bytes, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> bytes | None:
        with self._lock:
            entry = self._store.get(name)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._store[name]
                return None
            return value

    def set(
        self,
        name: str,
        value: bytes | str,
        ex: datetime.timedelta | int | None = None,
    ) -> bool:
        if isinstance(ex, datetime.timedelta):
            ex = ex.total_seconds()
        expires_at = self._clock() + ex if ex is not None else None
        if isinstance(value, str):
            value = value.encode("utf-8")
        with self._lock:
            self._store[name] = (value, expires_at)
        return True

    def delete(self, *names: str) -> int:
        with self._lock:
            return sum(
                1 for name in names if self._store.pop(name, None) is not None
            )


class CacheRepository:
    """Cache-aside access to a key-value store.

    Holds its own client handle; construct it once and pass it to the
    services that need it.
    """

    def __init__(self, client: CacheClientProtocol) -> None:
        """Initialize with a cache client.

        Args:
            client: ``redis.Redis`` or any CacheClientProtocol
                implementation.
        """
        self._client = client

    def fetch[T](  # type: ignore[misc]
        self,
        ctx: context.RequestContext,
        key: str,
        ttl: datetime.timedelta,
        loader: Callable[[], T],
        *,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> T:
        """Return the cached value for ``key``, loading it on a miss.

        Args:
            ctx: Request context.
            key: Cache key.
            ttl: Expiry applied when the value is written back.
            loader: Produces the authoritative value on a miss.
            encode: Maps the loaded value to JSON-compatible data.
            decode: Maps JSON-compatible data back to the value.

        Returns:
            The decoded cached value, or the loaded value after a JSON
            round trip.

        Raises:
            StorageError: If reading or writing the cache fails. The loader
                is not called when the read itself fails.
            SerializationError: If the value cannot be encoded or a cached
                entry cannot be decoded.
            Exception: Whatever ``loader`` raises; nothing is cached then.
        """
        ctx.check()
        try:
            cached = self._client.get(key)
        except redis.exceptions.RedisError as exc:
            raise errors.StorageError(f"cache get {key!r} failed: {exc}") from exc

        if cached is not None:
            return self._decode(key, cached, decode)

        ctx.logger.debug("cache miss for %s", key)
        value = loader()

        try:
            payload = json.dumps(encode(value))
        except (TypeError, ValueError) as exc:
            raise errors.SerializationError(
                f"cannot encode value for {key!r}: {exc}"
            ) from exc

        ctx.check()
        try:
            self._client.set(key, payload, ex=ttl)
        except redis.exceptions.RedisError as exc:
            raise errors.StorageError(f"cache set {key!r} failed: {exc}") from exc

        return self._decode(key, payload, decode)

    def delete(self, ctx: context.RequestContext, *keys: str) -> None:
        """Remove keys from the cache; absent keys are ignored.

        Raises:
            StorageError: If the delete command fails.
        """
        if not keys:
            return
        ctx.check()
        try:
            self._client.delete(*keys)
        except redis.exceptions.RedisError as exc:
            raise errors.StorageError(f"cache delete failed: {exc}") from exc

    @staticmethod
    def _decode[T](  # type: ignore[misc]
        key: str,
        raw: bytes | str,
        decode: Callable[[Any], T],
    ) -> T:
        try:
            return decode(json.loads(raw))
        except (TypeError, ValueError, KeyError) as exc:
            raise errors.SerializationError(
                f"cannot decode cached value for {key!r}: {exc}"
            ) from exc


def get_redis_client(settings: config.Settings) -> redis.Redis:
    """Create the production Redis client.

    Args:
        settings: Application settings with the Redis URL and timeout.

    Returns:
        ``redis.Redis`` client; connections are opened lazily.
    """
    return redis.Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


def get_cache_repository(settings: config.Settings) -> CacheRepository:
    """Factory function to create the cache repository.

    Args:
        settings: Application settings for the Redis connection.

    Returns:
        CacheRepository backed by Redis.
    """
    return CacheRepository(get_redis_client(settings))
