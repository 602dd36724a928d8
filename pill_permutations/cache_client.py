"""Adapters for the external permutation cache.

Two backends satisfy :class:`CacheClientProtocol`:

``HttpCacheClient``
    Talks to the cache web service. ``GET <cache_url>?pills=N`` returns a JSON
    object that may carry ``permutations``; ``POST <cache_url>`` stores
    ``{"pills": N, "permutations": M}``.
``RedisCacheClient``
    Stores one key per pill count in Redis. Writes use ``SET NX`` so the first
    value stored for a key is the one that stays.

Both report lookups as :class:`CacheLookup`, whose presence flag does not
depend on the stored value. A stored count below one is reported as a
malformed entry.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import DEFAULT_REQUEST_TIMEOUT
from .errors import PersistenceError, RetrievalError

__all__ = [
    "CacheLookup",
    "CacheClientProtocol",
    "HttpCacheClient",
    "RedisCacheClient",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """Result of a cache read with an explicit presence indicator."""

    pills: int
    permutations: Optional[int] = None

    @property
    def hit(self) -> bool:
        return self.permutations is not None


class CacheClientProtocol(Protocol):
    """Read/write interface the orchestrator depends on."""

    async def read(self, pills: int) -> CacheLookup:
        """Return the cached count for *pills*, or a miss."""

    async def write(self, pills: int, permutations: int) -> bool:
        """Persist *permutations* for *pills*; return ``True`` on success."""


def _coerce_count(value: Any, pills: int) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise RetrievalError(f"Cache returned a boolean permutation count for {pills}")
    if isinstance(value, int):
        count = value
    elif isinstance(value, (str, bytes)):
        try:
            count = int(value)
        except ValueError as exc:
            raise RetrievalError(
                f"Cache returned a non-integer permutation count for {pills}"
            ) from exc
    else:
        raise RetrievalError(
            f"Cache returned a non-integer permutation count for {pills}"
        )
    # Every prescription of one or more pills has at least one schedule.
    if count < 1:
        raise RetrievalError(f"Cache returned an impossible count {count} for {pills}")
    return count


class HttpCacheClient:
    """Cache backend for the HTTP cache service."""

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient,
        *,
        timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._url = url
        self._client = client
        self._timeout = timeout

    async def read(self, pills: int) -> CacheLookup:
        try:
            response = await self._client.get(
                self._url, params={"pills": pills}, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise RetrievalError(
                f"Error making GET request to cache service: {exc}"
            ) from exc

        if response.status_code != 200:
            raise RetrievalError(
                f"GET request to cache service failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise RetrievalError("Cache service response was not valid JSON") from exc

        if not isinstance(payload, dict):
            raise RetrievalError("Cache service response was not a JSON object")

        lookup = CacheLookup(pills, _coerce_count(payload.get("permutations"), pills))
        logger.debug("cache.read", extra={"pills": pills, "hit": lookup.hit})
        return lookup

    async def write(self, pills: int, permutations: int) -> bool:
        try:
            response = await self._client.post(
                self._url,
                json={"pills": pills, "permutations": permutations},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"Error making POST request to cache service: {exc}"
            ) from exc

        if response.status_code != 200:
            raise PersistenceError(
                f"POST request to cache service failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return True


class RedisCacheClient:
    """Cache backend storing counts directly in Redis."""

    def __init__(self, redis: Redis, *, namespace: str = "pill-permutations") -> None:
        self._redis = redis
        self._namespace = namespace

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
        **kwargs: Any,
    ) -> "RedisCacheClient":
        redis = Redis.from_url(
            url,
            decode_responses=False,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(redis, **kwargs)

    @property
    def redis(self) -> Redis:
        return self._redis

    def key_for(self, pills: int) -> str:
        return f"{self._namespace}:{pills}"

    async def read(self, pills: int) -> CacheLookup:
        try:
            cached = await self._redis.get(self.key_for(pills))
        except RedisError as exc:
            raise RetrievalError(f"Error reading from Redis cache: {exc}") from exc
        return CacheLookup(pills, _coerce_count(cached, pills))

    async def write(self, pills: int, permutations: int) -> bool:
        try:
            created = await self._redis.set(
                self.key_for(pills), str(permutations).encode("utf-8"), nx=True
            )
        except RedisError as exc:
            raise PersistenceError(f"Error writing to Redis cache: {exc}") from exc
        if not created:
            logger.debug("cache.write_skipped", extra={"pills": pills})
        return True

    async def close(self) -> None:
        await self._redis.aclose()
