"""
Redis-backed cache for the product listing.

The cache is optional and fail-open: connection problems, timeouts and
serialization errors are logged and reported as an absorbed Outcome,
never raised. When Redis is unavailable every read is a miss and every
write is a no-op, so the service degrades to direct database reads.
A client that failed to connect is re-pinged on use, at most once per
`redis_reconnect_interval` seconds.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import redis.asyncio as redis_async

from core.config import Settings
from core.errors import CacheFailure
from core.logging import get_logger
from core.results import Outcome


logger = get_logger(__name__)

LISTING_KEY = "products:all"


@dataclass
class CacheResult:
    """Result of a cache lookup."""
    outcome: Outcome
    value: Any = None
    error: Optional[CacheFailure] = None

    @property
    def hit(self) -> bool:
        return self.outcome.applied and self.value is not None


class ListingCache:
    """
    Fail-open key/value cache with TTL.

    Usage:
        cache = ListingCache(settings)
        await cache.connect()

        await cache.set(LISTING_KEY, payload, ttl=60)
        result = await cache.get(LISTING_KEY)
        if result.hit:
            ...
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
    ):
        """
        Initialize the cache.

        Args:
            settings: Application settings (Redis connection and default TTL)
            client: Optional pre-built async Redis client. When given,
                connect() only verifies it with a PING.
        """
        self._settings = settings
        self._client = client
        self._connected = False
        self._last_attempt: Optional[float] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def default_ttl(self) -> int:
        return self._settings.cache_ttl_seconds

    async def connect(self) -> Outcome:
        """
        Connect to Redis. Best-effort: never raises.

        Returns SKIPPED_UNCONFIGURED when no Redis host is configured,
        FAILED_ABSORBED when the server is unreachable.
        """
        if self._client is None:
            url = self._settings.redis_url
            if url is None:
                logger.info("Redis not configured, listing cache disabled")
                return Outcome.SKIPPED_UNCONFIGURED
            self._client = redis_async.from_url(
                url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self._settings.redis_socket_timeout,
                socket_connect_timeout=self._settings.redis_socket_timeout,
            )

        self._last_attempt = time.monotonic()
        try:
            await self._client.ping()
        except Exception as e:
            self._connected = False
            logger.warning(
                "Failed to connect to Redis, continuing without cache",
                error=str(e),
            )
            return Outcome.FAILED_ABSORBED

        self._connected = True
        logger.info(
            "Connected to Redis",
            host=self._settings.redis_host,
            port=self._settings.redis_port,
        )
        return Outcome.APPLIED

    async def _ensure_connected(self) -> bool:
        """Re-ping a client that failed to connect, at most once per reconnect interval."""
        if self._connected:
            return True
        if self._client is None:
            return False

        if self._last_attempt is not None:
            elapsed = time.monotonic() - self._last_attempt
            if elapsed < self._settings.redis_reconnect_interval:
                return False

        return await self.connect() == Outcome.APPLIED

    async def get(self, key: str) -> CacheResult:
        """Look up a key. Misses, outages and corrupt payloads all return no value."""
        if not await self._ensure_connected():
            return CacheResult(Outcome.SKIPPED_UNCONFIGURED)

        try:
            raw = await self._client.get(key)
            value = json.loads(raw) if raw is not None else None
        except Exception as e:
            return CacheResult(
                Outcome.FAILED_ABSORBED,
                error=self._absorb("GET", key, e),
            )

        return CacheResult(Outcome.APPLIED, value=value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> Outcome:
        """Store a JSON-serializable value with a TTL in seconds."""
        if not await self._ensure_connected():
            return Outcome.SKIPPED_UNCONFIGURED

        try:
            payload = json.dumps(value)
            await self._client.setex(key, ttl if ttl is not None else self.default_ttl, payload)
        except Exception as e:
            self._absorb("SET", key, e)
            return Outcome.FAILED_ABSORBED

        return Outcome.APPLIED

    async def delete(self, key: str) -> Outcome:
        if not await self._ensure_connected():
            return Outcome.SKIPPED_UNCONFIGURED

        try:
            await self._client.delete(key)
        except Exception as e:
            self._absorb("DEL", key, e)
            return Outcome.FAILED_ABSORBED

        return Outcome.APPLIED

    async def clear(self, pattern: str = "*") -> Outcome:
        """Delete every key matching a glob-style pattern."""
        if not await self._ensure_connected():
            return Outcome.SKIPPED_UNCONFIGURED

        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if keys:
                await self._client.delete(*keys)
        except Exception as e:
            self._absorb("CLEAR", pattern, e)
            return Outcome.FAILED_ABSORBED

        logger.debug("Cache cleared", pattern=pattern, keys=len(keys))
        return Outcome.APPLIED

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning("Error closing Redis connection", error=str(e))
            finally:
                self._client = None
        self._connected = False
        logger.info("Redis connection closed")

    def _absorb(self, operation: str, key: str, error: Exception) -> CacheFailure:
        logger.warning(
            "Redis operation failed",
            operation=operation,
            key=key,
            error_type=type(error).__name__,
            error=str(error),
        )
        failure = CacheFailure(f"Redis {operation} failed for {key}: {error}")
        failure.__cause__ = error
        return failure
