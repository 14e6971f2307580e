# fixflow/services/redis_service.py
"""
Redis Service for fixflow.

Async wrapper around redis.asyncio backing the Redis session store, metric
sink and issue tracker:
- JSON serialization on the way in and out
- TTL support
- List helpers for append-only records
- WATCH/MULTI compare-and-set for read-modify-write updates
- Health checks
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from fixflow.core.config import settings
from fixflow.core.exceptions import FixFlowError, RedisServiceError
from fixflow.core.service_base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class RedisConfig:
    """Configuration for Redis Service"""
    url: Optional[str] = None
    decode_responses: bool = True
    socket_timeout: float = 5.0
    max_connections: int = 10
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    max_update_retries: int = 5


def _loads(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


class RedisService(BaseService):
    """
    Async Redis service.

    Without a URL (or when the first ping fails) the service stays usable
    but disabled: reads return defaults and writes report failure.
    """

    def __init__(self, config: Optional[RedisConfig] = None):
        """
        Initialize Redis Service.

        Args:
            config: Redis configuration. If not provided, uses settings.REDIS_URL.
        """
        if config is None:
            config = RedisConfig(url=settings.REDIS_URL)

        super().__init__(config, logger)

    def _validate_config(self) -> None:
        """Validate Redis configuration"""
        super()._validate_config()

        if not self.config.url:
            self.logger.warning("No REDIS_URL configured. Redis functionality will be disabled.")

    async def _initialize_client(self) -> Optional[redis.Redis]:
        """Initialize the Redis client"""
        if not self.config.url:
            return None

        try:
            client = redis.from_url(
                self.config.url,
                decode_responses=self.config.decode_responses,
                socket_timeout=self.config.socket_timeout,
                max_connections=self.config.max_connections,
                retry_on_timeout=self.config.retry_on_timeout,
                health_check_interval=self.config.health_check_interval
            )

            await client.ping()
            self.logger.info("Redis connection successful")
            return client

        except Exception as e:
            # Redis is optional; stay up without it
            self.logger.error(f"Failed to connect to Redis: {e}")
            self.logger.warning("Redis functionality disabled due to connection error")
            return None

    async def get(self, key: str, default: Any = None, deserialize_json: bool = True) -> Any:
        """
        Get a value from Redis.

        Args:
            key: The key to retrieve
            default: Default value if key doesn't exist
            deserialize_json: Whether to deserialize JSON strings

        Returns:
            The stored value or default
        """
        if not self._client:
            return default

        try:
            value = await self._client.get(key)
            if value is None:
                return default
            return _loads(value) if deserialize_json else value

        except Exception as e:
            self.logger.warning(f"Redis get failed for key '{key}': {e}")
            return default

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, serialize_json: bool = True) -> bool:
        """
        Set a value in Redis.

        Args:
            key: The key to set
            value: The value to store
            ttl: Time to live in seconds
            serialize_json: Whether to serialize non-string values as JSON

        Returns:
            True if successful, False otherwise
        """
        if not self._client:
            return False

        try:
            if serialize_json and not isinstance(value, (str, bytes)):
                value = json.dumps(value)

            if ttl:
                await self._client.setex(key, ttl, value)
            else:
                await self._client.set(key, value)
            return True

        except Exception as e:
            self.logger.error(f"Redis set failed for key '{key}': {e}")
            return False

    async def delete(self, *keys: str) -> int:
        """Delete keys; returns how many were removed."""
        if not self._client or not keys:
            return 0

        try:
            return await self._client.delete(*keys)
        except Exception as e:
            self.logger.error(f"Redis delete failed: {e}")
            return 0

    async def keys(self, pattern: str = "*") -> List[str]:
        """Keys matching pattern"""
        if not self._client:
            return []

        try:
            keys = await self._client.keys(pattern)
            return [k.decode() if isinstance(k, bytes) else k for k in keys]
        except Exception as e:
            self.logger.warning(f"Redis keys failed: {e}")
            return []

    async def mget(self, keys: List[str]) -> List[Any]:
        """
        Get multiple values at once.

        Returns:
            List of values (None for missing keys)
        """
        if not self._client or not keys:
            return [None] * len(keys)

        try:
            values = await self._client.mget(keys)
            return [_loads(v) for v in values]
        except Exception as e:
            self.logger.warning(f"Redis mget failed: {e}")
            return [None] * len(keys)

    async def rpush(self, key: str, *values: Any) -> int:
        """
        Append JSON-serialized values to a list.

        Raises:
            RedisServiceError: If Redis is unavailable or the write fails
        """
        if not self._client:
            raise RedisServiceError("Redis is not connected", key=key, operation="rpush")

        try:
            return await self._client.rpush(key, *[json.dumps(v) for v in values])
        except Exception as e:
            raise RedisServiceError(f"Redis rpush failed: {e}", key=key, operation="rpush") from e

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        """Read a slice of a list, deserializing JSON items."""
        if not self._client:
            return []

        try:
            values = await self._client.lrange(key, start, end)
            return [_loads(v) for v in values]
        except Exception as e:
            self.logger.warning(f"Redis lrange failed for key '{key}': {e}")
            return []

    async def update_json(
        self,
        key: str,
        mutate: Callable[[Optional[Any]], Any],
        ttl: Optional[int] = None
    ) -> Any:
        """
        Atomically read, transform and write a JSON value.

        mutate receives the current value (None when missing) and returns the
        new one. The write only commits if nobody touched the key in between;
        otherwise the read is retried. Exceptions raised by mutate propagate
        unchanged.

        Raises:
            RedisServiceError: Redis unavailable, or contention never settled
        """
        if not self._client:
            raise RedisServiceError("Redis is not connected", key=key, operation="update_json")

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                for attempt in range(self.config.max_update_retries):
                    try:
                        await pipe.watch(key)
                        new_value = mutate(_loads(await pipe.get(key)))

                        pipe.multi()
                        if ttl:
                            pipe.setex(key, ttl, json.dumps(new_value))
                        else:
                            pipe.set(key, json.dumps(new_value))
                        await pipe.execute()
                        return new_value

                    except WatchError:
                        self.logger.debug(f"Write contention on '{key}', retry {attempt + 1}")
                    finally:
                        await pipe.reset()

        except FixFlowError:
            raise
        except Exception as e:
            raise RedisServiceError(f"Redis update failed: {e}", key=key, operation="update_json") from e

        raise RedisServiceError("Too much write contention", key=key, operation="update_json")

    async def health_check(self) -> dict:
        """
        Check Redis service health.

        Returns:
            Health status including connection info
        """
        if not self.config.url:
            return {
                "healthy": True,
                "status": "disabled",
                "details": {"message": "Redis not configured"}
            }

        try:
            if not self._client:
                return {
                    "healthy": False,
                    "status": "not_connected",
                    "details": {"error": "Client not initialized"}
                }

            await self._client.ping()
            info = await self._client.info()

            return {
                "healthy": True,
                "status": "connected",
                "details": {
                    "redis_version": info.get("redis_version", "unknown"),
                    "connected_clients": info.get("connected_clients", 0),
                    "used_memory_human": info.get("used_memory_human", "unknown")
                }
            }

        except Exception as e:
            return {
                "healthy": False,
                "status": "error",
                "details": {"error": str(e)}
            }

    async def _cleanup(self) -> None:
        """Close the connection pool"""
        if self._client:
            try:
                await self._client.close()
            except Exception as e:
                self.logger.warning(f"Error closing Redis client: {e}")

    def is_connected(self) -> bool:
        """Check if Redis is connected and available"""
        return self._client is not None
