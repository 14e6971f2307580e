# tests/services/test_redis_service.py
"""
Unit tests for the Redis service.

Uses a mocked redis.asyncio client; no Redis server is needed.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from redis.exceptions import WatchError

from fixflow.core.exceptions import RedisServiceError, SessionConflictError
from fixflow.services.redis_service import RedisConfig, RedisService


@pytest.fixture
def mock_config():
    """Create a test configuration"""
    return RedisConfig(
        url="redis://localhost:6379/0",
        decode_responses=True,
        socket_timeout=5.0,
        max_update_retries=3
    )


@pytest.fixture
def mock_redis_client():
    """Create a mock Redis client"""
    client = AsyncMock()

    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.setex = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.keys = AsyncMock(return_value=[])
    client.mget = AsyncMock(return_value=[None, None])
    client.rpush = AsyncMock(return_value=1)
    client.lrange = AsyncMock(return_value=[])
    client.info = AsyncMock(return_value={
        "redis_version": "7.2.0",
        "connected_clients": 3,
        "used_memory_human": "1.1M"
    })
    client.close = AsyncMock()

    return client


@pytest.fixture
async def redis_service(mock_config, mock_redis_client):
    """Create a Redis service with mocked client"""
    service = RedisService(mock_config)

    with patch('fixflow.services.redis_service.redis.from_url', return_value=mock_redis_client):
        await service.initialize()

    return service


def attach_pipeline(client, stored=None, execute_effects=None):
    """Give the client a WATCH/MULTI pipeline mock and return it"""
    pipe = Mock()
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(return_value=stored)
    pipe.multi = Mock()
    pipe.set = Mock()
    pipe.setex = Mock()
    pipe.execute = AsyncMock(side_effect=execute_effects or [[True]])
    pipe.reset = AsyncMock()

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=pipe)
    context.__aexit__ = AsyncMock(return_value=False)
    client.pipeline = Mock(return_value=context)
    return pipe


class TestRedisService:
    """Connection handling and basic operations"""

    async def test_initialization(self, mock_config, mock_redis_client):
        service = RedisService(mock_config)

        assert service.config == mock_config
        assert not service.is_initialized

        with patch('fixflow.services.redis_service.redis.from_url', return_value=mock_redis_client):
            await service.initialize()

        assert service.is_initialized
        assert service.is_connected()
        mock_redis_client.ping.assert_called_once()

    async def test_no_redis_url(self):
        service = RedisService(RedisConfig(url=None))

        await service.initialize()

        assert service.is_initialized
        assert not service.is_connected()
        assert await service.get("key", default="fallback") == "fallback"
        assert await service.set("key", "value") is False

        health = await service.health_check()
        assert health["healthy"] is True
        assert health["status"] == "disabled"

    async def test_connection_failure(self, mock_config):
        service = RedisService(mock_config)
        failing_client = AsyncMock()
        failing_client.ping.side_effect = Exception("Connection refused")

        with patch('fixflow.services.redis_service.redis.from_url', return_value=failing_client):
            await service.initialize()

        assert service.is_initialized
        assert not service.is_connected()

    async def test_get_deserializes_json(self, redis_service, mock_redis_client):
        mock_redis_client.get.return_value = '{"status": "active"}'

        assert await redis_service.get("fixflow:session:1") == {"status": "active"}
        assert await redis_service.get("fixflow:session:1", deserialize_json=False) == '{"status": "active"}'

    async def test_get_plain_string(self, redis_service, mock_redis_client):
        mock_redis_client.get.return_value = "not json"

        assert await redis_service.get("key") == "not json"

    async def test_get_error_returns_default(self, redis_service, mock_redis_client):
        mock_redis_client.get.side_effect = Exception("timeout")

        assert await redis_service.get("key", default={}) == {}

    async def test_set_serializes_json(self, redis_service, mock_redis_client):
        assert await redis_service.set("key", {"a": 1})

        mock_redis_client.set.assert_awaited_once_with("key", json.dumps({"a": 1}))

    async def test_set_with_ttl(self, redis_service, mock_redis_client):
        assert await redis_service.set("key", "value", ttl=300)

        mock_redis_client.setex.assert_awaited_once_with("key", 300, "value")

    async def test_set_failure(self, redis_service, mock_redis_client):
        mock_redis_client.set.side_effect = Exception("READONLY")

        assert await redis_service.set("key", "value") is False

    async def test_keys_and_mget(self, redis_service, mock_redis_client):
        mock_redis_client.keys.return_value = [b"fixflow:session:1", "fixflow:session:2"]
        mock_redis_client.mget.return_value = ['{"id": "1"}', None]

        keys = await redis_service.keys("fixflow:session:*")

        assert keys == ["fixflow:session:1", "fixflow:session:2"]
        assert await redis_service.mget(keys) == [{"id": "1"}, None]

    async def test_delete(self, redis_service, mock_redis_client):
        assert await redis_service.delete("a", "b") == 1
        assert await redis_service.delete() == 0

    async def test_health_check(self, redis_service):
        health = await redis_service.health_check()

        assert health["healthy"] is True
        assert health["status"] == "connected"
        assert health["details"]["redis_version"] == "7.2.0"

    async def test_shutdown_closes_client(self, redis_service, mock_redis_client):
        await redis_service.shutdown()

        mock_redis_client.close.assert_awaited_once()
        assert not redis_service.is_connected()
        assert not redis_service.is_initialized


class TestRedisLists:
    """Append-only list helpers"""

    async def test_rpush_serializes_each_value(self, redis_service, mock_redis_client):
        await redis_service.rpush("metrics", {"a": 1}, {"b": 2})

        mock_redis_client.rpush.assert_awaited_once_with("metrics", '{"a": 1}', '{"b": 2}')

    async def test_rpush_failure_raises(self, redis_service, mock_redis_client):
        mock_redis_client.rpush.side_effect = Exception("OOM")

        with pytest.raises(RedisServiceError):
            await redis_service.rpush("metrics", {"a": 1})

    async def test_rpush_without_connection_raises(self):
        service = RedisService(RedisConfig(url=None))
        await service.initialize()

        with pytest.raises(RedisServiceError):
            await service.rpush("metrics", {"a": 1})

    async def test_lrange_deserializes(self, redis_service, mock_redis_client):
        mock_redis_client.lrange.return_value = ['{"a": 1}', '{"b": 2}']

        assert await redis_service.lrange("metrics") == [{"a": 1}, {"b": 2}]
        mock_redis_client.lrange.assert_awaited_once_with("metrics", 0, -1)


class TestUpdateJson:
    """WATCH/MULTI read-modify-write"""

    async def test_update_writes_mutated_value(self, redis_service, mock_redis_client):
        pipe = attach_pipeline(mock_redis_client, stored='{"count": 1}')

        result = await redis_service.update_json("counter", lambda current: {"count": current["count"] + 1})

        assert result == {"count": 2}
        pipe.watch.assert_awaited_once_with("counter")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("counter", json.dumps({"count": 2}))
        pipe.reset.assert_awaited()

    async def test_update_missing_key_passes_none(self, redis_service, mock_redis_client):
        pipe = attach_pipeline(mock_redis_client, stored=None)
        seen = []

        def mutate(current):
            seen.append(current)
            return {"created": True}

        await redis_service.update_json("new", mutate, ttl=60)

        assert seen == [None]
        pipe.setex.assert_called_once_with("new", 60, json.dumps({"created": True}))

    async def test_update_retries_on_watch_error(self, redis_service, mock_redis_client):
        pipe = attach_pipeline(mock_redis_client, stored='{"v": 1}', execute_effects=[WatchError(), [True]])
        calls = []

        def mutate(current):
            calls.append(current)
            return current

        await redis_service.update_json("key", mutate)

        assert len(calls) == 2
        assert pipe.watch.await_count == 2
        assert pipe.reset.await_count == 2

    async def test_update_gives_up_after_retries(self, redis_service, mock_redis_client):
        attach_pipeline(mock_redis_client, stored='{}', execute_effects=[WatchError()] * 3)

        with pytest.raises(RedisServiceError, match="contention"):
            await redis_service.update_json("key", lambda current: current)

    async def test_mutate_errors_propagate(self, redis_service, mock_redis_client):
        pipe = attach_pipeline(mock_redis_client, stored='{}')

        def mutate(current):
            raise SessionConflictError("stale", session_id="s1", expected_version=1, actual_version=2)

        with pytest.raises(SessionConflictError):
            await redis_service.update_json("key", mutate)

        pipe.execute.assert_not_awaited()

    async def test_client_errors_are_wrapped(self, redis_service, mock_redis_client):
        pipe = attach_pipeline(mock_redis_client, stored='{}')
        pipe.watch.side_effect = ConnectionError("reset by peer")

        with pytest.raises(RedisServiceError, match="update failed"):
            await redis_service.update_json("key", lambda current: current)

    async def test_update_without_connection_raises(self):
        service = RedisService(RedisConfig(url=None))
        await service.initialize()

        with pytest.raises(RedisServiceError):
            await service.update_json("key", lambda current: current)
