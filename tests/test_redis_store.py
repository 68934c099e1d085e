from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from toolchat.services.redis import RedisStore, get_redis_store


@pytest.fixture
def mock_redis() -> MagicMock:
    """Mock Redis client with async methods."""
    m = MagicMock()
    m.get = AsyncMock(return_value=None)
    m.set = AsyncMock(return_value=True)
    m.ping = AsyncMock(return_value=True)
    m.aclose = AsyncMock(return_value=None)
    return m


@pytest.fixture
def store(mock_redis: MagicMock) -> RedisStore:
    s = RedisStore("redis://localhost:6379/0")
    s._client = mock_redis
    return s


@pytest.mark.asyncio
async def test_get_json_missing(store: RedisStore, mock_redis: MagicMock) -> None:
    assert await store.get_json("settings") is None
    mock_redis.get.assert_called_once_with("toolchat:settings")


@pytest.mark.asyncio
async def test_get_json_present(store: RedisStore, mock_redis: MagicMock) -> None:
    mock_redis.get.return_value = '{"crypto": false}'
    assert await store.get_json("settings") == {"crypto": False}


@pytest.mark.asyncio
async def test_get_json_invalid(store: RedisStore, mock_redis: MagicMock) -> None:
    mock_redis.get.return_value = "not json"
    assert await store.get_json("settings") is None


@pytest.mark.asyncio
async def test_get_json_connection_error(store: RedisStore, mock_redis: MagicMock) -> None:
    mock_redis.get.side_effect = RedisConnectionError("down")
    assert await store.get_json("settings") is None


@pytest.mark.asyncio
async def test_set_json(store: RedisStore, mock_redis: MagicMock) -> None:
    assert await store.set_json("settings", {"pdf": True}) is True
    mock_redis.set.assert_called_once_with("toolchat:settings", '{"pdf": true}')


@pytest.mark.asyncio
async def test_not_connected() -> None:
    s = RedisStore("redis://localhost:6379/0")
    assert s.connected is False
    assert await s.get_json("x") is None
    assert await s.set_json("x", 1) is False


@pytest.mark.asyncio
async def test_connect_and_close(mock_redis: MagicMock) -> None:
    with patch("toolchat.services.redis.Redis") as redis_cls:
        redis_cls.from_url.return_value = mock_redis
        s = RedisStore("redis://localhost:6379/0")
        await s.connect()
        assert s.connected is True
        await s.close()
        assert s.connected is False
        mock_redis.aclose.assert_awaited_once()


def test_get_redis_store_requires_url() -> None:
    with patch("toolchat.services.redis.get_settings") as get_settings:
        get_settings.return_value = MagicMock(redis_url=None)
        assert get_redis_store() is None
        get_settings.return_value = MagicMock(redis_url="  ")
        assert get_redis_store() is None
        get_settings.return_value = MagicMock(redis_url="redis://localhost:6379/0")
        assert isinstance(get_redis_store(), RedisStore)
