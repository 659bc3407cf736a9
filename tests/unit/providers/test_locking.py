import asyncio
import pytest
from unittest.mock import AsyncMock, patch
import redis.asyncio as redis

from common.core.constants import LockProvider
from common.core.exceptions import ConcurrentModificationError
from common.providers.locking import factory
from common.providers.locking.memory_lock import MemoryLock
from common.providers.locking.redis_lock import RedisLock


class TestRedisLock:
    """Unit tests for Redis distributed lock."""

    @pytest.fixture
    def redis_lock(self):
        with patch("common.providers.locking.redis_lock.settings") as mock_settings:
            mock_settings.redis_host = "localhost"
            mock_settings.redis_port = 6379
            mock_settings.redis_password = None
            mock_settings.redis_db = 0
            return RedisLock()

    @pytest.fixture
    def mock_redis_client(self, redis_lock):
        client = AsyncMock(spec=redis.Redis)
        redis_lock._client = client
        return client

    async def test_acquire_lock_success(self, redis_lock, mock_redis_client):
        """Test successful lock acquisition."""
        mock_redis_client.set = AsyncMock(return_value=True)

        token = await redis_lock.acquire_lock("billing:entity:ent_1", 30)

        assert token is not None
        assert len(token) == 36  # UUID length
        mock_redis_client.set.assert_called_once_with(
            "lock:billing:entity:ent_1", token, nx=True, px=30_000
        )

    async def test_acquire_lock_already_locked(self, redis_lock, mock_redis_client):
        mock_redis_client.set = AsyncMock(return_value=False)

        token = await redis_lock.acquire_lock("billing:entity:ent_1", 30)

        assert token is None

    async def test_release_lock_success(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=1)

        result = await redis_lock.release_lock("billing:entity:ent_1", "test_token")

        assert result is True
        mock_redis_client.eval.assert_called_once()

    async def test_release_lock_token_mismatch(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=0)

        result = await redis_lock.release_lock("billing:entity:ent_1", "wrong_token")

        assert result is False

    async def test_release_lock_redis_error(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(side_effect=redis.RedisError("gone"))

        result = await redis_lock.release_lock("billing:entity:ent_1", "test_token")

        assert result is False

    async def test_disconnect_closes_client(self, redis_lock, mock_redis_client):
        await redis_lock.disconnect()

        mock_redis_client.aclose.assert_awaited_once()
        assert redis_lock._client is None

    async def test_extend_lock_success(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=1)

        result = await redis_lock.extend_lock("billing:entity:ent_1", "test_token", 1.5)

        assert result is True
        args = mock_redis_client.eval.call_args.args
        assert args[1:] == (1, "lock:billing:entity:ent_1", "test_token", 1500)

    async def test_extend_lock_token_mismatch(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(return_value=0)

        assert await redis_lock.extend_lock("billing:entity:ent_1", "other", 30) is False

    async def test_extend_lock_redis_error(self, redis_lock, mock_redis_client):
        mock_redis_client.eval = AsyncMock(side_effect=redis.RedisError("gone"))

        assert await redis_lock.extend_lock("billing:entity:ent_1", "tok", 30) is False

    async def test_is_locked(self, redis_lock, mock_redis_client):
        mock_redis_client.exists = AsyncMock(return_value=1)

        assert await redis_lock.is_locked("billing:entity:ent_1") is True
        mock_redis_client.exists.assert_called_once_with("lock:billing:entity:ent_1")

    async def test_acquire_with_retry_success_after_retries(
        self, redis_lock, mock_redis_client
    ):
        """Test successful acquisition after initial failures."""
        # Fail twice, then succeed
        mock_redis_client.set = AsyncMock(side_effect=[False, False, True])

        token = await redis_lock.acquire_lock_with_retry(
            "billing:entity:ent_1",
            lock_ttl_seconds=30,
            acquire_timeout_seconds=5.0,
            retry_interval_ms=10,  # Short interval for fast test
        )

        assert token is not None
        assert mock_redis_client.set.call_count == 3

    async def test_acquire_with_retry_timeout(self, redis_lock, mock_redis_client):
        mock_redis_client.set = AsyncMock(return_value=False)  # Always fail

        token = await redis_lock.acquire_lock_with_retry(
            "billing:entity:ent_1",
            lock_ttl_seconds=30,
            acquire_timeout_seconds=0.1,
            retry_interval_ms=20,
        )

        assert token is None
        assert mock_redis_client.set.call_count >= 2


class TestMemoryLock:
    """Unit tests for the in-process lock."""

    async def test_second_acquire_fails_until_released(self):
        lock = MemoryLock()

        token = await lock.acquire_lock("billing:entity:ent_1", 30)
        assert token is not None
        assert await lock.acquire_lock("billing:entity:ent_1", 30) is None
        assert await lock.is_locked("billing:entity:ent_1") is True

        assert await lock.release_lock("billing:entity:ent_1", token) is True
        assert await lock.is_locked("billing:entity:ent_1") is False

    async def test_release_with_wrong_token(self):
        lock = MemoryLock()
        await lock.acquire_lock("billing:entity:ent_1", 30)

        assert await lock.release_lock("billing:entity:ent_1", "not-mine") is False
        assert await lock.is_locked("billing:entity:ent_1") is True

    async def test_expired_lock_can_be_taken(self):
        lock = MemoryLock()
        await lock.acquire_lock("billing:entity:ent_1", 0)

        assert await lock.acquire_lock("billing:entity:ent_1", 30) is not None

    async def test_keys_are_independent(self):
        lock = MemoryLock()
        await lock.acquire_lock("billing:entity:ent_1", 30)

        assert await lock.acquire_lock("billing:entity:ent_2", 30) is not None

    async def test_hold_releases_on_exit(self):
        lock = MemoryLock()

        with pytest.raises(ValueError):
            async with lock.hold("billing:entity:ent_1"):
                assert await lock.is_locked("billing:entity:ent_1") is True
                raise ValueError("boom")

        assert await lock.is_locked("billing:entity:ent_1") is False

    async def test_extend_lock_pushes_expiry(self):
        lock = MemoryLock()
        token = await lock.acquire_lock("billing:entity:ent_1", 0.1)

        assert await lock.extend_lock("billing:entity:ent_1", token, 30) is True
        await asyncio.sleep(0.15)

        assert await lock.is_locked("billing:entity:ent_1") is True

    async def test_extend_lock_with_wrong_token(self):
        lock = MemoryLock()
        await lock.acquire_lock("billing:entity:ent_1", 30)

        assert await lock.extend_lock("billing:entity:ent_1", "not-mine", 30) is False

    async def test_extend_expired_lock_fails(self):
        lock = MemoryLock()
        token = await lock.acquire_lock("billing:entity:ent_1", 0)

        assert await lock.extend_lock("billing:entity:ent_1", token, 30) is False

    async def test_hold_keeps_lock_past_ttl(self):
        lock = MemoryLock()

        async with lock.hold("billing:entity:ent_1", lock_ttl_seconds=0.15):
            await asyncio.sleep(0.5)
            # Well past the TTL, the lock is still held
            assert await lock.acquire_lock("billing:entity:ent_1", 30) is None

        assert await lock.is_locked("billing:entity:ent_1") is False
        assert await lock.acquire_lock("billing:entity:ent_1", 30) is not None

    async def test_hold_heartbeat_stops_after_exit(self):
        lock = MemoryLock()
        lock.extend_lock = AsyncMock(wraps=lock.extend_lock)

        async with lock.hold("billing:entity:ent_1", lock_ttl_seconds=0.15):
            await asyncio.sleep(0.2)
        calls = lock.extend_lock.await_count
        await asyncio.sleep(0.2)

        assert calls >= 1
        assert lock.extend_lock.await_count == calls

    async def test_hold_raises_when_contended(self):
        lock = MemoryLock()
        await lock.acquire_lock("billing:entity:ent_1", 30)

        with pytest.raises(ConcurrentModificationError):
            async with lock.hold(
                "billing:entity:ent_1", acquire_timeout_seconds=0.05
            ):
                pass


class TestLockFactory:
    """Test the lock provider factory."""

    @pytest.fixture(autouse=True)
    def reset_singleton(self, monkeypatch):
        monkeypatch.setattr(factory, "_lock_provider", None)

    def test_memory_provider_by_default(self, monkeypatch):
        monkeypatch.setattr(factory.settings, "lock_provider", LockProvider.MEMORY)
        assert isinstance(factory.get_lock_provider(), MemoryLock)

    def test_redis_provider_when_configured(self, monkeypatch):
        monkeypatch.setattr(factory.settings, "lock_provider", LockProvider.REDIS)
        assert isinstance(factory.get_lock_provider(), RedisLock)

    def test_get_lock_provider_singleton(self):
        assert factory.get_lock_provider() is factory.get_lock_provider()
