import uuid
from typing import Optional
import redis.asyncio as redis

from common.core.config import settings
from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

# Atomic check-and-delete so a lock is only released by its holder
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

# Atomic check-and-extend, TTL in milliseconds
_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("pexpire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class RedisLock(DistributedLockInterface):
    """Redis-based lock, shared across processes."""

    def __init__(self):
        self.host = settings.redis_host
        self.port = settings.redis_port
        self.password = settings.redis_password
        self.db = settings.redis_db
        self._client: Optional[redis.Redis] = None
        self._lock_prefix = "lock:"

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(
                host=self.host,
                port=self.port,
                password=self.password,
                db=self.db,
                decode_responses=True,
            )
            await self._client.ping()
            logger.info("Redis lock provider connected")
        return self._client

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis lock provider disconnected")

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: float = 30
    ) -> Optional[str]:
        client = await self._get_client()
        lock_key = f"{self._lock_prefix}{resource_key}"
        lock_token = str(uuid.uuid4())

        # SET NX PX: only set if not exists, with expiry in milliseconds
        acquired = await client.set(
            lock_key, lock_token, nx=True, px=int(timeout_seconds * 1000)
        )
        if acquired:
            logger.info(f"Acquired lock for {resource_key} with token {lock_token}")
            return lock_token

        logger.debug(f"Failed to acquire lock for {resource_key} - already locked")
        return None

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        client = await self._get_client()
        lock_key = f"{self._lock_prefix}{resource_key}"

        try:
            result = await client.eval(_RELEASE_SCRIPT, 1, lock_key, lock_token)
        except redis.RedisError as e:
            logger.error(f"Error releasing lock for {resource_key}: {e}")
            return False

        if result:
            logger.info(f"Released lock for {resource_key}")
            return True

        logger.warning(
            f"Cannot release lock for {resource_key} - token mismatch or lock expired"
        )
        return False

    async def extend_lock(
        self, resource_key: str, lock_token: str, additional_seconds: float
    ) -> bool:
        client = await self._get_client()
        lock_key = f"{self._lock_prefix}{resource_key}"

        try:
            result = await client.eval(
                _EXTEND_SCRIPT, 1, lock_key, lock_token, int(additional_seconds * 1000)
            )
        except redis.RedisError as e:
            logger.error(f"Error extending lock for {resource_key}: {e}")
            return False

        if result:
            logger.debug(f"Extended lock for {resource_key} by {additional_seconds}s")
            return True

        logger.warning(
            f"Cannot extend lock for {resource_key} - token mismatch or lock expired"
        )
        return False

    async def is_locked(self, resource_key: str) -> bool:
        client = await self._get_client()
        return bool(await client.exists(f"{self._lock_prefix}{resource_key}"))
