import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from common.core.exceptions import ConcurrentModificationError
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class DistributedLockInterface(ABC):
    """Interface for lock providers guarding per-resource mutations."""

    @abstractmethod
    async def acquire_lock(
        self, resource_key: str, timeout_seconds: float = 30
    ) -> Optional[str]:
        """
        Acquire a lock for a resource.

        Args:
            resource_key: The resource to lock (e.g., "billing:entity:ent_123")
            timeout_seconds: Lock expiration time in seconds

        Returns:
            Lock token if acquired, None otherwise
        """
        pass

    @abstractmethod
    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        """
        Release a lock.

        Args:
            resource_key: The locked resource
            lock_token: The token received when acquiring the lock

        Returns:
            True if released, False if token doesn't match or lock doesn't exist
        """
        pass

    @abstractmethod
    async def extend_lock(
        self, resource_key: str, lock_token: str, additional_seconds: float
    ) -> bool:
        """
        Reset the expiration of a held lock to now plus additional_seconds.

        Returns:
            True if extended, False if token doesn't match or lock doesn't exist
        """
        pass

    @abstractmethod
    async def is_locked(self, resource_key: str) -> bool:
        """Check if a resource is currently locked."""
        pass

    async def acquire_lock_with_retry(
        self,
        resource_key: str,
        lock_ttl_seconds: float = 30,
        acquire_timeout_seconds: float = 5.0,
        retry_interval_ms: int = 50,
    ) -> Optional[str]:
        """
        Acquire a lock, retrying until the acquire timeout is exceeded.

        Returns:
            Lock token if acquired, None if timeout exceeded
        """
        end_time = time.monotonic() + acquire_timeout_seconds
        while True:
            token = await self.acquire_lock(resource_key, lock_ttl_seconds)
            if token:
                return token
            if time.monotonic() >= end_time:
                return None
            await asyncio.sleep(retry_interval_ms / 1000)

    async def _keep_alive(
        self, resource_key: str, lock_token: str, lock_ttl_seconds: float
    ) -> None:
        """Re-extend the lock every third of its TTL until cancelled."""
        while True:
            await asyncio.sleep(lock_ttl_seconds / 3)
            if not await self.extend_lock(resource_key, lock_token, lock_ttl_seconds):
                logger.error(
                    f"Lost lock for {resource_key} while it was held",
                    extra={"resource_key": resource_key},
                )
                return

    @asynccontextmanager
    async def hold(
        self,
        resource_key: str,
        lock_ttl_seconds: float = 30,
        acquire_timeout_seconds: float = 5.0,
    ) -> AsyncGenerator[str, None]:
        """
        Hold the lock for the duration of the block.

        The lock is extended in the background while the block runs, so a
        block may outlive lock_ttl_seconds. The TTL only bounds how long a
        crashed holder keeps the resource locked.

        Raises:
            ConcurrentModificationError: If the lock is not acquired in time
        """
        token = await self.acquire_lock_with_retry(
            resource_key,
            lock_ttl_seconds=lock_ttl_seconds,
            acquire_timeout_seconds=acquire_timeout_seconds,
        )
        if token is None:
            raise ConcurrentModificationError(
                f"Another operation is in progress for {resource_key}"
            )
        heartbeat = asyncio.create_task(
            self._keep_alive(resource_key, token, lock_ttl_seconds)
        )
        try:
            yield token
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)
            await self.release_lock(resource_key, token)
