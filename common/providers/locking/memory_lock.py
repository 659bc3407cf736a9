import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from common.core.otel_axiom_exporter import get_logger
from .interface import DistributedLockInterface

logger = get_logger(__name__)


@dataclass
class _HeldLock:
    token: str
    expires_at: float

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class MemoryLock(DistributedLockInterface):
    """In-process lock registry for single-process deployments."""

    def __init__(self):
        self._locks: Dict[str, _HeldLock] = {}

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: float = 30
    ) -> Optional[str]:
        # No await between check and set, so this is atomic on the event loop
        held = self._locks.get(resource_key)
        if held and not held.is_expired():
            logger.debug(f"Failed to acquire lock for {resource_key} - already locked")
            return None

        token = str(uuid.uuid4())
        self._locks[resource_key] = _HeldLock(
            token=token, expires_at=time.monotonic() + timeout_seconds
        )
        logger.debug(f"Acquired lock for {resource_key}")
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        held = self._locks.get(resource_key)
        if held is None or held.token != lock_token:
            logger.warning(
                f"Cannot release lock for {resource_key} - token mismatch or lock expired"
            )
            return False

        del self._locks[resource_key]
        logger.debug(f"Released lock for {resource_key}")
        return True

    async def extend_lock(
        self, resource_key: str, lock_token: str, additional_seconds: float
    ) -> bool:
        held = self._locks.get(resource_key)
        if held is None or held.token != lock_token or held.is_expired():
            logger.warning(
                f"Cannot extend lock for {resource_key} - token mismatch or lock expired"
            )
            return False

        held.expires_at = time.monotonic() + additional_seconds
        return True

    async def is_locked(self, resource_key: str) -> bool:
        held = self._locks.get(resource_key)
        if held is None:
            return False
        if held.is_expired():
            del self._locks[resource_key]
            return False
        return True
