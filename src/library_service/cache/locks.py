"""Distributed generation locks.

A lock is a Redis key set with ``NX`` and a TTL holding a random token.
Release deletes the key only if it still holds the caller's token, so a
holder whose lock expired never removes a lock someone else has since
acquired. A crashed holder's lock disappears when its TTL runs out.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)

_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class DistributedLock:
    """TTL'd mutual exclusion over a shared Redis."""

    def __init__(self, client: Redis[Any], ttl_seconds: int) -> None:
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._release = client.register_script(_RELEASE_SCRIPT)

    async def acquire(self, name: str) -> str | None:
        """Try to take the lock once.

        Returns:
            The holder token, or None if the lock is already held.

        Raises:
            RedisError: If Redis cannot be reached.
        """
        token = secrets.token_hex(16)
        acquired = await self._client.set(name, token, nx=True, ex=self._ttl_seconds)
        if not acquired:
            logger.debug("Lock busy", lock=name)
            return None
        return token

    async def release(self, name: str, token: str) -> bool:
        """Release a lock held under ``token``.

        Errors are logged and swallowed; the TTL reclaims the lock.
        """
        try:
            deleted = await self._release(keys=[name], args=[token])
        except RedisError as e:
            logger.warning("Lock release failed", lock=name, error=str(e))
            return False
        if not deleted:
            logger.info("Lock expired before release", lock=name)
        return bool(deleted)
