"""Per-caller gate in front of generation attempts.

Three checks run in order, each against its own Redis key:

1. burst:     ``ratelimit:{op}:burst:{caller}``      count per short window
2. cooldown:  ``ratelimit:{op}:cooldown:{caller}``   marker with a TTL
3. sustained: ``ratelimit:{op}:sustained:{caller}``  count per long window

The cooldown marker is claimed atomically with ``SET NX EX`` when the
burst check passes and dropped again if the sustained check refuses, so
it only stands for attempts that went through. Cache hits never reach the
gate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from library_service.observability.logging import get_logger
from library_service.services.library.constants import RATE_LIMIT_KEY_PREFIX
from library_service.services.library.exceptions import (
    LockUnavailableError,
    RateLimitedError,
)


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from library_service.core.config.settings import RequestGateSettings

logger = get_logger(__name__)

# Retry hint when the counter store itself is down.
STORE_UNAVAILABLE_RETRY_AFTER = 30


def gate_key(operation: str, window: str, caller_id: str) -> str:
    return f"{RATE_LIMIT_KEY_PREFIX}:{operation}:{window}:{caller_id}"


class RequestGate:
    """Cooldown, burst and sustained limits backed by Redis counters."""

    def __init__(self, client: Redis[Any], settings: RequestGateSettings) -> None:
        self._client = client
        self._settings = settings

    async def check(self, caller_id: str, operation: str) -> None:
        """Authorize one generation attempt.

        Raises:
            RateLimitedError: A limit was hit; ``retry_after`` is positive.
            LockUnavailableError: Redis could not be reached.
        """
        try:
            await self._check(caller_id, operation)
        except RedisError as e:
            logger.error(
                "Request gate store unavailable",
                operation=operation,
                error=str(e),
            )
            raise LockUnavailableError(
                "store_unavailable", STORE_UNAVAILABLE_RETRY_AFTER
            ) from e

    async def _check(self, caller_id: str, operation: str) -> None:
        s = self._settings

        await self._count(
            operation, "burst", caller_id, s.burst_limit, s.burst_window_seconds
        )

        cooldown_key = gate_key(operation, "cooldown", caller_id)
        if s.cooldown_seconds > 0:
            # SET NX EX: of two concurrent attempts only one claims the marker.
            claimed = await self._client.set(
                cooldown_key, "1", nx=True, ex=s.cooldown_seconds
            )
            if not claimed:
                ttl = await self._client.ttl(cooldown_key)
                self._reject(
                    operation,
                    "cooldown",
                    ttl if ttl is not None and ttl > 0 else s.cooldown_seconds,
                )

        try:
            await self._count(
                operation,
                "sustained",
                caller_id,
                s.sustained_limit,
                s.sustained_window_seconds,
            )
        except RateLimitedError:
            # A refused attempt does not start a cooldown.
            if s.cooldown_seconds > 0:
                await self._client.delete(cooldown_key)
            raise

    async def _count(
        self,
        operation: str,
        reason: str,
        caller_id: str,
        limit: int,
        window: int,
    ) -> None:
        key = gate_key(operation, reason, caller_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = await pipe.execute()

        # First hit in the window, or a key that somehow lost its TTL.
        if count == 1 or ttl == -1:
            await self._client.expire(key, window)
            ttl = window

        if count > limit:
            self._reject(operation, reason, ttl)

    @staticmethod
    def _reject(operation: str, reason: str, ttl: int) -> None:
        retry_after = max(int(ttl), 1)
        logger.info(
            "Generation attempt rate limited",
            operation=operation,
            reason=reason,
            retry_after=retry_after,
        )
        raise RateLimitedError(reason, retry_after)  # type: ignore[arg-type]
