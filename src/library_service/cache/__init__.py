"""Redis-backed coordination: connection pools, locks and HTTP rate limiting."""

from library_service.cache.locks import DistributedLock
from library_service.cache.rate_limit import (
    get_caller_key,
    limiter,
    rate_limit_narrative,
    setup_rate_limiting,
)
from library_service.cache.redis import (
    check_redis_health,
    close_redis_pools,
    get_cache_client,
    get_rate_limit_client,
    init_redis_pools,
)


__all__ = [
    "DistributedLock",
    "check_redis_health",
    "close_redis_pools",
    "get_cache_client",
    "get_caller_key",
    "get_rate_limit_client",
    "init_redis_pools",
    "limiter",
    "rate_limit_narrative",
    "setup_rate_limiting",
]
