"""Daily LLM spend guard.

Spend is a float counter per UTC day in the cache Redis:
``llm:budget:{YYYY-MM-DD}``. ``check()`` runs before every generation,
``record()`` after every completion that reported token usage.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from library_service.core.config import BudgetFailMode
from library_service.llm.pricing import estimate_cost_usd
from library_service.observability.logging import get_logger
from library_service.observability.metrics import record_llm_cost
from library_service.services.library.constants import BUDGET_KEY_PREFIX
from library_service.services.library.exceptions import BudgetExceededError


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from library_service.core.config.settings import BudgetSettings

logger = get_logger(__name__)


def budget_key(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"{BUDGET_KEY_PREFIX}:{now.strftime('%Y-%m-%d')}"


def seconds_until_utc_midnight(now: datetime | None = None) -> int:
    now = now or datetime.now(UTC)
    midnight = (now + timedelta(days=1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return max(int((midnight - now).total_seconds()), 1)


class BudgetGuard:
    """Check and record today's LLM spend against a fixed USD budget."""

    def __init__(self, client: Redis[Any], settings: BudgetSettings) -> None:
        self._client = client
        self._settings = settings

    async def spent_today(self) -> float:
        """Return today's recorded spend in USD.

        Raises:
            RedisError: If Redis cannot be reached.
        """
        value = await self._client.get(budget_key())
        return float(value) if value is not None else 0.0

    async def check(self) -> None:
        """Refuse generation once today's spend reaches the budget.

        Raises:
            BudgetExceededError: Budget reached, or Redis unreachable in
                closed mode.
        """
        try:
            spent = await self.spent_today()
        except RedisError as e:
            if self._settings.fail_mode is BudgetFailMode.OPEN:
                logger.warning("Budget check skipped, Redis unavailable", error=str(e))
                return
            logger.error("Budget check failed, refusing generation", error=str(e))
            raise BudgetExceededError(
                "Budget store unavailable", retry_after=60
            ) from e

        if spent >= self._settings.daily_budget_usd:
            logger.warning(
                "Daily LLM budget exhausted",
                spent_usd=round(spent, 4),
                budget_usd=self._settings.daily_budget_usd,
            )
            raise BudgetExceededError(
                "Daily generation budget exhausted",
                retry_after=seconds_until_utc_midnight(),
            )

    async def record(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Add the priced cost of a completion to today's counter.

        Failures are logged; the completion has already happened.

        Returns:
            The estimated cost in USD.
        """
        cost = estimate_cost_usd(model, input_tokens, output_tokens)
        record_llm_cost(model, cost)
        if cost <= 0:
            return cost

        key = budget_key()
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incrbyfloat(key, cost)
                pipe.expire(key, self._settings.key_ttl_seconds)
                await pipe.execute()
        except RedisError as e:
            logger.warning("Failed to record LLM spend", model=model, error=str(e))
        return cost
