"""Unit tests for the daily LLM budget guard."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from freezegun import freeze_time
from redis.exceptions import ConnectionError as RedisConnectionError

from library_service.core.config import BudgetFailMode
from library_service.core.config.settings import BudgetSettings
from library_service.services.library.budget import (
    BudgetGuard,
    budget_key,
    seconds_until_utc_midnight,
)
from library_service.services.library.exceptions import BudgetExceededError


pytestmark = pytest.mark.unit


@pytest.fixture
def mock_pipe() -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0.5, True])
    return pipe


@pytest.fixture
def mock_redis(mock_pipe: MagicMock) -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.pipeline.return_value.__aenter__ = AsyncMock(return_value=mock_pipe)
    client.pipeline.return_value.__aexit__ = AsyncMock(return_value=None)
    return client


def make_guard(client: MagicMock, **overrides: object) -> BudgetGuard:
    return BudgetGuard(client, BudgetSettings(**{"daily_budget_usd": 10.0, **overrides}))


class TestBudgetKey:
    """Tests for the per-day counter key."""

    def test_uses_utc_date(self) -> None:
        """Should name the key after the UTC date."""
        assert budget_key(datetime(2025, 3, 1, 23, 59, tzinfo=UTC)) == "llm:budget:2025-03-01"

    @freeze_time("2025-03-01 23:00:00")
    def test_defaults_to_now(self) -> None:
        """Should use the current UTC day."""
        assert budget_key() == "llm:budget:2025-03-01"

    def test_seconds_until_midnight(self) -> None:
        """Should count down to the next UTC midnight."""
        now = datetime(2025, 3, 1, 23, 0, tzinfo=UTC)

        assert seconds_until_utc_midnight(now) == 3600

    def test_seconds_until_midnight_is_positive_at_midnight(self) -> None:
        """Should return a full day exactly at midnight."""
        now = datetime(2025, 3, 2, 0, 0, tzinfo=UTC)

        assert seconds_until_utc_midnight(now) == 86400


class TestCheck:
    """Tests for the pre-generation budget check."""

    async def test_allows_under_budget(self, mock_redis: MagicMock) -> None:
        """Should pass while spend is below the budget."""
        mock_redis.get.return_value = b"9.99"

        await make_guard(mock_redis).check()

    async def test_allows_when_nothing_spent(self, mock_redis: MagicMock) -> None:
        """Should treat a missing counter as zero spend."""
        guard = make_guard(mock_redis)

        await guard.check()

        assert await guard.spent_today() == 0.0

    @freeze_time("2025-03-01 22:30:00")
    async def test_rejects_at_budget_until_midnight(self, mock_redis: MagicMock) -> None:
        """Should refuse once spend reaches the budget, retrying after midnight UTC."""
        mock_redis.get.return_value = b"10.0"

        with pytest.raises(BudgetExceededError) as exc_info:
            await make_guard(mock_redis).check()

        assert exc_info.value.retry_after == 5400
        assert exc_info.value.code == "LIBRARY_BUDGET_EXCEEDED"
        mock_redis.get.assert_awaited_once_with("llm:budget:2025-03-01")

    async def test_zero_budget_blocks_everything(self, mock_redis: MagicMock) -> None:
        """Should refuse all generation with a zero budget."""
        with pytest.raises(BudgetExceededError):
            await make_guard(mock_redis, daily_budget_usd=0.0).check()

    async def test_closed_mode_refuses_when_redis_down(self, mock_redis: MagicMock) -> None:
        """Should refuse generation when Redis is unreachable in closed mode."""
        mock_redis.get.side_effect = RedisConnectionError("down")

        with pytest.raises(BudgetExceededError) as exc_info:
            await make_guard(mock_redis, fail_mode=BudgetFailMode.CLOSED).check()

        assert exc_info.value.retry_after == 60

    async def test_open_mode_allows_when_redis_down(self, mock_redis: MagicMock) -> None:
        """Should let generation through when Redis is unreachable in open mode."""
        mock_redis.get.side_effect = RedisConnectionError("down")

        await make_guard(mock_redis, fail_mode=BudgetFailMode.OPEN).check()


class TestRecord:
    """Tests for recording spend after a completion."""

    @freeze_time("2025-03-01 12:00:00")
    async def test_increments_todays_counter(
        self,
        mock_redis: MagicMock,
        mock_pipe: MagicMock,
    ) -> None:
        """Should add the priced cost and refresh the key TTL."""
        cost = await make_guard(mock_redis, key_ttl_seconds=172800).record(
            "gpt-4o-mini", 1_000_000, 1_000_000
        )

        assert cost == pytest.approx(0.75)
        mock_pipe.incrbyfloat.assert_called_once_with("llm:budget:2025-03-01", pytest.approx(0.75))
        mock_pipe.expire.assert_called_once_with("llm:budget:2025-03-01", 172800)
        mock_pipe.execute.assert_awaited_once()

    async def test_unknown_model_records_nothing(
        self,
        mock_redis: MagicMock,
        mock_pipe: MagicMock,
    ) -> None:
        """Should skip Redis when the cost is zero."""
        cost = await make_guard(mock_redis).record("mystery-model", 1000, 1000)

        assert cost == 0.0
        mock_redis.pipeline.assert_not_called()

    async def test_redis_failure_is_swallowed(
        self,
        mock_redis: MagicMock,
        mock_pipe: MagicMock,
    ) -> None:
        """Should still return the cost when the write fails."""
        mock_pipe.execute.side_effect = RedisConnectionError("down")

        cost = await make_guard(mock_redis).record("gpt-4o", 1000, 1000)

        assert cost > 0
