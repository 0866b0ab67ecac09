"""Unit tests for the library endpoints.

Tests cover:
- Request mapping into raw input
- Response envelope (camelCase)
- Library error to HTTP status mapping
- Book lookup by key
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from library_service.services.library.exceptions import (
    BudgetExceededError,
    ComputationFailedError,
    IncompleteInputError,
    InvalidRangeError,
    LockUnavailableError,
    PersistenceError,
    RateLimitedError,
)
from library_service.services.library.models import BookWithNarrative, LibraryKind
from tests.fixtures.narratives import chart_narrative, make_book


pytestmark = pytest.mark.unit

PREFIX = "/api/v1/library"

CHART_BODY = {
    "birthDate": "1990-05-15",
    "birthTime": "14:30",
    "birthLat": 40.7128,
    "birthLon": -74.006,
    "timezone": "America/New_York",
}


class TestGetChart:
    """Tests for POST /charts."""

    async def test_returns_book(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return the stored book in camelCase."""
        response = await client.post(f"{PREFIX}/charts", json=CHART_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["bookKey"] == "a" * 64
        assert body["library"] == "chart"
        assert body["narrative"] is None
        assert "engineConfig" in body
        raw = chart_service.get_or_compute_book.await_args.args[0]
        assert raw["birth_lat"] == 40.7128
        assert raw["timezone"] == "America/New_York"

    async def test_accepts_snake_case(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should accept snake_case field names too."""
        body = {"birth_date": "1990-05-15", "birth_time": "14:30"}

        await client.post(f"{PREFIX}/charts", json=body)

        raw = chart_service.get_or_compute_book.await_args.args[0]
        assert raw["birth_time"] == "14:30"

    async def test_incomplete_input(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return 422 listing every missing field."""
        chart_service.get_or_compute_book.side_effect = IncompleteInputError(
            ["birth_lat", "birth_lon"]
        )

        response = await client.post(f"{PREFIX}/charts", json={"birthDate": "1990-05-15"})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "LIBRARY_INCOMPLETE_INPUT"
        assert [d["field"] for d in body["details"]] == ["birth_lat", "birth_lon"]

    async def test_invalid_range(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return 422 naming the bad field."""
        chart_service.get_or_compute_book.side_effect = InvalidRangeError("birth_lat", 91)

        response = await client.post(f"{PREFIX}/charts", json=CHART_BODY)

        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "birth_lat"

    async def test_engine_failure(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return 502 when the geometry engine fails."""
        chart_service.get_or_compute_book.side_effect = ComputationFailedError("down")

        response = await client.post(f"{PREFIX}/charts", json=CHART_BODY)

        assert response.status_code == 502
        assert response.json()["error"] == "LIBRARY_COMPUTATION_FAILED"

    async def test_store_failure(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return 503 when storage fails."""
        chart_service.get_or_compute_book.side_effect = PersistenceError("db down")

        response = await client.post(f"{PREFIX}/charts", json=CHART_BODY)

        assert response.status_code == 503

    async def test_library_not_configured(self, client: AsyncClient, app) -> None:
        """Should return 503 when the library was not started."""
        del app.state.libraries[LibraryKind.CHART]

        response = await client.post(f"{PREFIX}/charts", json=CHART_BODY)

        assert response.status_code == 503
        assert response.json()["error"] == "LIBRARY_UNAVAILABLE"


class TestGetChartNarrative:
    """Tests for POST /charts/narrative."""

    async def test_returns_narrative(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should pass language, context and caller through."""
        chart_service.get_book_with_narrative.return_value = BookWithNarrative(
            book=make_book(
                narrative=chart_narrative("fr"),
                narrative_language="fr",
                narrative_prompt_version=2,
            ),
            narrative_available=True,
        )

        response = await client.post(
            f"{PREFIX}/charts/narrative",
            json={
                **CHART_BODY,
                "language": "fr",
                "displayName": "Ada",
                "zodiacSign": "Taurus",
                "birthCity": "Lisbon",
                "includeSections": True,
            },
            headers={"X-Caller-ID": "abc"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["narrativeAvailable"] is True
        assert body["book"]["narrativeLanguage"] == "fr"
        kwargs = chart_service.get_book_with_narrative.await_args.kwargs
        assert kwargs["language"] == "fr"
        assert kwargs["caller_id"] == "caller:abc"
        assert kwargs["include_sections"] is True
        assert kwargs["context"].display_name == "Ada"
        assert kwargs["context"].zodiac_sign == "Taurus"
        assert kwargs["context"].birth_city == "Lisbon"

    async def test_unavailable_narrative_is_200(
        self,
        client: AsyncClient,
        chart_service: MagicMock,
    ) -> None:
        """Should serve geometry with narrativeAvailable false."""
        chart_service.get_book_with_narrative.return_value = BookWithNarrative(
            book=make_book(), narrative_available=False
        )

        response = await client.post(f"{PREFIX}/charts/narrative", json=CHART_BODY)

        assert response.status_code == 200
        assert response.json()["narrativeAvailable"] is False
        assert response.json()["book"]["geometry"]

    @pytest.mark.parametrize(
        ("error", "status", "code", "retry_after"),
        [
            (RateLimitedError("cooldown", 7), 429, "LIBRARY_COOLDOWN", "7"),
            (RateLimitedError("sustained", 1800), 429, "LIBRARY_RATE_LIMIT", "1800"),
            (LockUnavailableError("busy", 10), 429, "LIBRARY_LOCK_BUSY", "10"),
            (
                LockUnavailableError("store_unavailable", 30),
                503,
                "LIBRARY_REDIS_UNAVAILABLE",
                "30",
            ),
            (BudgetExceededError("spent", retry_after=3600), 503, "LIBRARY_BUDGET_EXCEEDED", "3600"),
        ],
    )
    async def test_capacity_errors(
        self,
        client: AsyncClient,
        chart_service: MagicMock,
        error: Exception,
        status: int,
        code: str,
        retry_after: str,
    ) -> None:
        """Should map refusals to a status, a code and Retry-After."""
        chart_service.get_book_with_narrative.side_effect = error

        response = await client.post(f"{PREFIX}/charts/narrative", json=CHART_BODY)

        assert response.status_code == status
        assert response.json()["error"] == code
        assert response.headers["Retry-After"] == retry_after

    async def test_language_too_short(self, client: AsyncClient) -> None:
        """Should reject a one-letter language code."""
        response = await client.post(
            f"{PREFIX}/charts/narrative", json={**CHART_BODY, "language": "e"}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestNumerology:
    """Tests for the numerology endpoints."""

    async def test_get_numerology(
        self,
        client: AsyncClient,
        numerology_service: MagicMock,
    ) -> None:
        """Should map names and date into raw input."""
        response = await client.post(
            f"{PREFIX}/numerology",
            json={"firstName": "Aaron", "lastName": "Burlar", "birthDate": "1992-05-04"},
        )

        assert response.status_code == 200
        assert response.json()["library"] == "numerology"
        raw = numerology_service.get_or_compute_book.await_args.args[0]
        assert raw["first_name"] == "Aaron"

    async def test_numerology_narrative(
        self,
        client: AsyncClient,
        numerology_service: MagicMock,
    ) -> None:
        """Should never ask for deep-dive sections."""
        numerology_service.get_book_with_narrative.return_value = BookWithNarrative(
            book=make_book(LibraryKind.NUMEROLOGY), narrative_available=False
        )

        response = await client.post(
            f"{PREFIX}/numerology/narrative",
            json={"firstName": "Aaron", "lastName": "Burlar", "birthDate": "1992-05-04"},
        )

        assert response.status_code == 200
        kwargs = numerology_service.get_book_with_narrative.await_args.kwargs
        assert kwargs["include_sections"] is False


class TestGetBookByKey:
    """Tests for GET /books/{library}/{bookKey}."""

    async def test_found(self, client: AsyncClient, chart_service: MagicMock) -> None:
        """Should return the stored book."""
        chart_service.get_book.return_value = make_book()

        response = await client.get(f"{PREFIX}/books/chart/{'a' * 64}")

        assert response.status_code == 200
        chart_service.get_book.assert_awaited_once_with("a" * 64)

    async def test_not_found(self, client: AsyncClient) -> None:
        """Should return 404 with the library code."""
        response = await client.get(f"{PREFIX}/books/numerology/{'b' * 64}")

        assert response.status_code == 404
        assert response.json()["error"] == "LIBRARY_BOOK_NOT_FOUND"

    async def test_malformed_key(self, client: AsyncClient) -> None:
        """Should reject keys that are not 64 hex characters."""
        response = await client.get(f"{PREFIX}/books/chart/not-a-key")

        assert response.status_code == 422

    async def test_unknown_library(self, client: AsyncClient) -> None:
        """Should reject unknown library names."""
        response = await client.get(f"{PREFIX}/books/tarot/{'a' * 64}")

        assert response.status_code == 422
