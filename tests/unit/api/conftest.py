"""API unit test fixtures.

The app is built without running its lifespan; library services are
replaced with mocks on ``app.state.libraries``.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from library_service.factory import create_app
from library_service.services.library.models import LibraryKind
from tests.fixtures.narratives import make_book


pytestmark = pytest.mark.unit


def make_service(library: LibraryKind) -> MagicMock:
    service = MagicMock()
    service.library = library
    service.get_or_compute_book = AsyncMock(return_value=make_book(library))
    service.get_book_with_narrative = AsyncMock()
    service.get_book = AsyncMock(return_value=None)
    return service


@pytest.fixture
def chart_service() -> MagicMock:
    return make_service(LibraryKind.CHART)


@pytest.fixture
def numerology_service() -> MagicMock:
    return make_service(LibraryKind.NUMEROLOGY)


@pytest.fixture
def app(chart_service: MagicMock, numerology_service: MagicMock) -> FastAPI:
    app = create_app()
    app.state.libraries = {
        LibraryKind.CHART: chart_service,
        LibraryKind.NUMEROLOGY: numerology_service,
    }
    return app


@pytest.fixture
async def client(app: FastAPI):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
