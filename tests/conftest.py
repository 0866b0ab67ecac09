"""Shared test configuration for the library service tests.

``APP_ENV`` is pinned before any application module is imported: the
HTTP rate limiter and settings are built at import time and must pick up
the test overrides (rate limiting, tracing, metrics and LLM disabled).
"""

import os


os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402

from library_service.core.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Each test starts from freshly loaded settings."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
