"""Application lifespan event handlers.

Startup order: logging, Redis, PostgreSQL, LLM client, ephemeris client,
then the library services built on top of them. Every dependency is
optional at startup: a library whose backing stores are missing is simply
not registered, and its endpoints answer 503.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from library_service.cache.locks import DistributedLock
from library_service.cache.redis import (
    close_redis_pools,
    get_cache_client,
    get_rate_limit_client,
    init_redis_pools,
)
from library_service.clients.ephemeris import EphemerisClient
from library_service.core.config import Settings, get_settings
from library_service.database.connection import (
    close_database_pool,
    get_database_pool,
    init_database_pool,
)
from library_service.database.repositories import BookRepository
from library_service.llm.client.openai import OpenAIClient
from library_service.llm.prompts import (
    ChartNarrativePrompt,
    NumerologyNarrativePrompt,
    SectionDeepDivePrompt,
)
from library_service.observability.logging import get_logger, setup_logging
from library_service.observability.tracing import shutdown_tracing
from library_service.services.library.budget import BudgetGuard
from library_service.services.library.coordinator import GenerationCoordinator
from library_service.services.library.engines import (
    ChartGeometryEngine,
    NumerologyGeometryEngine,
)
from library_service.services.library.geometry_store import GeometryStore
from library_service.services.library.models import (
    ChartEngineConfig,
    LibraryKind,
    NumerologyEngineConfig,
)
from library_service.services.library.narrative_cache import NarrativeCache
from library_service.services.library.request_gate import RequestGate
from library_service.services.library.service import LibraryService


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from asyncpg import Pool
    from fastapi import FastAPI
    from redis.asyncio import Redis

    from library_service.llm.client.protocol import LLMClientProtocol

logger = get_logger(__name__)


async def _startup(app: FastAPI, settings: Settings) -> None:
    """Initialize all application services during startup.

    Args:
        app: The FastAPI application instance.
        settings: Application settings.
    """
    setup_logging(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        is_development=settings.is_development,
    )

    logger.info(
        "Starting application",
        app_name=settings.app.name,
        environment=settings.APP_ENV,
        debug=settings.app.debug,
    )

    app.state.libraries = {}
    app.state.llm_client = None
    app.state.ephemeris_client = None

    redis_ready = await _init_redis()
    pool = await _init_database()
    llm_client = await _init_llm_client(app, settings)
    ephemeris_client = await _init_ephemeris_client(app, settings)

    if not redis_ready or pool is None:
        logger.error("Library services unavailable: Redis or database not ready")
    else:
        app.state.libraries = _build_libraries(
            settings,
            pool=pool,
            cache_client=get_cache_client(),
            rate_limit_client=get_rate_limit_client(),
            llm_client=llm_client,
            ephemeris_client=ephemeris_client,
        )

    logger.info(
        "Application startup complete",
        libraries=sorted(str(kind) for kind in app.state.libraries),
    )


async def _init_redis() -> bool:
    try:
        await init_redis_pools()
    except Exception:
        logger.exception("Failed to initialize Redis - library services unavailable")
        return False
    return True


async def _init_database() -> Pool | None:
    try:
        await init_database_pool()
        return get_database_pool()
    except Exception:
        logger.exception("Failed to initialize database - library services unavailable")
        return None


async def _init_llm_client(app: FastAPI, settings: Settings) -> LLMClientProtocol | None:
    """Initialize the OpenAI client. Without it narratives are unavailable."""
    if not settings.llm.enabled:
        logger.info("LLM disabled - narratives unavailable")
        return None
    try:
        client = OpenAIClient(
            api_key=settings.OPENAI_API_KEY,
            model=settings.llm.openai.model,
            base_url=settings.llm.openai.url,
            timeout=settings.llm.openai.timeout,
            max_retries=settings.llm.openai.max_retries,
            requests_per_minute=settings.llm.openai.requests_per_minute,
        )
        await client.initialize()
    except Exception:
        logger.exception("Failed to initialize LLM client - narratives unavailable")
        return None
    app.state.llm_client = client
    logger.info("LLM client initialized", model=settings.llm.openai.model)
    return client


async def _init_ephemeris_client(app: FastAPI, settings: Settings) -> EphemerisClient | None:
    if not settings.ephemeris.url:
        logger.warning("Ephemeris URL not configured - chart library unavailable")
        return None
    try:
        client = EphemerisClient()
        await client.initialize()
    except Exception:
        logger.exception("Failed to initialize EphemerisClient - chart library unavailable")
        return None
    app.state.ephemeris_client = client
    return client


def _build_libraries(
    settings: Settings,
    *,
    pool: Pool,
    cache_client: Redis[Any],
    rate_limit_client: Redis[Any],
    llm_client: LLMClientProtocol | None,
    ephemeris_client: EphemerisClient | None,
) -> dict[LibraryKind, LibraryService]:
    """Wire one LibraryService per available library."""
    lib = settings.library
    coordinator = GenerationCoordinator(
        llm_client,
        DistributedLock(cache_client, lib.lock_ttl_seconds),
        BudgetGuard(cache_client, settings.budget),
        lock_busy_retry_after=lib.lock_busy_retry_after_seconds,
    )
    gate = RequestGate(rate_limit_client, settings.request_gate)
    libraries: dict[LibraryKind, LibraryService] = {}

    if ephemeris_client is not None:
        repo = BookRepository(LibraryKind.CHART, pool)
        libraries[LibraryKind.CHART] = LibraryService(
            GeometryStore(
                LibraryKind.CHART,
                repo,
                ChartGeometryEngine(ephemeris_client),
                ChartEngineConfig(**lib.chart_engine.model_dump()),
            ),
            NarrativeCache(
                repo,
                coordinator,
                ChartNarrativePrompt(),
                lib.narrative_prompt_version,
                section_prompt=SectionDeepDivePrompt(),
                section_prompt_version=lib.section_prompt_version,
            ),
            gate,
            default_language=lib.default_language,
        )

    repo = BookRepository(LibraryKind.NUMEROLOGY, pool)
    libraries[LibraryKind.NUMEROLOGY] = LibraryService(
        GeometryStore(
            LibraryKind.NUMEROLOGY,
            repo,
            NumerologyGeometryEngine(),
            NumerologyEngineConfig(**lib.numerology_engine.model_dump()),
        ),
        NarrativeCache(
            repo,
            coordinator,
            NumerologyNarrativePrompt(),
            lib.numerology_narrative_prompt_version,
        ),
        gate,
        default_language=lib.default_language,
    )
    return libraries


async def _shutdown(app: FastAPI) -> None:
    """Shutdown all application services.

    Args:
        app: The FastAPI application instance.
    """
    logger.info("Shutting down application")

    # Let pending access-count updates finish before the pool closes
    for service in getattr(app.state, "libraries", {}).values():
        await service.store.drain()

    if getattr(app.state, "ephemeris_client", None):
        await app.state.ephemeris_client.shutdown()

    if getattr(app.state, "llm_client", None):
        await app.state.llm_client.shutdown()
        logger.debug("LLM client shutdown")

    shutdown_tracing()

    await close_database_pool()
    await close_redis_pools()

    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None - control returns to the application to handle requests.
    """
    settings = get_settings()
    await _startup(app, settings)
    yield
    await _shutdown(app)
