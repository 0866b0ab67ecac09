"""API v1 router aggregating all endpoint routers.

All endpoints are mounted under /api/v1/library/ via the v1_prefix configuration.
"""

from __future__ import annotations

from fastapi import APIRouter

from library_service.api.v1.endpoints import health, library


router = APIRouter()

router.include_router(health.router)

router.include_router(library.router)
