"""Geometry engines: the deterministic math behind each library."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from library_service.clients.ephemeris import EphemerisError
from library_service.observability.logging import get_logger
from library_service.services.library.exceptions import ComputationFailedError
from library_service.services.library.models import (
    ChartEngineConfig,
    ChartInput,
    NumerologyEngineConfig,
    NumerologyInput,
)
from library_service.services.numerology import NumerologySystem, compute_profile


if TYPE_CHECKING:
    from library_service.clients.ephemeris import EphemerisClient
    from library_service.services.library.models import EngineConfig, NormalizedInput


logger = get_logger(__name__)


@runtime_checkable
class GeometryEngineProtocol(Protocol):
    """``compute_geometry(normalized, config) -> payload``.

    Implementations must be deterministic and raise
    ``ComputationFailedError`` on any failure.
    """

    async def compute_geometry(
        self,
        normalized: NormalizedInput,
        engine_config: EngineConfig,
    ) -> dict[str, Any]: ...


class ChartGeometryEngine:
    """Natal charts from the external ephemeris service."""

    def __init__(self, client: EphemerisClient) -> None:
        self._client = client

    async def compute_geometry(
        self,
        normalized: NormalizedInput,
        engine_config: EngineConfig,
    ) -> dict[str, Any]:
        if not isinstance(normalized, ChartInput) or not isinstance(
            engine_config, ChartEngineConfig
        ):
            msg = "ChartGeometryEngine requires chart input and config"
            raise TypeError(msg)
        try:
            return await self._client.compute_chart(normalized, engine_config)
        except EphemerisError as e:
            logger.warning("Chart computation failed", error=str(e))
            raise ComputationFailedError("Chart computation failed", cause=e) from e


class NumerologyGeometryEngine:
    """Numerology profiles computed in-process."""

    async def compute_geometry(
        self,
        normalized: NormalizedInput,
        engine_config: EngineConfig,
    ) -> dict[str, Any]:
        if not isinstance(normalized, NumerologyInput) or not isinstance(
            engine_config, NumerologyEngineConfig
        ):
            msg = "NumerologyGeometryEngine requires numerology input and config"
            raise TypeError(msg)
        try:
            profile = compute_profile(
                normalized.first_name,
                normalized.middle_name,
                normalized.last_name,
                normalized.birth_date,
                NumerologySystem(engine_config.system),
            )
        except ValueError as e:
            raise ComputationFailedError("Numerology computation failed", cause=e) from e
        return profile.model_dump(mode="json")
