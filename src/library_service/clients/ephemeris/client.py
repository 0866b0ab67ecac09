"""Ephemeris service HTTP client.

The chart math engine runs as a separate service. It is treated as a pure
function: the same birth data and engine config always yield the same
chart payload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import orjson

from library_service.clients.ephemeris.exceptions import (
    EphemerisResponseError,
    EphemerisTimeoutError,
    EphemerisUnavailableError,
)
from library_service.core.config import get_settings
from library_service.observability.logging import get_logger


if TYPE_CHECKING:
    from library_service.services.library.models import ChartEngineConfig, ChartInput


logger = get_logger(__name__)


class EphemerisClient:
    """HTTP client for the chart math engine.

    Example:
        ```python
        client = EphemerisClient()
        await client.initialize()
        chart = await client.compute_chart(chart_input, engine_config)
        await client.shutdown()
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url or settings.ephemeris.url
        self._api_key = api_key if api_key is not None else settings.EPHEMERIS_API_KEY
        self._timeout = timeout if timeout is not None else settings.ephemeris.timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.ephemeris.max_retries
        )
        self._http_client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        if not self._base_url:
            msg = "Ephemeris service URL not configured"
            raise RuntimeError(msg)
        return self._base_url.rstrip("/")

    async def initialize(self) -> None:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
        )
        logger.info("EphemerisClient initialized", base_url=self.base_url)

    async def shutdown(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("EphemerisClient shutdown")

    async def compute_chart(
        self,
        chart_input: ChartInput,
        engine_config: ChartEngineConfig,
    ) -> dict[str, Any]:
        """Compute a natal chart.

        Timeouts and connection errors are retried up to ``max_retries``
        times; HTTP error responses are not.

        Raises:
            EphemerisUnavailableError: If the service is unreachable.
            EphemerisTimeoutError: If every attempt timed out.
            EphemerisResponseError: For non-2xx responses or a non-object body.
        """
        if not self._http_client:
            msg = "Client not initialized. Call initialize() first."
            raise RuntimeError(msg)

        url = f"{self.base_url}/charts"
        payload = orjson.dumps(
            {
                "birthDate": chart_input.birth_date,
                "birthTime": chart_input.birth_time,
                "latitude": chart_input.birth_lat,
                "longitude": chart_input.birth_lon,
                "timezone": chart_input.timezone,
                "houseSystem": engine_config.house_system,
                "zodiac": engine_config.zodiac,
                "schemaVersion": engine_config.schema_version,
            }
        )

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._http_client.post(url, content=payload)
            except httpx.TimeoutException as e:
                logger.warning("Ephemeris request timed out", attempt=attempt + 1)
                last_error = EphemerisTimeoutError(str(e))
                continue
            except httpx.RequestError as e:
                logger.warning(
                    "Failed to connect to ephemeris service",
                    attempt=attempt + 1,
                    error=str(e),
                )
                last_error = EphemerisUnavailableError(
                    f"Failed to connect to ephemeris service: {e}"
                )
                continue

            return self._parse_response(response)

        assert last_error is not None
        raise last_error

    @staticmethod
    def _parse_response(response: httpx.Response) -> dict[str, Any]:
        if response.status_code != 200:
            logger.warning(
                "Ephemeris service returned error",
                status_code=response.status_code,
            )
            raise EphemerisResponseError(
                response.status_code,
                response.text or f"HTTP {response.status_code}",
            )
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise EphemerisResponseError(200, "Response body is not JSON") from e
        if not isinstance(data, dict):
            raise EphemerisResponseError(200, "Response body is not a JSON object")
        return data
