"""Client for the external chart math engine."""

from library_service.clients.ephemeris.client import EphemerisClient
from library_service.clients.ephemeris.exceptions import (
    EphemerisError,
    EphemerisResponseError,
    EphemerisTimeoutError,
    EphemerisUnavailableError,
)


__all__ = [
    "EphemerisClient",
    "EphemerisError",
    "EphemerisResponseError",
    "EphemerisTimeoutError",
    "EphemerisUnavailableError",
]
