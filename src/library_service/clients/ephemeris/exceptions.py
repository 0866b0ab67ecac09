"""Ephemeris service client exceptions.

The Geometry Store converts all of these into ``ComputationFailedError``.
"""

from __future__ import annotations


class EphemerisError(Exception):
    """Base exception for ephemeris client errors."""


class EphemerisUnavailableError(EphemerisError):
    """Raised when the ephemeris service cannot be reached."""


class EphemerisTimeoutError(EphemerisUnavailableError):
    """Raised when a request to the ephemeris service times out."""


class EphemerisResponseError(EphemerisError):
    """Raised when the ephemeris service returns an error or an unusable body."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)
