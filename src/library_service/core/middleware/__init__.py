"""Custom middleware components."""

from library_service.core.middleware.logging import LoggingMiddleware, get_client_ip
from library_service.core.middleware.request_id import RequestIDMiddleware


__all__ = [
    "LoggingMiddleware",
    "RequestIDMiddleware",
    "get_client_ip",
]
