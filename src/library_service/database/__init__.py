"""PostgreSQL database layer."""

from library_service.database.connection import (
    check_database_health,
    close_database_pool,
    get_database_pool,
    init_database_pool,
)
from library_service.database.repositories import BookRepository


__all__ = [
    "BookRepository",
    "check_database_health",
    "close_database_pool",
    "get_database_pool",
    "init_database_pool",
]
