"""Database repositories."""

from library_service.database.repositories.books import STORAGE_ERRORS, BookRepository


__all__ = ["STORAGE_ERRORS", "BookRepository"]
