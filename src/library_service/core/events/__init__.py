"""Application lifecycle events."""

from library_service.core.events.lifespan import lifespan


__all__ = ["lifespan"]
