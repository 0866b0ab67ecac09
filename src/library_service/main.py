"""Application entry point.

Usage:
    # Development with auto-reload
    uvicorn library_service.main:app --reload

    # Production with gunicorn
    gunicorn library_service.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

from library_service.factory import create_app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    from library_service.core.config import get_settings

    settings = get_settings()

    uvicorn.run(
        "library_service.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.is_development,
        log_level=settings.logging.level.lower(),
    )
