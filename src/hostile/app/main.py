from __future__ import annotations

import structlog
from fastapi import FastAPI

from hostile.api import router as api_router
from hostile.core.config.settings import settings
from hostile.core.logging.setup import configure_logging

log = structlog.get_logger()


def create_app() -> FastAPI:
    """
    Application factory.

    This function is the single place where the FastAPI app
    is created and configured.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title="Hostile Interfaces",
        version="0.1.0",
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        log.info(
            "app.startup",
            environment=settings.env,
            default_seed=settings.default_seed,
            max_sessions=settings.max_sessions,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        log.info("app.shutdown")

    app.include_router(api_router, prefix="/api")

    return app


# ASGI entrypoint
app = create_app()
