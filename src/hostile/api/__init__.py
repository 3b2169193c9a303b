from __future__ import annotations

from fastapi import APIRouter

from hostile.api.routes.health import router as health_router
from hostile.api.routes.sessions import router as sessions_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(sessions_router)
