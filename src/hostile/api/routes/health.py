from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from hostile.core.config.settings import settings
from hostile.core.session.registry import registry
from hostile.simulations.catalog import available

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """
    Liveness plus a glance at what this process is holding.

    Side-effect free.
    """

    status: str
    environment: str
    live_sessions: int
    simulations: list[str]


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        environment=settings.env,
        live_sessions=len(registry),
        simulations=available(),
    )
