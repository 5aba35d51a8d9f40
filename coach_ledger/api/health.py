"""Health check endpoints for monitoring and orchestration."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from coach_ledger.config import settings

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    timestamp: datetime
    version: str
    environment: str


class LivenessResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    """Response model for the readiness check."""

    status: str
    checks: dict[str, str]


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness check - app is running."""
    return LivenessResponse(status="alive")


async def _check(component) -> str:
    if component is None:
        return "not_configured"
    try:
        if hasattr(component, "is_healthy"):
            healthy = await component.is_healthy()
        else:
            healthy = await component.health_check()
    except Exception:
        return "failed"
    return "ok" if healthy else "failed"


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Readiness check - app can serve traffic.

    Checks:
    - Ledger backend is reachable
    - State database is connected (when the turso state backend is used)
    """
    state = request.app.state
    checks: dict[str, str] = {
        "api": "ok",
        "ledger": await _check(getattr(state, "ledger_backend", None)),
        "database": await _check(getattr(state, "db", None)),
    }

    status = (
        "ready"
        if all(v in ("ok", "not_configured") for v in checks.values())
        and checks["ledger"] == "ok"
        else "not_ready"
    )
    return ReadinessResponse(status=status, checks=checks)
