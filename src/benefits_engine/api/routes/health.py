"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text

from benefits_engine.api.dependencies import DbSession
from benefits_engine.config import get_settings
from benefits_engine.services.directory import ApproverDirectory
from benefits_engine.services.workflows import WORKFLOWS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CHAIN_LEVELS = range(1, max(w.max_level for w in WORKFLOWS.values()) + 1)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    database: str
    unstaffed_levels: list[int] = []


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Database reachability plus approval chain coverage.

    Chain levels without an active approver are listed and degrade the status.
    """
    db_status = "unhealthy"
    unstaffed: list[int] = []
    try:
        staffed = await ApproverDirectory(db).staffed_levels()
        unstaffed = [level for level in CHAIN_LEVELS if level not in staffed]
        db_status = "healthy"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)

    if unstaffed:
        logger.warning("No active approvers at levels %s", unstaffed)

    healthy = db_status == "healthy" and not unstaffed
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=get_settings().engine_version,
        database=db_status,
        unstaffed_levels=unstaffed,
    )


@router.get("/ready")
async def readiness_check(db: DbSession):
    """Ready once the database answers."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Readiness check failed", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
