"""
SightEd Backend — Health and Info Routes
==========================================

What:  Liveness/readiness probes plus a tiny API index.
How:   Runs lightweight checks against the document store (SELECT 1 for SQL)
       and the Gemini API (list_models, skipped while the breaker is open).

Status levels:
    healthy:    store and Gemini both reachable
    degraded:   store fine, Gemini unavailable (uploads still return labels)
    unhealthy:  store unreachable
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from sighted import __version__
from sighted.schemas.common import DatabaseStatusResponse, HealthResponse
from sighted.services.gemini_service import gemini_service
from sighted.storage import DocumentStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", summary="API index")
async def api_info() -> dict:
    return {
        "name": "SightEd API",
        "version": __version__,
        "description": "Photo analysis with labels, landmarks, facts and quizzes",
        "docs": "/docs",
        "health": "/health",
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Reports the document store and Gemini status. Used by Docker health "
        "checks and load balancers."
    ),
)
async def health_check(store: DocumentStore = Depends(get_store)) -> HealthResponse:
    storage_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    if not await store.health_check():
        storage_status = "disconnected"
        overall = "unhealthy"

    try:
        if gemini_service.circuit_breaker.state == gemini_service.circuit_breaker.OPEN:
            gemini_status = "circuit_open"
        elif not await gemini_service.health_check():
            gemini_status = "unavailable"
    except Exception as e:
        gemini_status = "unavailable"
        logger.warning("Health check: Gemini unreachable: %s", str(e))

    if gemini_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        storage=storage_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get(
    "/api/db-status",
    response_model=DatabaseStatusResponse,
    summary="Which document store is active and whether it answers",
)
async def db_status(store: DocumentStore = Depends(get_store)) -> DatabaseStatusResponse:
    return DatabaseStatusResponse(
        backend=store.backend_name,
        dialect=getattr(store, "dialect", None),
        healthy=await store.health_check(),
    )
