"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 while the session store is DEGRADED or the runtime is down
    - Readiness reports the store mode so the LIVE/LOCAL badge can be checked from outside

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
    - LOCAL_ONLY counts as ready: it is a deliberate mode, not a failure
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from gpl_monitor.core.domain_types import StoreMode
from gpl_monitor.services import runtime as runtime_module

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

_READY_MODES = (StoreMode.CONNECTED, StoreMode.LOCAL_ONLY)


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "gpl-monitor-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe — includes session store mode and database connectivity."""
    runtime = runtime_module.runtime
    if runtime is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "runtime_not_initialized"},
        )

    mode = runtime.store.mode
    checks = {"store_mode": mode.value}
    if runtime.db is not None and mode is not StoreMode.LOCAL_ONLY:
        checks["database"] = (
            "healthy" if await runtime.db.health_check() else "unavailable"
        )

    if mode not in _READY_MODES or checks.get("database") == "unavailable":
        logger.warning(
            "Readiness check failed", extra={"store_mode": mode.value},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "store_degraded", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
