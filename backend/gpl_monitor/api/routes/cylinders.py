"""Cylinder Routes — dashboard read, lifecycle mutations, and the live stats stream.

Invariants:
    - Routes never touch the store directly for writes: all mutations go through
      SessionLifecycleManager
    - Domain errors propagate to the global handlers (uniform error envelope)
    - GET responses are derived from the view model at request time

Design Decisions:
    - Runtime injected via Depends(get_runtime) so tests swap it with dependency_overrides
    - StreamingResponse for SSE: dashboard_events yields formatted SSE lines
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from gpl_monitor.core.domain_types import HeatLevel, SessionId
from gpl_monitor.schemas.cylinder import (
    ChangeLevelRequest, ChangeLevelResponse, CloseCylinderResponse,
    StartCylinderRequest, StartCylinderResponse, UsageLogResponse,
)
from gpl_monitor.services.runtime import MonitorRuntime, get_runtime
from gpl_monitor.api.routes.cylinder_stream import SSE_HEADERS, dashboard_events

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cylinders", tags=["cylinders"])


@router.get("")
async def get_dashboard(runtime: MonitorRuntime = Depends(get_runtime)):
    """Active session and history, with stats evaluated now."""
    return runtime.view.snapshot()


@router.post(
    "", response_model=StartCylinderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_cylinder(
    body: StartCylinderRequest | None = None,
    runtime: MonitorRuntime = Depends(get_runtime),
):
    """Close the previous active cylinder (if named) and start a new one."""
    previous = body.previous_active_id if body else None
    session_id = await runtime.manager.start_new_cylinder(
        SessionId(previous) if previous else None,
    )
    return StartCylinderResponse(id=session_id)


@router.post("/{session_id}/level", response_model=ChangeLevelResponse)
async def change_level(
    session_id: str,
    body: ChangeLevelRequest,
    runtime: MonitorRuntime = Depends(get_runtime),
):
    log = await runtime.manager.change_level(
        SessionId(session_id), HeatLevel(body.level),
    )
    if log is None:
        return ChangeLevelResponse(changed=False)
    return ChangeLevelResponse(
        changed=True,
        log=UsageLogResponse(timestamp=log.timestamp, level=int(log.level)),
    )


@router.post("/{session_id}/close", response_model=CloseCylinderResponse)
async def close_cylinder(
    session_id: str, runtime: MonitorRuntime = Depends(get_runtime),
):
    await runtime.manager.close_session(SessionId(session_id))
    return CloseCylinderResponse(id=session_id)


@router.get("/stream")
async def stream_dashboard(
    limit: int | None = Query(None, ge=1),
    runtime: MonitorRuntime = Depends(get_runtime),
):
    """SSE stream of dashboard snapshots, one per stats tick."""

    async def event_generator():
        try:
            async for line in dashboard_events(runtime, limit):
                yield line
        except asyncio.CancelledError:
            logger.info("Client disconnected from dashboard stream")
            return

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
