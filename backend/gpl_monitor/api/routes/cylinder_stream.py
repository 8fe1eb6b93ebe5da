"""Cylinder Stream Helpers — SSE formatting and the dashboard snapshot generator.

Invariants:
    - Every tick re-evaluates stats at the current clock reading (never cached)
    - The stream only reads from the view model; it never writes
    - A conflict is emitted as an error event, then the stream keeps ticking

Design Decisions:
    - Extracted from cylinders.py so the route module stays thin
    - limit bounds the number of snapshots (tests and one-shot clients); None streams forever
"""

import asyncio
import json
import logging
from typing import AsyncIterator

from gpl_monitor.services.runtime import MonitorRuntime

logger = logging.getLogger(__name__)

# ADR: SSE headers prevent proxy/browser buffering of streamed events.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def snapshot_event(runtime: MonitorRuntime) -> dict:
    return {"type": "snapshot", "data": runtime.view.snapshot()}


async def dashboard_events(
    runtime: MonitorRuntime, limit: int | None = None,
) -> AsyncIterator[str]:
    """Yield one snapshot per tick until `limit` snapshots have been sent."""
    sent = 0
    while limit is None or sent < limit:
        if sent:
            await asyncio.sleep(runtime.tick_seconds)
        conflict = runtime.view.conflict
        if conflict is not None:
            yield sse_line(conflict.to_sse_event())
        yield sse_line(snapshot_event(runtime))
        sent += 1
    yield sse_line({"type": "done", "data": {"sent": sent}})
