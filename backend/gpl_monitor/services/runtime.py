"""Monitor Runtime — wires store, lifecycle manager and view model once per process.

Invariants:
    - The session store strategy is chosen exactly once, from Settings.store_backend
    - The view model is subscribed before the first request is served
    - The refresh loop only re-reads the store; it never writes
    - A failed refresh is logged and the last delivered collection stays in place

Design Decisions:
    - Module-level singleton initialized on startup, mirroring the database manager
      (FastAPI lifespan owns it; routes reach it through get_runtime)
    - Explicit build_session_store factory instead of a mode flag toggled at runtime
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from gpl_monitor.config import Settings
from gpl_monitor.core.domain_types import Clock
from gpl_monitor.core.errors import PersistenceError
from gpl_monitor.core.repository_protocols import SessionStore
from gpl_monitor.infrastructure.clock import system_clock
from gpl_monitor.infrastructure.database import DatabaseSessionManager
from gpl_monitor.infrastructure.failover_session_store import FailoverSessionStore
from gpl_monitor.infrastructure.local_session_store import LocalSessionStore
from gpl_monitor.infrastructure.sql_session_store import SqlSessionStore
from gpl_monitor.services.session_lifecycle import SessionLifecycleManager
from gpl_monitor.services.session_view import SessionViewModel

logger = logging.getLogger(__name__)


@dataclass
class MonitorRuntime:
    """Everything a request handler needs, built once at startup."""
    store: SessionStore
    manager: SessionLifecycleManager
    view: SessionViewModel
    clock: Clock = system_clock
    tick_seconds: float = 1.0
    db: DatabaseSessionManager | None = None
    _poll_task: asyncio.Task | None = field(default=None, repr=False)

    async def refresh(self) -> None:
        try:
            await self.store.refresh()
        except PersistenceError as e:
            logger.warning(
                f"Session refresh failed, keeping last collection: {e.message}",
                extra={"error_code": e.code, "store_mode": self.store.mode.value},
            )

    def start_polling(self, interval_seconds: float) -> None:
        if interval_seconds <= 0 or self._poll_task is not None:
            return

        async def _poll() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                await self.refresh()

        self._poll_task = asyncio.create_task(_poll())

    async def close(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        self.view.stop()
        if self.db is not None:
            await self.db.dispose()


def build_session_store(
    settings: Settings,
) -> tuple[SessionStore, DatabaseSessionManager | None]:
    """Pick the session store strategy named by settings.store_backend."""
    local = LocalSessionStore(settings.local_store_dir, settings.storage_key)
    if settings.store_backend == "local":
        return local, None

    db = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    sql = SqlSessionStore(db)
    if settings.store_backend == "database":
        return sql, db

    return FailoverSessionStore(
        sql, local,
        failure_threshold=settings.failover_threshold,
        auto_local_fallback=settings.auto_local_fallback,
    ), db


def build_runtime(
    store: SessionStore,
    *,
    clock: Clock = system_clock,
    tick_seconds: float = 1.0,
    db: DatabaseSessionManager | None = None,
) -> MonitorRuntime:
    return MonitorRuntime(
        store=store,
        manager=SessionLifecycleManager(store, clock),
        view=SessionViewModel(store, clock),
        clock=clock,
        tick_seconds=tick_seconds,
        db=db,
    )


# Singleton (initialized on startup)
runtime: MonitorRuntime | None = None


async def init_runtime(settings: Settings) -> MonitorRuntime:
    global runtime
    store, db = build_session_store(settings)
    runtime = build_runtime(
        store, tick_seconds=settings.stats_tick_seconds, db=db,
    )
    if isinstance(store, FailoverSessionStore):
        store.on_transition(
            lambda old, new, reason: logger.warning(
                f"Serving sessions in {new.value} mode",
                extra={"store_mode": new.value, "previous_mode": old.value},
            )
        )
    try:
        await runtime.view.start()
    except PersistenceError as e:
        logger.error(
            f"Initial session load failed: {e.message}",
            extra={"error_code": e.code},
        )
    runtime.start_polling(settings.store_poll_seconds)
    logger.info(
        "Session runtime ready",
        extra={"store_mode": store.mode.value, "operation": settings.store_backend},
    )
    return runtime


async def shutdown_runtime() -> None:
    global runtime
    if runtime is not None:
        await runtime.close()
        runtime = None


def get_runtime() -> MonitorRuntime:
    """FastAPI dependency for the process runtime."""
    if runtime is None:
        raise RuntimeError("Runtime not initialized")
    return runtime
