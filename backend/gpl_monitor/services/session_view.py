"""Session View Model — keeps the active/history partition current as the store changes.

Invariants:
    - Partition is re-derived from the full collection on every notification
    - A ConcurrentActiveSessionError is recorded in `conflict` and reported to error
      listeners; the previous partition stays in place (never picks one of the actives)
    - snapshot() recomputes stats at the given instant on every call (never cached)
    - One unreadable session never breaks the snapshot: it is listed with null stats
      and its error reported under `invalid`

Design Decisions:
    - Pure derivation lives in core/session_partition.py; this class only holds the
      latest result and fans it out to presentation listeners
    - Listener failures are logged and isolated, like the store registry
"""

import logging
from typing import Callable

from gpl_monitor.core.cylinder_session import CylinderSession, session_to_record
from gpl_monitor.core.domain_types import Clock, EpochMillis, StoreMode
from gpl_monitor.core.errors import ConcurrentActiveSessionError, InvalidSessionError
from gpl_monitor.core.repository_protocols import SessionStore, Unsubscribe
from gpl_monitor.core.session_partition import SessionPartition, partition_sessions
from gpl_monitor.core.session_stats import (
    SessionStats, compute_session_stats, format_duration, format_units,
)
from gpl_monitor.infrastructure.clock import system_clock

logger = logging.getLogger(__name__)

PartitionListener = Callable[[SessionPartition], None]
ConflictListener = Callable[[ConcurrentActiveSessionError], None]


def describe_session(
    session: CylinderSession, now: EpochMillis, unit_decimals: int = 1,
) -> dict:
    """Session record plus stats evaluated at `now`."""
    stats: SessionStats = compute_session_stats(session, now)
    return {
        **session_to_record(session),
        "currentLevel": int(session.current_level),
        "stats": stats.to_dict(),
        "duration": format_duration(stats.total_hours),
        "units": format_units(stats.total_units, unit_decimals),
    }


def _describe_unreadable(session: CylinderSession) -> dict:
    return {
        **session_to_record(session),
        "currentLevel": int(session.logs[-1].level) if session.logs else None,
        "stats": None,
        "duration": None,
        "units": None,
    }


class SessionViewModel:
    """Subscribes to a store and exposes the derived active session and history."""

    def __init__(self, store: SessionStore, clock: Clock = system_clock):
        self._store = store
        self._clock = clock
        self._partition = SessionPartition()
        self._unsubscribe: Unsubscribe | None = None
        self._listeners: list[PartitionListener] = []
        self._conflict_listeners: list[ConflictListener] = []
        self.conflict: ConcurrentActiveSessionError | None = None
        self.updates = 0

    @property
    def partition(self) -> SessionPartition:
        return self._partition

    @property
    def active(self) -> CylinderSession | None:
        return self._partition.active

    @property
    def history(self) -> tuple[CylinderSession, ...]:
        return self._partition.history

    @property
    def mode(self) -> StoreMode:
        return self._store.mode

    @property
    def is_remote(self) -> bool:
        """False when sessions are served from the local file store."""
        return self._store.mode is not StoreMode.LOCAL_ONLY

    def add_listener(self, listener: PartitionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def add_conflict_listener(self, listener: ConflictListener) -> Callable[[], None]:
        self._conflict_listeners.append(listener)
        return lambda: self._conflict_listeners.remove(listener)

    async def start(self) -> None:
        """Subscribe to the store. The first collection arrives before this returns."""
        if self._unsubscribe is None:
            self._unsubscribe = await self._store.subscribe(self.on_sessions)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_sessions(self, sessions: list[CylinderSession]) -> None:
        """Store callback: recompute the partition from scratch."""
        try:
            partition = partition_sessions(sessions)
        except ConcurrentActiveSessionError as e:
            self.conflict = e
            logger.error(
                e.message, extra={"error_code": e.code},
            )
            self._notify(self._conflict_listeners, e)
            return
        self.conflict = None
        self._partition = partition
        self.updates += 1
        self._notify(self._listeners, partition)

    @staticmethod
    def _notify(listeners: list, payload) -> None:
        for listener in list(listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("View listener failed")

    def snapshot(self, now: EpochMillis | None = None) -> dict:
        """Dashboard payload with stats evaluated at `now` (defaults to the clock).

        A session whose logs cannot be evaluated is still listed, with null stats,
        and its error is reported under `invalid`; the other sessions are unaffected.
        """
        at = EpochMillis(self._clock()) if now is None else now
        invalid: list[dict] = []

        def describe(session: CylinderSession, unit_decimals: int) -> dict:
            try:
                return describe_session(session, at, unit_decimals)
            except InvalidSessionError as e:
                logger.warning(
                    e.message,
                    extra={"session_id": session.id, "error_code": e.code},
                )
                invalid.append(e.to_response())
                return _describe_unreadable(session)

        active = self._partition.active
        return {
            "mode": self.mode.value,
            "is_remote": self.is_remote,
            "evaluated_at": at,
            "active": describe(active, 2) if active is not None else None,
            "history": [describe(s, 1) for s in self._partition.history],
            "conflict": self.conflict.to_response() if self.conflict else None,
            "invalid": invalid,
        }
