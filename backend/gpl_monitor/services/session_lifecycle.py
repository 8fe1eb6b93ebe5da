"""Session Lifecycle Manager — start, change level, and close cylinder sessions.

Invariants:
    - start_new_cylinder closes the previous active session BEFORE creating the new one;
      if that close fails, nothing is created
    - start_new_cylinder without previous_active_id refuses when an active session exists
    - change_level on the current level is a no-op (no write, log length unchanged)
    - change_level on a closed session raises SessionClosedError
    - close_session on a closed session is a no-op (retries are safe)
    - Written timestamps never precede the newest usage log (clock skew is clamped)
    - Caller-supplied logs must start with the stored first log and never go back in time
    - Store failures propagate as PersistenceError; nothing is applied optimistically
    - At most one in-flight mutation per (kind, session) — a second raises MutationInProgressError

Design Decisions:
    - Views update only from store notifications, so a failed write leaves them untouched
    - Latch keys are claimed synchronously (no await between check and add): atomic on one event loop
    - Writes to one session run under a per-session lock, so a close and a level change
      never interleave between the is_active check and the update
    - The full logs array is written on each change (last-write-wins on concurrent writers)
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

from gpl_monitor.core.cylinder_session import (
    CylinderSession, SessionPatch, UsageLog, new_session_draft,
)
from gpl_monitor.core.domain_types import (
    Clock, EpochMillis, HeatLevel, MutationKind, SessionId,
)
from gpl_monitor.core.errors import (
    ConcurrentActiveSessionError, ErrorContext, InvalidSessionError,
    SessionClosedError, SessionNotFoundError, MutationInProgressError,
)
from gpl_monitor.core.repository_protocols import SessionStore
from gpl_monitor.infrastructure.clock import system_clock

logger = logging.getLogger(__name__)

_LatchKey = tuple[MutationKind, SessionId | None]


def _checked_logs(
    session: CylinderSession, current_logs: Sequence[UsageLog],
) -> tuple[UsageLog, ...]:
    """Validate a caller's view of the logs against the stored session."""
    logs = tuple(current_logs)
    if not logs:
        raise InvalidSessionError(
            "Cannot change level from an empty usage log view",
            ErrorContext(session_id=session.id),
        )
    if logs[0] != session.logs[0]:
        raise InvalidSessionError(
            "Usage logs do not start with this session's first log",
            ErrorContext(session_id=session.id),
        )
    for i in range(1, len(logs)):
        if logs[i].timestamp < logs[i - 1].timestamp:
            raise InvalidSessionError(
                f"Usage log {i} is older than the log before it",
                ErrorContext(
                    session_id=session.id,
                    debug_info={"index": i, "timestamp": logs[i].timestamp},
                ),
            )
    return logs


class SessionLifecycleManager:
    """Applies cylinder lifecycle mutations through a SessionStore."""

    def __init__(self, store: SessionStore, clock: Clock = system_clock):
        self._store = store
        self._clock = clock
        self._in_flight: set[_LatchKey] = set()
        self._locks: dict[SessionId, asyncio.Lock] = {}

    def _now(self) -> EpochMillis:
        return EpochMillis(self._clock())

    def _not_before(self, floor: EpochMillis, session_id: SessionId) -> EpochMillis:
        now = self._now()
        if now < floor:
            logger.warning(
                "Clock is behind the newest usage log, clamping to it",
                extra={"session_id": session_id},
            )
            return floor
        return now

    def _lock(self, session_id: SessionId) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def is_busy(self, kind: MutationKind, session_id: SessionId | None = None) -> bool:
        """True while a mutation of `kind` on `session_id` is in flight."""
        return (kind, session_id) in self._in_flight

    @contextmanager
    def _claim(self, *keys: _LatchKey) -> Iterator[None]:
        for kind, session_id in keys:
            if (kind, session_id) in self._in_flight:
                raise MutationInProgressError(kind.value, session_id)
        self._in_flight.update(keys)
        try:
            yield
        finally:
            self._in_flight.difference_update(keys)

    async def _require(self, session_id: SessionId) -> CylinderSession:
        session = await self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # -- operations ------------------------------------------------------------

    async def start_new_cylinder(
        self, previous_active_id: SessionId | None = None,
    ) -> SessionId:
        """Close `previous_active_id` (if given), then create a fresh active session."""
        keys: list[_LatchKey] = [(MutationKind.START, None)]
        if previous_active_id is not None:
            keys.append((MutationKind.CLOSE, previous_active_id))

        with self._claim(*keys):
            if previous_active_id is not None:
                await self._close(previous_active_id)

            others = [
                s.id for s in await self._store.list_sessions()
                if s.is_active and s.id != previous_active_id
            ]
            if others:
                raise ConcurrentActiveSessionError(others)

            session_id = await self._store.create(new_session_draft(self._now()))
            logger.info(
                "Started new cylinder",
                extra={"session_id": session_id, "operation": MutationKind.START.value},
            )
            return session_id

    async def change_level(
        self,
        session_id: SessionId,
        new_level: HeatLevel,
        current_logs: Sequence[UsageLog] | None = None,
    ) -> UsageLog | None:
        """Append a level switch. Returns the new log, or None when the level is unchanged."""
        new_level = HeatLevel(new_level)
        with self._claim((MutationKind.CHANGE_LEVEL, session_id)):
            async with self._lock(session_id):
                session = await self._require(session_id)
                if not session.is_active:
                    raise SessionClosedError(session_id)

                logs = (
                    session.logs if current_logs is None
                    else _checked_logs(session, current_logs)
                )
                if logs[-1].level == new_level:
                    logger.debug(
                        "Level unchanged, skipping write",
                        extra={"session_id": session_id, "heat_level": int(new_level)},
                    )
                    return None

                log = UsageLog(
                    timestamp=self._not_before(logs[-1].timestamp, session_id),
                    level=new_level,
                )
                await self._store.update(session_id, SessionPatch.replace_logs((*logs, log)))
            logger.info(
                "Heat level changed",
                extra={"session_id": session_id, "heat_level": int(new_level)},
            )
            return log

    async def close_session(self, session_id: SessionId) -> None:
        """Mark the session closed at now. Closing a closed session does nothing."""
        with self._claim((MutationKind.CLOSE, session_id)):
            await self._close(session_id)

    async def _close(self, session_id: SessionId) -> None:
        async with self._lock(session_id):
            session = await self._require(session_id)
            if not session.is_active:
                logger.debug(
                    "Session already closed", extra={"session_id": session_id},
                )
                return
            floor = session.logs[-1].timestamp if session.logs else session.start_date
            end_date = self._not_before(floor, session_id)
            await self._store.update(session_id, SessionPatch.close(end_date))
        logger.info(
            "Cylinder session closed",
            extra={"session_id": session_id, "operation": MutationKind.CLOSE.value},
        )
