"""Failover Session Store — explicit CONNECTED → DEGRADED → LOCAL_ONLY state machine.

Invariants:
    - CONNECTED: reads and writes go to the primary store
    - DEGRADED: entered on any primary failure; reads serve the last-known-good collection,
      writes still target the primary and raise PersistenceError when it fails
    - A successful primary operation returns DEGRADED → CONNECTED
    - LOCAL_ONLY: only via switch_to_local(), or automatically after `failure_threshold`
      consecutive failures when auto_local_fallback is enabled
    - A failed write is NEVER retried against the local store
    - Every transition is logged and delivered to transition listeners

Design Decisions:
    - Mode lives on this object, chosen at startup and changed only by the transitions above
      (no ambient flag flipped from inside request handling)
    - Entering LOCAL_ONLY seeds the local file with the last-known-good collection (last write wins)
    - reconnect() is explicit; sessions written while LOCAL_ONLY are not merged back
"""

import logging

from gpl_monitor.core.cylinder_session import (
    CylinderSession, CylinderSessionDraft, SessionPatch,
)
from gpl_monitor.core.domain_types import SessionId, StoreMode
from gpl_monitor.core.errors import PersistenceError
from gpl_monitor.core.repository_protocols import (
    ModeTransitionListener, SessionStore, SessionsListener, Unsubscribe,
)
from gpl_monitor.infrastructure.local_session_store import LocalSessionStore
from gpl_monitor.infrastructure.store_support import SubscriberRegistry

logger = logging.getLogger(__name__)


class FailoverSessionStore:
    """SessionStore that degrades from a primary store to a local one, observably."""

    def __init__(
        self,
        primary: SessionStore,
        fallback: LocalSessionStore,
        *,
        failure_threshold: int = 3,
        auto_local_fallback: bool = False,
    ):
        self._primary = primary
        self._fallback = fallback
        self.failure_threshold = failure_threshold
        self.auto_local_fallback = auto_local_fallback

        self._mode = StoreMode.CONNECTED
        self._consecutive_failures = 0
        self._last_known_good: list[CylinderSession] = []
        self._subscribers = SubscriberRegistry()
        self._transition_listeners: dict[int, ModeTransitionListener] = {}
        self._next_listener_token = 0

    @property
    def mode(self) -> StoreMode:
        return self._mode

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def on_transition(self, listener: ModeTransitionListener) -> Unsubscribe:
        """Register a (old_mode, new_mode, reason) callback."""
        token = self._next_listener_token
        self._next_listener_token += 1
        self._transition_listeners[token] = listener
        return lambda: self._transition_listeners.pop(token, None)

    # -- state machine ---------------------------------------------------------

    def _transition(self, new_mode: StoreMode, reason: str) -> None:
        old_mode = self._mode
        if old_mode is new_mode:
            return
        self._mode = new_mode
        logger.warning(
            f"Session store mode {old_mode.value} -> {new_mode.value}: {reason}",
            extra={"store_mode": new_mode.value, "previous_mode": old_mode.value},
        )
        for listener in list(self._transition_listeners.values()):
            try:
                listener(old_mode, new_mode, reason)
            except Exception:
                logger.exception("Store mode listener failed")

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        if self._mode is StoreMode.DEGRADED:
            self._transition(StoreMode.CONNECTED, "primary store reachable again")

    async def _record_failure(self, error: PersistenceError) -> None:
        self._consecutive_failures += 1
        logger.error(
            f"Primary session store failure #{self._consecutive_failures}: {error.message}",
            extra={"error_code": error.code, "operation": error.operation},
        )
        if self._mode is StoreMode.CONNECTED:
            self._transition(StoreMode.DEGRADED, error.message)
        if (
            self.auto_local_fallback
            and self.failure_threshold > 0
            and self._consecutive_failures >= self.failure_threshold
        ):
            await self._enter_local(
                f"{self._consecutive_failures} consecutive primary failures",
            )

    async def _enter_local(self, reason: str) -> None:
        if self._mode is StoreMode.LOCAL_ONLY:
            return
        await self._fallback.replace_all(self._last_known_good)
        self._transition(StoreMode.LOCAL_ONLY, reason)

    async def switch_to_local(self, reason: str = "requested") -> None:
        """Explicitly move to LOCAL_ONLY and republish from the local store."""
        await self._enter_local(reason)
        await self.refresh()

    async def reconnect(self) -> None:
        """Explicitly return to CONNECTED. Raises PersistenceError if the primary is still down."""
        sessions = await self._primary.list_sessions()
        self._consecutive_failures = 0
        self._last_known_good = sessions
        self._transition(StoreMode.CONNECTED, "reconnected")
        self._subscribers.publish(sessions)

    # -- SessionStore ----------------------------------------------------------

    async def subscribe(self, on_change: SessionsListener) -> Unsubscribe:
        sessions = await self.list_sessions()
        unsubscribe = self._subscribers.add(on_change)
        on_change(sessions)
        return unsubscribe

    async def list_sessions(self) -> list[CylinderSession]:
        if self._mode is StoreMode.LOCAL_ONLY:
            sessions = await self._fallback.list_sessions()
        else:
            try:
                sessions = await self._primary.list_sessions()
            except PersistenceError as e:
                await self._record_failure(e)
                if self._mode is StoreMode.LOCAL_ONLY:
                    return await self._fallback.list_sessions()
                return list(self._last_known_good)
            self._record_success()
        self._last_known_good = list(sessions)
        return list(sessions)

    async def get(self, session_id: SessionId) -> CylinderSession | None:
        if self._mode is StoreMode.LOCAL_ONLY:
            return await self._fallback.get(session_id)
        try:
            session = await self._primary.get(session_id)
        except PersistenceError as e:
            await self._record_failure(e)
            raise
        self._record_success()
        return session

    async def create(self, draft: CylinderSessionDraft) -> SessionId:
        if self._mode is StoreMode.LOCAL_ONLY:
            session_id = await self._fallback.create(draft)
        else:
            try:
                session_id = await self._primary.create(draft)
            except PersistenceError as e:
                await self._record_failure(e)
                raise
            self._record_success()
        await self.refresh()
        return session_id

    async def update(self, session_id: SessionId, patch: SessionPatch) -> None:
        if self._mode is StoreMode.LOCAL_ONLY:
            await self._fallback.update(session_id, patch)
        else:
            try:
                await self._primary.update(session_id, patch)
            except PersistenceError as e:
                await self._record_failure(e)
                raise
            self._record_success()
        await self.refresh()

    async def refresh(self) -> None:
        """Re-read the active backend and publish (last-known-good when DEGRADED)."""
        sessions = await self.list_sessions()
        self._subscribers.publish(sessions)
