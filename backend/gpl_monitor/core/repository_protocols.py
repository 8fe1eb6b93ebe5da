"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All session IO goes through SessionStore
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the core functions that consume their results (stats, partition) are never async
    - Listeners are plain callables: view recomputation is synchronous once data arrives
"""

from typing import Callable, Protocol

from gpl_monitor.core.cylinder_session import (
    CylinderSession, CylinderSessionDraft, SessionPatch,
)
from gpl_monitor.core.domain_types import SessionId, StoreMode

SessionsListener = Callable[[list[CylinderSession]], None]
Unsubscribe = Callable[[], None]
ModeTransitionListener = Callable[[StoreMode, StoreMode, str], None]


class SessionStore(Protocol):
    """Contract for cylinder session persistence + change notification.

    subscribe delivers the full current collection immediately and after
    every change. Collections are unordered. Failures raise PersistenceError.
    """

    @property
    def mode(self) -> StoreMode: ...

    async def subscribe(self, on_change: SessionsListener) -> Unsubscribe: ...
    async def list_sessions(self) -> list[CylinderSession]: ...
    async def get(self, session_id: SessionId) -> CylinderSession | None: ...
    async def create(self, draft: CylinderSessionDraft) -> SessionId: ...
    async def update(self, session_id: SessionId, patch: SessionPatch) -> None: ...
    async def refresh(self) -> None: ...
