"""Session Partition — derives the active session and the history from a raw collection.

Invariants:
    - Re-derived from scratch on every call (no incremental patching)
    - active is the single is_active session, or None
    - More than one active session raises ConcurrentActiveSessionError — never picks one
    - history holds every inactive session, ordered by start_date descending

Design Decisions:
    - Input order is irrelevant: stores deliver unordered collections
    - Ties on start_date keep input order (sorted() is stable)
"""

from dataclasses import dataclass, field
from typing import Iterable

from gpl_monitor.core.cylinder_session import CylinderSession
from gpl_monitor.core.errors import ConcurrentActiveSessionError


@dataclass(frozen=True)
class SessionPartition:
    """Active/history split of the full session collection."""
    active: CylinderSession | None = None
    history: tuple[CylinderSession, ...] = field(default_factory=tuple)


def partition_sessions(sessions: Iterable[CylinderSession]) -> SessionPartition:
    """Split sessions into the unique active one and the sorted history. Pure."""
    collection = list(sessions)
    active = [s for s in collection if s.is_active]
    if len(active) > 1:
        raise ConcurrentActiveSessionError([s.id for s in active])

    history = sorted(
        (s for s in collection if not s.is_active),
        key=lambda s: s.start_date,
        reverse=True,
    )
    return SessionPartition(
        active=active[0] if active else None,
        history=tuple(history),
    )
