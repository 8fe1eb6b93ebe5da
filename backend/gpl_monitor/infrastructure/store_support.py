"""Store Support — observer registry and record decoding shared by all session stores.

Invariants:
    - publish() hands every listener its own copy of the collection
    - A listener that raises is logged and never blocks delivery to the others
    - Unsubscribe callables are idempotent
    - Invalid records are skipped with a warning; valid ones are always delivered

Design Decisions:
    - Callback registry internal to the adapters replaces UI-level change events
    - Integer tokens over list membership: the same callable may subscribe twice
"""

import logging
from typing import Any, Callable, Iterable, TypeVar

from gpl_monitor.core.cylinder_session import CylinderSession
from gpl_monitor.core.errors import InvalidSessionError
from gpl_monitor.core.repository_protocols import SessionsListener, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubscriberRegistry:
    """Callback registry for session collection changes."""

    def __init__(self) -> None:
        self._listeners: dict[int, SessionsListener] = {}
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: SessionsListener) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def publish(self, sessions: list[CylinderSession]) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(list(sessions))
            except Exception:
                logger.exception("Session listener failed")


def decode_valid(
    items: Iterable[T], decode: Callable[[T], CylinderSession], source: str,
) -> list[CylinderSession]:
    """Decode each item, skipping the ones that raise InvalidSessionError."""
    sessions = []
    for item in items:
        try:
            sessions.append(decode(item))
        except InvalidSessionError as e:
            logger.warning(
                f"Skipping malformed session record from {source}: {e.message}",
                extra={"session_id": e.context.session_id, "error_code": e.code},
            )
    return sessions


def record_id(raw: Any) -> str | None:
    return raw.get("id") if isinstance(raw, dict) else None
