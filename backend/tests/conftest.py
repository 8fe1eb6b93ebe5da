"""Root conftest — shared test configuration, fake clock, and in-memory session store.

Invariants:
    - Tests never reach a real database or the real wall clock
    - InMemorySessionStore honours the SessionStore contract (full collection on
      subscribe and after every write) and can inject PersistenceError per operation

Design Decisions:
    - Fakes over mocks: lifecycle and failover tests assert on store state, not call shapes
    - `block` gate lets tests hold a write mid-flight to exercise the mutation latch
"""

import asyncio
import os

import pytest

# Ensure importing the app never targets a real server or data directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORE_BACKEND", "local")
os.environ.setdefault("STORE_POLL_SECONDS", "0")

from gpl_monitor.core.cylinder_session import (  # noqa: E402
    CylinderSession, CylinderSessionDraft, SessionPatch, UsageLog,
    apply_patch, materialize,
)
from gpl_monitor.core.domain_types import (  # noqa: E402
    EpochMillis, HeatLevel, MILLIS_PER_HOUR, SessionId, StoreMode,
)
from gpl_monitor.core.errors import PersistenceError, SessionNotFoundError  # noqa: E402
from gpl_monitor.infrastructure.store_support import SubscriberRegistry  # noqa: E402

T0 = 1_700_000_000_000
HOUR = MILLIS_PER_HOUR


class FakeClock:
    """Manually advanced epoch-millis clock."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> EpochMillis:
        return EpochMillis(self.now)

    def advance(self, ms: int) -> None:
        self.now += ms


class InMemorySessionStore:
    """SessionStore backed by a dict, with per-operation failure injection."""

    def __init__(self, mode: StoreMode = StoreMode.CONNECTED):
        self.mode = mode
        self.sessions: dict[str, CylinderSession] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.block: asyncio.Event | None = None
        self._subscribers = SubscriberRegistry()
        self._next_id = 0

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise PersistenceError("injected failure", operation)

    async def _wait(self) -> None:
        if self.block is not None:
            await self.block.wait()

    def add(self, session: CylinderSession) -> CylinderSession:
        self.sessions[session.id] = session
        return session

    async def subscribe(self, on_change):
        sessions = await self.list_sessions()
        unsubscribe = self._subscribers.add(on_change)
        on_change(sessions)
        return unsubscribe

    async def list_sessions(self) -> list[CylinderSession]:
        self._enter("list")
        return list(self.sessions.values())

    async def get(self, session_id: SessionId) -> CylinderSession | None:
        self._enter("get")
        return self.sessions.get(session_id)

    async def create(self, draft: CylinderSessionDraft) -> SessionId:
        self._enter("create")
        await self._wait()
        self._next_id += 1
        session = materialize(SessionId(f"cyl-{self._next_id}"), draft)
        self.sessions[session.id] = session
        await self.refresh()
        return session.id

    async def update(self, session_id: SessionId, patch: SessionPatch) -> None:
        self._enter("update")
        await self._wait()
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        self.sessions[session_id] = apply_patch(self.sessions[session_id], patch)
        await self.refresh()

    async def refresh(self) -> None:
        self._enter("refresh")
        self._subscribers.publish(list(self.sessions.values()))


def build_session(
    session_id: str,
    logs: list[tuple[int, int]],
    end_date: int | None = None,
) -> CylinderSession:
    """Session from (timestamp, level) pairs; start_date is the first timestamp."""
    return CylinderSession(
        id=SessionId(session_id),
        start_date=EpochMillis(logs[0][0]) if logs else EpochMillis(T0),
        end_date=EpochMillis(end_date) if end_date is not None else None,
        logs=tuple(UsageLog(EpochMillis(t), HeatLevel(level)) for t, level in logs),
        is_active=end_date is None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_session():
    return build_session


@pytest.fixture
def memory_store():
    return InMemorySessionStore()


@pytest.fixture
def make_store():
    return InMemorySessionStore
