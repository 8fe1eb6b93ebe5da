"""SQL Session Store — database-backed SessionStore (the shared, synchronized store).

Invariants:
    - Every read and write goes through DatabaseSessionManager (errors surface as PersistenceError)
    - Subscribers are notified with the full collection after every committed write and on refresh()
    - Nothing is published when a write fails
    - Rows that fail domain validation are skipped, not delivered

Design Decisions:
    - Ids generated client-side (uuid4) so create() can return them without a round trip
    - No push channel from the database: refresh() re-reads; the runtime polls it to pick up
      changes written by other clients
"""

import logging

from sqlalchemy import select

from gpl_monitor.core.cylinder_session import (
    CylinderSession, CylinderSessionDraft, SessionPatch, logs_to_records,
)
from gpl_monitor.core.domain_types import SessionId, StoreMode
from gpl_monitor.core.errors import SessionNotFoundError
from gpl_monitor.core.repository_protocols import SessionsListener, Unsubscribe
from gpl_monitor.infrastructure.database import DatabaseSessionManager
from gpl_monitor.infrastructure.store_support import SubscriberRegistry, decode_valid
from gpl_monitor.models.cylinder_session import CylinderSessionRecord

logger = logging.getLogger(__name__)


class SqlSessionStore:
    """SessionStore over the cylinder_sessions table."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db
        self._subscribers = SubscriberRegistry()

    @property
    def mode(self) -> StoreMode:
        return StoreMode.CONNECTED

    async def subscribe(self, on_change: SessionsListener) -> Unsubscribe:
        sessions = await self.list_sessions()
        unsubscribe = self._subscribers.add(on_change)
        on_change(sessions)
        return unsubscribe

    async def list_sessions(self) -> list[CylinderSession]:
        async with self._db.session() as db:
            result = await db.execute(select(CylinderSessionRecord))
            rows = result.scalars().all()
        return decode_valid(rows, CylinderSessionRecord.to_domain, "database")

    async def get(self, session_id: SessionId) -> CylinderSession | None:
        async with self._db.session() as db:
            row = await db.get(CylinderSessionRecord, session_id)
        if row is None:
            return None
        return row.to_domain()

    async def create(self, draft: CylinderSessionDraft) -> SessionId:
        record = CylinderSessionRecord.from_draft(draft)
        async with self._db.session() as db:
            db.add(record)
            await db.commit()
        logger.info(
            "Cylinder session stored", extra={"session_id": record.id},
        )
        await self.refresh()
        return SessionId(record.id)

    async def update(self, session_id: SessionId, patch: SessionPatch) -> None:
        async with self._db.session() as db:
            row = await db.get(CylinderSessionRecord, session_id)
            if row is None:
                raise SessionNotFoundError(session_id)
            if patch.logs is not None:
                row.logs = logs_to_records(patch.logs)
            if patch.is_active is not None:
                row.is_active = patch.is_active
            if patch.end_date is not None:
                row.end_date = int(patch.end_date)
            await db.commit()
        await self.refresh()

    async def refresh(self) -> None:
        if not len(self._subscribers):
            return
        self._subscribers.publish(await self.list_sessions())
