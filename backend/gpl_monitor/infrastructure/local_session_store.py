"""Local Session Store — durable single-file SessionStore keyed by a fixed storage key.

Invariants:
    - All sessions live in one JSON array at <directory>/<storage_key>.json, newest first
    - Writes are atomic (temp file + os.replace) and serialized by an asyncio.Lock
    - Subscribers are notified with the full collection after every write and on refresh()
    - A missing file is an empty collection; an unreadable or non-list file is a PersistenceError
    - Malformed records are skipped on read and preserved untouched on write

Design Decisions:
    - stdlib json + to_thread: the file is small, and blocking IO stays off the event loop
    - Raw records kept through updates so one bad entry never erases its neighbours
"""

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path

from gpl_monitor.core.cylinder_session import (
    CylinderSession, CylinderSessionDraft, SessionPatch,
    apply_patch, materialize, session_from_record, session_to_record,
)
from gpl_monitor.core.domain_types import STORAGE_KEY_DEFAULT, SessionId, StoreMode
from gpl_monitor.core.errors import PersistenceError, SessionNotFoundError
from gpl_monitor.core.repository_protocols import SessionsListener, Unsubscribe
from gpl_monitor.infrastructure.store_support import (
    SubscriberRegistry, decode_valid, record_id,
)

logger = logging.getLogger(__name__)


class LocalSessionStore:
    """SessionStore persisted to a local JSON file."""

    def __init__(self, directory: Path | str, storage_key: str = STORAGE_KEY_DEFAULT):
        self.path = Path(directory) / f"{storage_key}.json"
        self._lock = asyncio.Lock()
        self._subscribers = SubscriberRegistry()

    @property
    def mode(self) -> StoreMode:
        return StoreMode.LOCAL_ONLY

    # -- file IO (runs in a worker thread) -------------------------------------

    def _read_records(self) -> list:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PersistenceError(str(e), "read")
        except json.JSONDecodeError as e:
            raise PersistenceError(f"corrupt JSON in {self.path.name}: {e}", "deserialize")
        if not isinstance(data, list):
            raise PersistenceError(
                f"{self.path.name} does not hold a list", "deserialize",
            )
        return data

    def _write_records(self, records: list) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            payload = json.dumps(records, ensure_ascii=False)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (TypeError, ValueError) as e:
            raise PersistenceError(str(e), "serialize")
        except OSError as e:
            raise PersistenceError(str(e), "write")

    # -- SessionStore ----------------------------------------------------------

    async def subscribe(self, on_change: SessionsListener) -> Unsubscribe:
        sessions = await self.list_sessions()
        unsubscribe = self._subscribers.add(on_change)
        on_change(sessions)
        return unsubscribe

    async def list_sessions(self) -> list[CylinderSession]:
        records = await asyncio.to_thread(self._read_records)
        return decode_valid(records, session_from_record, str(self.path))

    async def get(self, session_id: SessionId) -> CylinderSession | None:
        for session in await self.list_sessions():
            if session.id == session_id:
                return session
        return None

    async def create(self, draft: CylinderSessionDraft) -> SessionId:
        session = materialize(SessionId(str(uuid.uuid4())), draft)
        async with self._lock:
            records = await asyncio.to_thread(self._read_records)
            await asyncio.to_thread(
                self._write_records, [session_to_record(session), *records],
            )
        logger.info(
            "Cylinder session stored locally", extra={"session_id": session.id},
        )
        await self.refresh()
        return session.id

    async def update(self, session_id: SessionId, patch: SessionPatch) -> None:
        async with self._lock:
            records = await asyncio.to_thread(self._read_records)
            index = next(
                (i for i, raw in enumerate(records) if record_id(raw) == session_id),
                None,
            )
            if index is None:
                raise SessionNotFoundError(session_id)
            updated = apply_patch(session_from_record(records[index]), patch)
            records[index] = session_to_record(updated)
            await asyncio.to_thread(self._write_records, records)
        await self.refresh()

    async def refresh(self) -> None:
        if not len(self._subscribers):
            return
        self._subscribers.publish(await self.list_sessions())

    async def replace_all(self, sessions: list[CylinderSession]) -> None:
        """Overwrite the file with `sessions` (last write wins)."""
        records = [
            session_to_record(s)
            for s in sorted(sessions, key=lambda s: s.start_date, reverse=True)
        ]
        async with self._lock:
            await asyncio.to_thread(self._write_records, records)
        await self.refresh()
