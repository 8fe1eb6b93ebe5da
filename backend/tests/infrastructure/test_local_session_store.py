"""Local Session Store — tests for the JSON-file backed store.

Invariants:
    - Missing file reads as an empty collection
    - New sessions are prepended (file is newest first)
    - Subscribers get the full collection on subscribe and after each write
    - Malformed records are skipped on read and kept on write
    - Unreadable or non-list files raise PersistenceError
"""

import json

import pytest

from gpl_monitor.core.cylinder_session import SessionPatch, new_session_draft
from gpl_monitor.core.domain_types import StoreMode
from gpl_monitor.core.errors import PersistenceError, SessionNotFoundError
from gpl_monitor.infrastructure.local_session_store import LocalSessionStore

T0 = 1_700_000_000_000


@pytest.fixture
def store(tmp_path):
    return LocalSessionStore(tmp_path, "gpl_test")


def _read_file(store: LocalSessionStore) -> list:
    return json.loads(store.path.read_text(encoding="utf-8"))


async def test_mode_is_local_only(store):
    assert store.mode is StoreMode.LOCAL_ONLY


async def test_file_named_after_storage_key(tmp_path):
    assert LocalSessionStore(tmp_path).path == tmp_path / "gpl_monitor_data.json"


async def test_missing_file_is_empty_collection(store):
    assert await store.list_sessions() == []
    assert not store.path.exists()


async def test_create_prepends_record(store):
    first = await store.create(new_session_draft(T0))
    second = await store.create(new_session_draft(T0 + 1000))
    records = _read_file(store)
    assert [r["id"] for r in records] == [second, first]
    assert records[0] == {
        "id": second,
        "startDate": T0 + 1000,
        "endDate": None,
        "isActive": True,
        "logs": [{"timestamp": T0 + 1000, "level": 1}],
    }


async def test_get_returns_created_session(store):
    session_id = await store.create(new_session_draft(T0))
    session = await store.get(session_id)
    assert session.id == session_id
    assert session.is_active is True
    assert await store.get("missing") is None


async def test_update_close_persists(store):
    session_id = await store.create(new_session_draft(T0))
    await store.update(session_id, SessionPatch.close(T0 + 500))
    record = _read_file(store)[0]
    assert record["isActive"] is False
    assert record["endDate"] == T0 + 500


async def test_update_unknown_id_raises(store):
    await store.create(new_session_draft(T0))
    with pytest.raises(SessionNotFoundError):
        await store.update("nope", SessionPatch.close(T0))


async def test_subscribe_delivers_immediately_and_after_writes(store):
    deliveries = []
    await store.subscribe(deliveries.append)
    assert deliveries == [[]]

    session_id = await store.create(new_session_draft(T0))
    assert [s.id for s in deliveries[-1]] == [session_id]

    await store.update(session_id, SessionPatch.close(T0 + 1))
    assert deliveries[-1][0].is_active is False
    assert len(deliveries) == 3


async def test_unsubscribe_stops_delivery(store):
    deliveries = []
    unsubscribe = await store.subscribe(deliveries.append)
    unsubscribe()
    unsubscribe()
    await store.create(new_session_draft(T0))
    assert len(deliveries) == 1


async def test_failing_listener_does_not_block_others(store):
    received = []

    def broken(_sessions):
        raise RuntimeError("listener bug")

    await store.subscribe(lambda s: None)
    store._subscribers.add(broken)
    await store.subscribe(received.append)
    await store.create(new_session_draft(T0))
    assert len(received[-1]) == 1


async def test_malformed_records_skipped_and_preserved(store):
    store.path.write_text(json.dumps([
        {"id": "bad", "startDate": T0, "endDate": None, "isActive": True, "logs": []},
        {"id": "good", "startDate": T0, "endDate": None, "isActive": True,
         "logs": [{"timestamp": T0, "level": 2}]},
    ]), encoding="utf-8")

    sessions = await store.list_sessions()
    assert [s.id for s in sessions] == ["good"]

    await store.update("good", SessionPatch.close(T0 + 10))
    assert [r["id"] for r in _read_file(store)] == ["bad", "good"]


async def test_corrupt_json_raises_persistence_error(store):
    store.path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError) as exc_info:
        await store.list_sessions()
    assert exc_info.value.operation == "deserialize"


async def test_non_list_file_raises_persistence_error(store):
    store.path.write_text(json.dumps({"sessions": []}), encoding="utf-8")
    with pytest.raises(PersistenceError):
        await store.list_sessions()


async def test_failed_write_leaves_file_untouched(store, monkeypatch):
    session_id = await store.create(new_session_draft(T0))
    before = store.path.read_text(encoding="utf-8")

    def fail_replace(*args):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr("gpl_monitor.infrastructure.local_session_store.os.replace", fail_replace)
    with pytest.raises(PersistenceError) as exc_info:
        await store.update(session_id, SessionPatch.close(T0 + 1))
    assert exc_info.value.operation == "write"
    assert store.path.read_text(encoding="utf-8") == before


async def test_replace_all_sorts_newest_first(store, make_session):
    old = make_session("old", [(T0, 1)], end_date=T0 + 1)
    new = make_session("new", [(T0 + 100, 1)])
    await store.replace_all([old, new])
    assert [r["id"] for r in _read_file(store)] == ["new", "old"]
