"""Session View Model — tests for partition tracking and dashboard snapshots.

Invariants:
    - Initial collection arrives on start(); later ones on every store write
    - A conflict keeps the previous partition and reaches conflict listeners
    - snapshot() evaluates stats at the requested instant
    - An unreadable session is listed with null stats and reported, never fatal
"""

from gpl_monitor.core.cylinder_session import new_session_draft
from gpl_monitor.core.domain_types import MILLIS_PER_HOUR, StoreMode
from gpl_monitor.core.errors import ConcurrentActiveSessionError
from gpl_monitor.services.session_view import SessionViewModel, describe_session

T0 = 1_700_000_000_000
HOUR = MILLIS_PER_HOUR


async def test_start_loads_initial_partition(memory_store, make_session, clock):
    memory_store.add(make_session("live", [(T0, 1)]))
    memory_store.add(make_session("old", [(T0 - 5 * HOUR, 2)], end_date=T0 - HOUR))
    view = SessionViewModel(memory_store, clock)
    await view.start()

    assert view.active.id == "live"
    assert [s.id for s in view.history] == ["old"]
    assert view.updates == 1


async def test_partition_follows_store_writes(memory_store, clock):
    view = SessionViewModel(memory_store, clock)
    await view.start()
    assert view.active is None

    session_id = await memory_store.create(new_session_draft(T0))
    assert view.active.id == session_id
    assert view.updates == 2


async def test_listeners_notified_and_removable(memory_store, clock):
    view = SessionViewModel(memory_store, clock)
    seen = []
    remove = view.add_listener(seen.append)
    await view.start()
    remove()
    await memory_store.create(new_session_draft(T0))
    assert len(seen) == 1


async def test_failing_listener_is_isolated(memory_store, clock):
    view = SessionViewModel(memory_store, clock)
    seen = []

    def broken(_partition):
        raise ValueError("render bug")

    view.add_listener(broken)
    view.add_listener(seen.append)
    await view.start()
    assert len(seen) == 1


async def test_conflict_keeps_previous_partition(memory_store, make_session, clock):
    memory_store.add(make_session("one", [(T0, 1)]))
    view = SessionViewModel(memory_store, clock)
    conflicts = []
    view.add_conflict_listener(conflicts.append)
    await view.start()
    before = view.partition

    memory_store.add(make_session("two", [(T0 + HOUR, 1)]))
    await memory_store.refresh()

    assert view.partition == before
    assert isinstance(view.conflict, ConcurrentActiveSessionError)
    assert len(conflicts) == 1
    assert view.snapshot()["conflict"]["error"]["code"] == "CONCURRENT_ACTIVE_SESSION"


async def test_conflict_clears_when_resolved(memory_store, make_session, clock):
    memory_store.add(make_session("one", [(T0, 1)]))
    memory_store.add(make_session("two", [(T0 + HOUR, 1)]))
    view = SessionViewModel(memory_store, clock)
    await view.start()
    assert view.conflict is not None

    memory_store.sessions.pop("one")
    await memory_store.refresh()
    assert view.conflict is None
    assert view.active.id == "two"


async def test_stop_unsubscribes(memory_store, clock):
    view = SessionViewModel(memory_store, clock)
    await view.start()
    view.stop()
    await memory_store.create(new_session_draft(T0))
    assert view.active is None


async def test_snapshot_evaluates_stats_at_now(memory_store, make_session, clock):
    memory_store.add(make_session("live", [(T0, 1), (T0 + HOUR, 2)]))
    memory_store.add(make_session("old", [(T0 - 3 * HOUR, 3)], end_date=T0 - 2 * HOUR))
    view = SessionViewModel(memory_store, clock)
    await view.start()

    snapshot = view.snapshot(T0 + 2 * HOUR)
    assert snapshot["evaluated_at"] == T0 + 2 * HOUR
    assert snapshot["mode"] == "connected"
    assert snapshot["is_remote"] is True

    active = snapshot["active"]
    assert active["id"] == "live"
    assert active["currentLevel"] == 2
    assert active["stats"]["total_units"] == 3.0
    assert active["duration"] == "2h 0m"
    assert active["units"] == "3.00"

    history = snapshot["history"]
    assert [h["id"] for h in history] == ["old"]
    assert history[0]["stats"]["hours_l3"] == 1.0
    assert history[0]["units"] == "3.0"
    assert snapshot["invalid"] == []


async def test_snapshot_defaults_to_clock(memory_store, make_session, clock):
    memory_store.add(make_session("live", [(T0, 1)]))
    view = SessionViewModel(memory_store, clock)
    await view.start()
    clock.advance(30 * 60_000)
    assert view.snapshot()["active"]["duration"] == "30m"


async def test_local_store_reports_not_remote(make_store, clock):
    view = SessionViewModel(make_store(StoreMode.LOCAL_ONLY), clock)
    await view.start()
    assert view.is_remote is False
    assert view.snapshot()["mode"] == "local_only"


def test_describe_session_closed(make_session):
    session = make_session("c", [(T0, 1)], end_date=T0 + 90 * 60_000)
    description = describe_session(session, T0)
    assert description["isActive"] is False
    assert description["duration"] == "1h 30m"
    assert description["units"] == "1.5"


async def test_snapshot_survives_unreadable_history_entry(memory_store, make_session, clock):
    memory_store.add(make_session("live", [(T0, 2)]))
    memory_store.add(make_session(
        "skewed", [(T0 - 3 * HOUR, 1), (T0 - HOUR, 3)], end_date=T0 - 2 * HOUR,
    ))
    memory_store.add(make_session("old", [(T0 - 5 * HOUR, 1)], end_date=T0 - 4 * HOUR))
    view = SessionViewModel(memory_store, clock)
    await view.start()

    snapshot = view.snapshot(T0 + HOUR)
    assert snapshot["active"]["stats"]["hours_l2"] == 1.0

    by_id = {h["id"]: h for h in snapshot["history"]}
    assert by_id["old"]["stats"]["hours_l1"] == 1.0
    assert by_id["skewed"]["stats"] is None
    assert by_id["skewed"]["currentLevel"] == 3

    [error] = snapshot["invalid"]
    assert error["error"]["code"] == "INVALID_SESSION"
    assert error["error"]["context"]["session_id"] == "skewed"


async def test_snapshot_survives_unreadable_active_session(memory_store, make_session, clock):
    memory_store.add(make_session("live", [(T0, 1), (T0 - HOUR, 2)]))
    view = SessionViewModel(memory_store, clock)
    await view.start()

    snapshot = view.snapshot(T0 + HOUR)
    assert snapshot["active"]["id"] == "live"
    assert snapshot["active"]["stats"] is None
    assert len(snapshot["invalid"]) == 1
