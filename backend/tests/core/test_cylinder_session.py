"""Cylinder Session — tests for the aggregate, patches, and the record codec.

Invariants:
    - New drafts start active with exactly one LEVEL_1 log at the start instant
    - Patches never reopen a session
    - Records use camelCase keys and round-trip through session_from_record
    - Shape violations raise InvalidSessionError with the offending session id
"""

import pytest

from gpl_monitor.core.cylinder_session import (
    CylinderSession, SessionPatch, UsageLog, apply_patch, materialize,
    new_session_draft, session_from_record, session_to_record,
)
from gpl_monitor.core.domain_types import HeatLevel, SessionId
from gpl_monitor.core.errors import InvalidSessionError

T0 = 1_700_000_000_000


def _record(**overrides) -> dict:
    record = {
        "id": "abc",
        "startDate": T0,
        "endDate": None,
        "isActive": True,
        "logs": [{"timestamp": T0, "level": 1}],
    }
    record.update(overrides)
    return record


def test_new_draft_starts_active_at_level_1():
    draft = new_session_draft(T0)
    assert draft.start_date == T0
    assert draft.is_active is True
    assert draft.end_date is None
    assert draft.logs == (UsageLog(T0, HeatLevel.LEVEL_1),)


def test_materialize_attaches_id():
    session = materialize(SessionId("x"), new_session_draft(T0))
    assert session.id == "x"
    assert session.current_level is HeatLevel.LEVEL_1


def test_current_level_is_last_log(make_session):
    session = make_session("a", [(T0, 1), (T0 + 10, 3)])
    assert session.current_level is HeatLevel.LEVEL_3


def test_current_level_without_logs_raises():
    session = CylinderSession(SessionId("a"), T0, None, (), True)
    with pytest.raises(InvalidSessionError):
        session.current_level


def test_close_patch_sets_end_date_and_inactive(make_session):
    closed = apply_patch(make_session("a", [(T0, 1)]), SessionPatch.close(T0 + 5))
    assert closed.is_active is False
    assert closed.end_date == T0 + 5


def test_replace_logs_patch_keeps_other_fields(make_session):
    original = make_session("a", [(T0, 1)])
    logs = (*original.logs, UsageLog(T0 + 5, HeatLevel.LEVEL_2))
    patched = apply_patch(original, SessionPatch.replace_logs(logs))
    assert patched.logs == logs
    assert patched.is_active is True
    assert patched.start_date == original.start_date


def test_empty_patch_is_identity(make_session):
    original = make_session("a", [(T0, 1)])
    assert apply_patch(original, SessionPatch()) == original


def test_session_to_record_uses_camel_case(make_session):
    record = session_to_record(make_session("a", [(T0, 1), (T0 + 7, 2)], end_date=T0 + 9))
    assert record == {
        "id": "a",
        "startDate": T0,
        "endDate": T0 + 9,
        "isActive": False,
        "logs": [{"timestamp": T0, "level": 1}, {"timestamp": T0 + 7, "level": 2}],
    }


def test_record_round_trip(make_session):
    session = make_session("a", [(T0, 1), (T0 + 7, 3)], end_date=T0 + 9)
    assert session_from_record(session_to_record(session)) == session


def test_integral_float_timestamps_accepted():
    session = session_from_record(_record(startDate=float(T0)))
    assert session.start_date == T0
    assert isinstance(session.start_date, int)


@pytest.mark.parametrize("overrides", [
    {"logs": []},
    {"logs": None},
    {"logs": [{"timestamp": T0, "level": 4}]},
    {"logs": [{"timestamp": True, "level": 1}]},
    {"logs": ["not-a-log"]},
    {"startDate": "yesterday"},
    {"startDate": T0 + 0.5},
    {"isActive": "yes"},
    {"isActive": False},
    {"endDate": T0 + 1},
    {"id": ""},
])
def test_malformed_records_raise(overrides):
    with pytest.raises(InvalidSessionError):
        session_from_record(_record(**overrides))


def test_non_dict_record_raises():
    with pytest.raises(InvalidSessionError):
        session_from_record(["abc"])


def test_invalid_record_error_carries_session_id():
    with pytest.raises(InvalidSessionError) as exc_info:
        session_from_record(_record(logs=[]))
    assert exc_info.value.context.session_id == "abc"
    assert exc_info.value.code == "INVALID_SESSION"
