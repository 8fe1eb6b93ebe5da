"""Cylinder Session — the aggregate tracked by the monitor, plus its record codec.

Invariants:
    - logs is never empty; a new session starts with exactly one LEVEL_1 log at start_date
    - is_active is True iff end_date is None
    - logs[0].timestamp == start_date
    - UsageLog and CylinderSession are frozen — mutations produce new instances
    - Records use camelCase keys: id, startDate, endDate, isActive, logs[{timestamp, level}]

Design Decisions:
    - Frozen dataclasses, not ORM objects: core stays free of IO (ORM row mapping lives in models/)
    - logs as tuple: an appended log never changes once written
    - session_from_record validates shape and raises InvalidSessionError; callers decide
      whether to skip or fail
"""

from dataclasses import dataclass, replace
from typing import Any

from gpl_monitor.core.domain_types import EpochMillis, HeatLevel, SessionId
from gpl_monitor.core.errors import ErrorContext, InvalidSessionError


@dataclass(frozen=True)
class UsageLog:
    """A switch to `level` at `timestamp`."""
    timestamp: EpochMillis
    level: HeatLevel


@dataclass(frozen=True)
class CylinderSessionDraft:
    """Session fields before the store assigns an id."""
    start_date: EpochMillis
    logs: tuple[UsageLog, ...]
    end_date: EpochMillis | None = None
    is_active: bool = True


@dataclass(frozen=True)
class CylinderSession:
    """One cylinder, from install to closure."""
    id: SessionId
    start_date: EpochMillis
    end_date: EpochMillis | None
    logs: tuple[UsageLog, ...]
    is_active: bool

    @property
    def current_level(self) -> HeatLevel:
        """Level of the most recent log entry."""
        if not self.logs:
            raise InvalidSessionError(
                "Session has no usage logs",
                ErrorContext(session_id=self.id),
            )
        return self.logs[-1].level


@dataclass(frozen=True)
class SessionPatch:
    """Partial update. Fields left as None are not touched (sessions never reopen)."""
    logs: tuple[UsageLog, ...] | None = None
    is_active: bool | None = None
    end_date: EpochMillis | None = None

    @classmethod
    def close(cls, end_date: EpochMillis) -> "SessionPatch":
        return cls(is_active=False, end_date=end_date)

    @classmethod
    def replace_logs(cls, logs: tuple[UsageLog, ...]) -> "SessionPatch":
        return cls(logs=logs)


def new_session_draft(now: EpochMillis) -> CylinderSessionDraft:
    """Fresh active session seeded with a single LEVEL_1 log at `now`."""
    return CylinderSessionDraft(
        start_date=now,
        logs=(UsageLog(timestamp=now, level=HeatLevel.LEVEL_1),),
    )


def materialize(session_id: SessionId, draft: CylinderSessionDraft) -> CylinderSession:
    """Attach a store-assigned id to a draft."""
    return CylinderSession(
        id=session_id,
        start_date=draft.start_date,
        end_date=draft.end_date,
        logs=draft.logs,
        is_active=draft.is_active,
    )


def apply_patch(session: CylinderSession, patch: SessionPatch) -> CylinderSession:
    """Return `session` with the patch fields applied. Pure."""
    changes: dict[str, Any] = {}
    if patch.logs is not None:
        changes["logs"] = tuple(patch.logs)
    if patch.is_active is not None:
        changes["is_active"] = patch.is_active
    if patch.end_date is not None:
        changes["end_date"] = patch.end_date
    return replace(session, **changes)


# ─── Record codec ────────────────────────────────────────────────

def log_to_record(log: UsageLog) -> dict:
    return {"timestamp": int(log.timestamp), "level": int(log.level)}


def logs_to_records(logs: tuple[UsageLog, ...] | list[UsageLog]) -> list[dict]:
    return [log_to_record(log) for log in logs]


def session_to_record(session: CylinderSession) -> dict:
    """Serialize to the persisted camelCase record shape."""
    return {
        "id": session.id,
        "startDate": int(session.start_date),
        "endDate": int(session.end_date) if session.end_date is not None else None,
        "isActive": session.is_active,
        "logs": logs_to_records(session.logs),
    }


def _as_millis(value: Any, field_name: str, session_id: str | None) -> EpochMillis:
    """Coerce an integral number to EpochMillis or raise InvalidSessionError."""
    if isinstance(value, bool):
        value = None  # bool is an int subclass; never a timestamp
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidSessionError(
            f"Field '{field_name}' is not an integer timestamp: {value!r}",
            ErrorContext(session_id=session_id),
        )
    return EpochMillis(value)


def log_from_record(raw: Any, session_id: str | None = None) -> UsageLog:
    if not isinstance(raw, dict):
        raise InvalidSessionError(
            f"Usage log is not an object: {raw!r}",
            ErrorContext(session_id=session_id),
        )
    try:
        level = HeatLevel(raw.get("level"))
    except ValueError:
        raise InvalidSessionError(
            f"Unknown heat level: {raw.get('level')!r}",
            ErrorContext(session_id=session_id),
        )
    return UsageLog(
        timestamp=_as_millis(raw.get("timestamp"), "timestamp", session_id),
        level=level,
    )


def logs_from_records(raw_logs: Any, session_id: str | None = None) -> tuple[UsageLog, ...]:
    if not isinstance(raw_logs, list) or not raw_logs:
        raise InvalidSessionError(
            "Session has no usage logs",
            ErrorContext(session_id=session_id),
        )
    return tuple(log_from_record(raw, session_id) for raw in raw_logs)


def session_from_record(raw: Any) -> CylinderSession:
    """Parse a persisted record. Raises InvalidSessionError on any shape violation."""
    if not isinstance(raw, dict):
        raise InvalidSessionError(f"Session record is not an object: {raw!r}")
    session_id = raw.get("id")
    if not isinstance(session_id, str) or not session_id:
        raise InvalidSessionError(f"Session record has no id: {raw!r}")

    start_date = _as_millis(raw.get("startDate"), "startDate", session_id)
    raw_end = raw.get("endDate")
    end_date = None if raw_end is None else _as_millis(raw_end, "endDate", session_id)
    is_active = raw.get("isActive")
    if not isinstance(is_active, bool):
        raise InvalidSessionError(
            f"Field 'isActive' is not a boolean: {is_active!r}",
            ErrorContext(session_id=session_id),
        )
    if is_active != (end_date is None):
        raise InvalidSessionError(
            "isActive disagrees with endDate",
            ErrorContext(session_id=session_id),
        )

    return CylinderSession(
        id=SessionId(session_id),
        start_date=start_date,
        end_date=end_date,
        logs=logs_from_records(raw.get("logs"), session_id),
        is_active=is_active,
    )
