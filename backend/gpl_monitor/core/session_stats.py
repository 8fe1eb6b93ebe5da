"""Session Stats — pure time-weighted consumption figures for one cylinder session.

Invariants:
    - All inputs come from the session and the evaluation instant (no IO, no clock reads)
    - hours_l1 + hours_l2 + hours_l3 == total_hours
    - total_units == hours_l1 * 1 + hours_l2 * 2 + hours_l3 * 3
    - Empty or out-of-order logs raise InvalidSessionError — never silently zero or negative
    - An active session evaluated before its last log clamps the open tail to zero

Design Decisions:
    - Pure function, not a method on CylinderSession (ADR: session is data, stats are presentation)
    - `now` is a parameter: an active session's figures grow with time and must be
      recomputed on every tick rather than cached
    - Level weight is the HeatLevel integer value itself
"""

from dataclasses import asdict, dataclass

from gpl_monitor.core.cylinder_session import CylinderSession
from gpl_monitor.core.domain_types import EpochMillis, HeatLevel, MILLIS_PER_HOUR
from gpl_monitor.core.errors import ErrorContext, InvalidSessionError


@dataclass(frozen=True)
class SessionStats:
    """Hours spent per level and the weighted unit total."""
    hours_l1: float = 0.0
    hours_l2: float = 0.0
    hours_l3: float = 0.0
    total_hours: float = 0.0
    total_units: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def compute_session_stats(session: CylinderSession, now: EpochMillis) -> SessionStats:
    """Compute per-level hours and weighted units at instant `now`. Pure, no IO."""
    logs = session.logs
    if not logs:
        raise InvalidSessionError(
            "Cannot compute stats for a session without usage logs",
            ErrorContext(session_id=session.id),
        )

    end_time = session.end_date if session.end_date is not None else now
    hours = {level: 0.0 for level in HeatLevel}

    for i, log in enumerate(logs):
        is_last = i + 1 == len(logs)
        next_time = end_time if is_last else logs[i + 1].timestamp
        duration_ms = next_time - log.timestamp
        if duration_ms < 0:
            if is_last and session.end_date is None:
                duration_ms = 0  # evaluation clock behind the newest log
            else:
                raise InvalidSessionError(
                    f"Usage log {i} ends before it starts ({duration_ms} ms)",
                    ErrorContext(
                        session_id=session.id,
                        debug_info={"index": i, "timestamp": log.timestamp},
                    ),
                )
        hours[log.level] += duration_ms / MILLIS_PER_HOUR

    hours_l1 = hours[HeatLevel.LEVEL_1]
    hours_l2 = hours[HeatLevel.LEVEL_2]
    hours_l3 = hours[HeatLevel.LEVEL_3]
    return SessionStats(
        hours_l1=hours_l1,
        hours_l2=hours_l2,
        hours_l3=hours_l3,
        total_hours=hours_l1 + hours_l2 + hours_l3,
        total_units=sum(level.value * h for level, h in hours.items()),
    )


def format_duration(hours: float) -> str:
    """Render hours as 'Xh Ym', or 'Ym' under an hour. Minutes are floored."""
    total_minutes = int(max(hours, 0.0) * 60)
    h, m = divmod(total_minutes, 60)
    if h == 0:
        return f"{m}m"
    return f"{h}h {m}m"


def format_units(units: float, decimals: int = 1) -> str:
    """Render consumption units. History rows use one decimal, the live card two."""
    return f"{units:.{decimals}f}"
