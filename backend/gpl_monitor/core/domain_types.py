"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - SessionId wraps the opaque store-assigned id — never use bare str in domain logic
    - EpochMillis is an integer Unix timestamp in milliseconds
    - HeatLevel values are the per-hour unit cost of the level (1, 2, 3)
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - IntEnum for HeatLevel: persisted and sent over the wire as the bare integer
    - str Enum for StoreMode: serializes to JSON without custom encoders
"""

from enum import Enum, IntEnum
from typing import Callable, NewType


# ─── Identity Types ──────────────────────────────────────────────

SessionId = NewType("SessionId", str)


# ─── Value Types ─────────────────────────────────────────────────

EpochMillis = NewType("EpochMillis", int)

Clock = Callable[[], int]  # returns EpochMillis


# ─── Constants ───────────────────────────────────────────────────

MILLIS_PER_HOUR = 3_600_000
STORAGE_KEY_DEFAULT = "gpl_monitor_data"


# ─── Enums ───────────────────────────────────────────────────────

class HeatLevel(IntEnum):
    """Burner heat setting. Level k consumes k units per hour."""
    LEVEL_1 = 1
    LEVEL_2 = 2
    LEVEL_3 = 3


class StoreMode(str, Enum):
    """Which backend the session store is currently serving from."""
    CONNECTED = "connected"
    DEGRADED = "degraded"
    LOCAL_ONLY = "local_only"


class MutationKind(str, Enum):
    """Lifecycle mutations guarded against double submission."""
    START = "start"
    CHANGE_LEVEL = "change_level"
    CLOSE = "close"
