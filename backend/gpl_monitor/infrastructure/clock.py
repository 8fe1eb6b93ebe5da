"""Clock — wall-clock source injected into the lifecycle manager and view model."""

import time

from gpl_monitor.core.domain_types import EpochMillis


def system_clock() -> EpochMillis:
    """Current wall-clock time in epoch milliseconds."""
    return EpochMillis(time.time_ns() // 1_000_000)
