"""Error Hierarchy — typed, categorized exceptions for all GPL Monitor failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (4xx) are caller mistakes or rule violations; persistence errors (503) are infrastructure
    - to_response() produces REST envelope; to_sse_event() produces SSE envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with GplMonitorError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    PERSISTENCE = "persistence"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    operation: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class GplMonitorError(Exception):
    """Base exception for all GPL Monitor errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "operation": self.context.operation,
                },
            }
        }

    def to_sse_event(self) -> dict:
        """Convert to SSE error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "severity": self.severity.value,
                "recoverable": self.severity in (
                    ErrorSeverity.INFO, ErrorSeverity.WARNING,
                ),
            },
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidSessionError(GplMonitorError):
    """Session data violates its shape invariants (empty logs, bad timestamps)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_SESSION", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 422,
        )


class SessionNotFoundError(GplMonitorError):
    """Requested cylinder session does not exist in the store."""
    def __init__(self, session_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.session_id = session_id
        super().__init__(
            f"Cylinder session '{session_id}' not found",
            "SESSION_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )


class SessionClosedError(GplMonitorError):
    """Mutation attempted on a session that is no longer active."""
    def __init__(self, session_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.session_id = session_id
        super().__init__(
            f"Cylinder session '{session_id}' is closed",
            "SESSION_CLOSED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )


class ConcurrentActiveSessionError(GplMonitorError):
    """More than one session is flagged active at the same time."""
    def __init__(self, session_ids: list[str], context: ErrorContext | None = None):
        super().__init__(
            f"Multiple active cylinder sessions: {', '.join(session_ids)}",
            "CONCURRENT_ACTIVE_SESSION", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.session_ids = session_ids


class MutationInProgressError(GplMonitorError):
    """Same mutation already in flight for this session (double submission)."""
    def __init__(self, operation: str, session_id: str | None = None):
        ctx = ErrorContext(session_id=session_id, operation=operation)
        super().__init__(
            f"Operation '{operation}' already in progress",
            "MUTATION_IN_PROGRESS", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.operation = operation


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PersistenceError(GplMonitorError):
    """Session store unreachable, permission denied, or serialization failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        if ctx.user_message is None:
            ctx.user_message = "Storage unavailable. Check your connection."
        super().__init__(
            f"Store {operation} failed: {message}",
            "PERSISTENCE_ERROR", ErrorCategory.PERSISTENCE,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.operation = operation
