"""Cylinder Session ORM — one row per cylinder, usage logs stored inline.

Invariants:
    - id is a uuid4 string primary key (generated client-side)
    - logs is a non-empty JSON array of {timestamp, level}
    - is_active is True iff end_date is NULL
    - Timestamps are epoch milliseconds (BigInteger), not DateTime

Design Decisions:
    - JSON column for logs: the whole array is replaced on each level change
      (last-write-wins, mirrors the document store the app was built against)
    - Epoch millis over DateTime: the stats engine works in integer millis end to end
    - to_domain/from_draft keep the ORM at the shell boundary; core never sees rows
"""

import uuid

from sqlalchemy import BigInteger, Boolean, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from gpl_monitor.core.cylinder_session import (
    CylinderSession, CylinderSessionDraft, logs_from_records, logs_to_records,
)
from gpl_monitor.core.domain_types import EpochMillis, SessionId
from gpl_monitor.core.errors import ErrorContext, InvalidSessionError
from gpl_monitor.db.base import Base


class CylinderSessionRecord(Base):
    """Persisted cylinder session."""
    __tablename__ = "cylinder_sessions"
    __table_args__ = (
        Index("ix_cylinder_sessions_is_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    start_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_date: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    logs: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    @classmethod
    def from_draft(cls, draft: CylinderSessionDraft) -> "CylinderSessionRecord":
        return cls(
            id=str(uuid.uuid4()),
            start_date=int(draft.start_date),
            end_date=draft.end_date,
            is_active=draft.is_active,
            logs=logs_to_records(draft.logs),
        )

    def to_domain(self) -> CylinderSession:
        """Map to the core aggregate. Raises InvalidSessionError on bad rows."""
        if self.is_active != (self.end_date is None):
            raise InvalidSessionError(
                "is_active disagrees with end_date",
                ErrorContext(session_id=self.id),
            )
        return CylinderSession(
            id=SessionId(self.id),
            start_date=EpochMillis(self.start_date),
            end_date=EpochMillis(self.end_date) if self.end_date is not None else None,
            logs=logs_from_records(self.logs, self.id),
            is_active=self.is_active,
        )
