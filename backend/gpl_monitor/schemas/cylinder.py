"""Cylinder Schemas — Pydantic models for the cylinder session endpoints.

Invariants:
    - ChangeLevelRequest.level is restricted to the three heat levels (1, 2, 3)
    - previous_active_id, when given, is a non-blank string

Design Decisions:
    - Literal type for level over HeatLevel enum: Pydantic rejects 0/4 with a field error
    - Dashboard payloads are returned as plain dicts built by the view model
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class StartCylinderRequest(BaseModel):
    """Start a cylinder, closing the previous active one if named."""
    previous_active_id: str | None = Field(None, max_length=64)

    @field_validator("previous_active_id")
    @classmethod
    def strip_previous_id(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("previous_active_id cannot be blank")
        return v


class StartCylinderResponse(BaseModel):
    id: str


class ChangeLevelRequest(BaseModel):
    level: Literal[1, 2, 3]


class UsageLogResponse(BaseModel):
    timestamp: int
    level: int


class ChangeLevelResponse(BaseModel):
    """changed=False means the requested level was already current."""
    changed: bool
    log: UsageLogResponse | None = None


class CloseCylinderResponse(BaseModel):
    id: str
    closed: bool = True
