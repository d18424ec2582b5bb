"""Schemas for zone registry and responsibility payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ZoneCreate(SQLModel):
    """Payload for registering a zone."""

    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    description: str = ""


class ZoneUpdate(SQLModel):
    """Payload for updating a zone; unset fields are left untouched."""

    name: str | None = None
    code: str | None = None
    description: str | None = None
    is_active: bool | None = None


class ZoneRead(SQLModel):
    """Zone payload returned by read endpoints."""

    id: UUID
    name: str
    code: str
    description: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ZoneResponsibilityRead(SQLModel):
    """Responsibility payload returned by read endpoints."""

    id: UUID
    agent_id: UUID
    zone_id: UUID
    is_active: bool
    assigned_by: UUID | None = None
    assigned_at: datetime
    updated_at: datetime
