"""Schemas for zone delegation payloads."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlmodel import SQLModel

from hse_core.core.time import as_naive_utc
from hse_core.models.zone_delegations import DelegationState

if TYPE_CHECKING:
    from hse_core.models.zone_delegations import ZoneDelegation

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class DelegationCreate(SQLModel):
    """Payload for delegating a zone from its owner to another agent."""

    zone_id: UUID
    from_agent_id: UUID
    to_agent_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str | None = None


class DelegationUpdate(SQLModel):
    """Payload for editing a delegation that has not yet lapsed."""

    start_at: datetime | None = None
    end_at: datetime | None = None
    reason: str | None = None


class DelegationRead(SQLModel):
    """Delegation payload enriched with its lifecycle state at read time."""

    id: UUID
    zone_id: UUID
    from_agent_id: UUID
    to_agent_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str | None = None
    is_active: bool
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    state: DelegationState
    is_currently_active: bool
    days_remaining: int | None = None

    @classmethod
    def from_delegation(cls, delegation: ZoneDelegation, *, now: datetime) -> DelegationRead:
        now = as_naive_utc(now)
        state = delegation.state(now)
        days_remaining = None
        if state in (DelegationState.SCHEDULED, DelegationState.ACTIVE):
            days_remaining = (delegation.end_at - now).days
        return cls(
            id=delegation.id,
            zone_id=delegation.zone_id,
            from_agent_id=delegation.from_agent_id,
            to_agent_id=delegation.to_agent_id,
            start_at=delegation.start_at,
            end_at=delegation.end_at,
            reason=delegation.reason,
            is_active=delegation.is_active,
            created_by=delegation.created_by,
            created_at=delegation.created_at,
            updated_at=delegation.updated_at,
            state=state,
            is_currently_active=state == DelegationState.ACTIVE,
            days_remaining=days_remaining,
        )
