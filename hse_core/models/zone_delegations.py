"""Time-boxed zone delegations from the owning agent to a stand-in."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from hse_core.core.time import as_naive_utc, utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class DelegationState(str, Enum):
    """Lifecycle of a delegation, derived from its active flag and the clock.

    SCHEDULED and ACTIVE are both administratively active; only ACTIVE
    transfers ownership.
    """

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ZoneDelegation(QueryModel, table=True):
    """Temporary hand-over of a zone for the half-open window [start_at, end_at)."""

    __tablename__ = "zone_delegations"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    zone_id: UUID = Field(foreign_key="zones.id", index=True)
    from_agent_id: UUID = Field(foreign_key="agents.id", index=True)
    to_agent_id: UUID = Field(foreign_key="agents.id", index=True)
    start_at: datetime = Field(index=True)
    end_at: datetime = Field(index=True)
    reason: str | None = None
    is_active: bool = Field(default=True, index=True)
    created_by: UUID = Field(foreign_key="agents.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def covers(self, moment: datetime) -> bool:
        """Whether *moment* falls inside [start_at, end_at)."""
        moment = as_naive_utc(moment)
        return self.start_at <= moment < self.end_at

    def is_currently_active(self, now: datetime) -> bool:
        return self.is_active and self.covers(now)

    def overlaps(self, start_at: datetime, end_at: datetime) -> bool:
        return self.start_at < end_at and start_at < self.end_at

    def state(self, now: datetime) -> DelegationState:
        now = as_naive_utc(now)
        if not self.is_active:
            return DelegationState.REVOKED
        if now >= self.end_at:
            return DelegationState.EXPIRED
        if now < self.start_at:
            return DelegationState.SCHEDULED
        return DelegationState.ACTIVE
