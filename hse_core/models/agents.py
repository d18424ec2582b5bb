"""Agent model: principals who own zones, receive delegations, or execute work."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from hse_core.core.time import utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class AgentRole(str, Enum):
    """Role of an agent.

    ADMIN manages the registry and may act on any zone; HSE agents own or
    receive zones; PROFILE agents only execute assigned sub-actions.
    """

    ADMIN = "admin"
    HSE = "hse"
    PROFILE = "profile"


class Agent(QueryModel, table=True):
    """Principal identity as seen by the access resolver."""

    __tablename__ = "agents"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(index=True)
    email: str | None = Field(default=None, index=True)
    role: AgentRole = Field(default=AgentRole.HSE, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == AgentRole.ADMIN

    @property
    def can_hold_zones(self) -> bool:
        return self.role == AgentRole.HSE
