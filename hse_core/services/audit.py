"""Audit logging service for zone ownership and work-item actions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from hse_core.core.time import utcnow
from hse_core.models.audit_entries import AuditEntry

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


async def record_audit(
    session: AsyncSession,
    *,
    actor_id: UUID,
    action: str,
    zone_id: UUID | None = None,
    target_type: str = "",
    target_id: UUID | None = None,
    payload: dict[str, object] | None = None,
    commit: bool = True,
) -> AuditEntry:
    """Create an append-only audit log entry."""
    entry = AuditEntry(
        zone_id=zone_id,
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payload=payload,
        created_at=utcnow(),
    )
    session.add(entry)
    if commit:
        await session.commit()
        await session.refresh(entry)
    return entry


async def list_audit_entries(
    session: AsyncSession,
    *,
    zone_id: UUID | None = None,
    target_id: UUID | None = None,
    limit: int = 100,
) -> list[AuditEntry]:
    """Return the newest audit entries, optionally narrowed to a zone or target."""
    queryset = AuditEntry.objects.all()
    if zone_id is not None:
        queryset = queryset.filter_by(zone_id=zone_id)
    if target_id is not None:
        queryset = queryset.filter_by(target_id=target_id)
    return await queryset.order_by(col(AuditEntry.created_at).desc()).limit(limit).all(session)
