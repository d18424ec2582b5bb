"""Permanent zone responsibility assignments and ownership queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from hse_core.core.errors import ConflictError, NotFoundError, ValidationError
from hse_core.core.logging import get_logger
from hse_core.core.time import normalize_now
from hse_core.models.zone_delegations import ZoneDelegation
from hse_core.models.zone_responsibilities import ZoneResponsibility
from hse_core.models.zones import Zone
from hse_core.services.access_resolver import get_active_responsibility, get_agent, require_admin
from hse_core.services.audit import record_audit
from hse_core.services.zones import lock_zone

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


async def _commit_assignment(session: AsyncSession, zone_id: UUID) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        # Partial unique index on active responsibilities lost a race.
        await session.rollback()
        raise ConflictError(f"Zone {zone_id} already has an active owner") from exc


async def assign_zone(
    session: AsyncSession,
    *,
    agent_id: UUID,
    zone_id: UUID,
    actor_id: UUID,
    now: datetime | None = None,
) -> ZoneResponsibility:
    """Make *agent_id* the permanent owner of *zone_id*.

    Re-assigning the current owner returns the existing record unchanged; a
    previously revoked record for the same pair is reactivated.
    """
    now = normalize_now(now)
    await require_admin(session, actor_id)
    agent = await get_agent(session, agent_id)
    if not agent.is_active or not agent.can_hold_zones:
        raise ValidationError("Only active HSE agents can be responsible for a zone")

    zone = await lock_zone(session, zone_id)
    if not zone.is_active:
        raise ConflictError(f"Zone {zone.code} is inactive")

    current = await get_active_responsibility(session, zone_id)
    if current is not None:
        if current.agent_id == agent_id:
            return current
        raise ConflictError(f"Zone {zone.code} is already assigned to another agent")

    responsibility = await ZoneResponsibility.objects.filter_by(
        zone_id=zone_id,
        agent_id=agent_id,
    ).first(session)
    if responsibility is None:
        responsibility = ZoneResponsibility(agent_id=agent_id, zone_id=zone_id)
    responsibility.is_active = True
    responsibility.assigned_by = actor_id
    responsibility.assigned_at = now
    responsibility.updated_at = now
    session.add(responsibility)

    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.responsibility.assigned",
        zone_id=zone_id,
        target_type="zone_responsibility",
        target_id=responsibility.id,
        payload={"agent_id": str(agent_id)},
        commit=False,
    )
    await _commit_assignment(session, zone_id)
    await session.refresh(responsibility)
    logger.info(
        "zone.responsibility.assigned",
        extra={"zone_id": str(zone_id), "agent_id": str(agent_id)},
    )
    return responsibility


async def revoke_zone(
    session: AsyncSession,
    *,
    agent_id: UUID,
    zone_id: UUID,
    actor_id: UUID,
    now: datetime | None = None,
) -> ZoneResponsibility:
    """Deactivate the (agent, zone) responsibility.

    Refused while a delegation from this owner for the zone has not lapsed,
    so no live delegation is ever left without the responsibility behind it.
    """
    now = normalize_now(now)
    await require_admin(session, actor_id)
    await lock_zone(session, zone_id)

    responsibility = await ZoneResponsibility.objects.filter_by(
        zone_id=zone_id,
        agent_id=agent_id,
        is_active=True,
    ).first(session)
    if responsibility is None:
        raise NotFoundError(f"Agent {agent_id} holds no active responsibility for zone {zone_id}")

    # Only SCHEDULED or ACTIVE delegations block. An EXPIRED one keeps its flag
    # set but no longer depends on this responsibility.
    blocking = (
        await ZoneDelegation.objects.filter_by(
            zone_id=zone_id,
            from_agent_id=agent_id,
            is_active=True,
        )
        .filter(col(ZoneDelegation.end_at) > now)
        .all(session)
    )
    if blocking:
        raise ConflictError(
            f"End the {len(blocking)} pending delegation(s) from this agent before revoking",
        )

    responsibility.is_active = False
    responsibility.updated_at = now
    session.add(responsibility)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.responsibility.revoked",
        zone_id=zone_id,
        target_type="zone_responsibility",
        target_id=responsibility.id,
        payload={"agent_id": str(agent_id)},
        commit=False,
    )
    await session.commit()
    await session.refresh(responsibility)
    logger.info(
        "zone.responsibility.revoked",
        extra={"zone_id": str(zone_id), "agent_id": str(agent_id)},
    )
    return responsibility


async def list_zone_responsibilities(
    session: AsyncSession,
    *,
    zone_id: UUID | None = None,
    agent_id: UUID | None = None,
) -> list[ZoneResponsibility]:
    """Active responsibilities, optionally narrowed to a zone or an agent."""
    queryset = ZoneResponsibility.objects.filter_by(is_active=True)
    if zone_id is not None:
        queryset = queryset.filter_by(zone_id=zone_id)
    if agent_id is not None:
        queryset = queryset.filter_by(agent_id=agent_id)
    return await queryset.order_by(col(ZoneResponsibility.assigned_at)).all(session)


async def get_responsible_zone_ids(
    session: AsyncSession,
    agent_id: UUID,
    *,
    now: datetime | None = None,
) -> list[UUID]:
    """Zones *agent_id* may act on at *now*.

    Admins see every active zone. Other agents see the zones they own plus the
    zones currently delegated to them; a zone delegated away stays in the
    owner's list.
    """
    now = normalize_now(now)
    agent = await get_agent(session, agent_id)
    if not agent.is_active:
        return []
    if agent.is_admin:
        zones = await Zone.objects.filter_by(is_active=True).order_by(col(Zone.name)).all(session)
        return [zone.id for zone in zones]

    owned = await list_zone_responsibilities(session, agent_id=agent_id)
    delegated = (
        await ZoneDelegation.objects.filter_by(to_agent_id=agent_id, is_active=True)
        .filter(col(ZoneDelegation.start_at) <= now, col(ZoneDelegation.end_at) > now)
        .all(session)
    )
    zone_ids: list[UUID] = []
    for zone_id in [item.zone_id for item in owned] + [item.zone_id for item in delegated]:
        if zone_id not in zone_ids:
            zone_ids.append(zone_id)
    return zone_ids
