"""Time-boxed zone delegations: creation, edits, early end and queries.

Delegation windows are half-open `[start_at, end_at)`. Expiry is never
written back; a delegation simply stops covering `now` once `end_at` passes.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from sqlmodel import col, or_

from hse_core.core.config import settings
from hse_core.core.errors import ConflictError, NotFoundError, ValidationError
from hse_core.core.logging import get_logger
from hse_core.core.time import as_naive_utc, normalize_now
from hse_core.models.zone_delegations import DelegationState, ZoneDelegation
from hse_core.services.access_resolver import get_active_responsibility, get_agent, require_admin
from hse_core.services.audit import record_audit
from hse_core.services.notifications import ZoneNotification, enqueue_notification
from hse_core.services.zones import lock_zone

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from hse_core.schemas.delegations import DelegationCreate, DelegationUpdate

logger = get_logger(__name__)

_EDITABLE_STATES = frozenset({DelegationState.SCHEDULED, DelegationState.ACTIVE})


def delegation_state(delegation: ZoneDelegation, now: datetime | None = None) -> DelegationState:
    return delegation.state(normalize_now(now))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_window(start_at: datetime, end_at: datetime) -> None:
    """Reject empty or inverted windows and windows longer than the configured cap."""
    if start_at >= end_at:
        raise ValidationError("Delegation start must be before its end")
    max_days = settings.delegation_max_days
    if max_days and end_at - start_at > timedelta(days=max_days):
        raise ValidationError(f"Delegation window cannot exceed {max_days} days")


async def _validate_delegate(session: AsyncSession, agent_id: UUID, *, label: str) -> None:
    agent = await get_agent(session, agent_id)
    if not agent.is_active or not agent.can_hold_zones:
        raise ValidationError(f"The {label} agent must be an active HSE agent")


async def _find_overlap(
    session: AsyncSession,
    *,
    zone_id: UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_id: UUID | None = None,
) -> ZoneDelegation | None:
    queryset = ZoneDelegation.objects.filter_by(zone_id=zone_id, is_active=True).filter(
        col(ZoneDelegation.start_at) < end_at,
        col(ZoneDelegation.end_at) > start_at,
    )
    if exclude_id is not None:
        queryset = queryset.filter(col(ZoneDelegation.id) != exclude_id)
    return await queryset.first(session)


def _notify(event_type: str, delegation: ZoneDelegation) -> None:
    try:
        enqueue_notification(
            ZoneNotification(
                event_type=event_type,
                zone_id=delegation.zone_id,
                target_ids=[delegation.from_agent_id, delegation.to_agent_id],
                payload={
                    "delegation_id": str(delegation.id),
                    "start_at": delegation.start_at.isoformat(),
                    "end_at": delegation.end_at.isoformat(),
                },
            ),
        )
    except Exception:
        logger.warning(
            "zone.delegation.notify_failed",
            extra={"delegation_id": str(delegation.id), "event_type": event_type},
            exc_info=True,
        )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_delegation(
    session: AsyncSession,
    payload: DelegationCreate,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> ZoneDelegation:
    """Hand a zone from its current owner to another agent for a window."""
    now = normalize_now(now)
    start_at = as_naive_utc(payload.start_at)
    end_at = as_naive_utc(payload.end_at)

    await require_admin(session, actor_id)
    if payload.from_agent_id == payload.to_agent_id:
        raise ValidationError("An agent cannot delegate a zone to itself")
    validate_window(start_at, end_at)
    if start_at < now:
        raise ValidationError("Delegation cannot start in the past")
    await _validate_delegate(session, payload.from_agent_id, label="delegating")
    await _validate_delegate(session, payload.to_agent_id, label="receiving")

    zone = await lock_zone(session, payload.zone_id)
    if not zone.is_active:
        raise ConflictError(f"Zone {zone.code} is inactive")
    owner = await get_active_responsibility(session, zone.id)
    if owner is None or owner.agent_id != payload.from_agent_id:
        raise ConflictError("Only the zone's current owner can delegate it")
    if await _find_overlap(session, zone_id=zone.id, start_at=start_at, end_at=end_at):
        raise ConflictError("An overlapping delegation already exists for this zone")

    delegation = ZoneDelegation(
        zone_id=zone.id,
        from_agent_id=payload.from_agent_id,
        to_agent_id=payload.to_agent_id,
        start_at=start_at,
        end_at=end_at,
        reason=(payload.reason or "").strip() or None,
        created_by=actor_id,
        created_at=now,
        updated_at=now,
    )
    session.add(delegation)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.delegation.created",
        zone_id=zone.id,
        target_type="zone_delegation",
        target_id=delegation.id,
        payload={
            "from_agent_id": str(delegation.from_agent_id),
            "to_agent_id": str(delegation.to_agent_id),
            "start_at": start_at.isoformat(),
            "end_at": end_at.isoformat(),
        },
        commit=False,
    )
    await session.commit()
    await session.refresh(delegation)
    logger.info(
        "zone.delegation.created",
        extra={"delegation_id": str(delegation.id), "zone_id": str(zone.id)},
    )
    _notify("delegation_created", delegation)
    return delegation


async def get_delegation(session: AsyncSession, delegation_id: UUID) -> ZoneDelegation:
    delegation = await ZoneDelegation.objects.by_id(delegation_id).first(session)
    if delegation is None:
        raise NotFoundError(f"Delegation {delegation_id} not found")
    return delegation


async def update_delegation(
    session: AsyncSession,
    delegation_id: UUID,
    payload: DelegationUpdate,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> ZoneDelegation:
    """Edit the window or reason of a delegation that is scheduled or running."""
    now = normalize_now(now)
    await require_admin(session, actor_id)
    delegation = await get_delegation(session, delegation_id)
    await lock_zone(session, delegation.zone_id)
    await session.refresh(delegation)

    state = delegation.state(now)
    if state not in _EDITABLE_STATES:
        raise ConflictError(f"Cannot edit a delegation that is {state.value}")

    start_at = as_naive_utc(payload.start_at) if payload.start_at else delegation.start_at
    end_at = as_naive_utc(payload.end_at) if payload.end_at else delegation.end_at
    validate_window(start_at, end_at)
    if start_at != delegation.start_at and start_at < now:
        raise ValidationError("Delegation cannot be moved to start in the past")
    if end_at != delegation.end_at and end_at <= now:
        raise ValidationError("Delegation end must be in the future")
    overlap = await _find_overlap(
        session,
        zone_id=delegation.zone_id,
        start_at=start_at,
        end_at=end_at,
        exclude_id=delegation.id,
    )
    if overlap is not None:
        raise ConflictError("An overlapping delegation already exists for this zone")

    delegation.start_at = start_at
    delegation.end_at = end_at
    if payload.reason is not None:
        delegation.reason = payload.reason.strip() or None
    delegation.updated_at = now
    session.add(delegation)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.delegation.updated",
        zone_id=delegation.zone_id,
        target_type="zone_delegation",
        target_id=delegation.id,
        payload={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
        commit=False,
    )
    await session.commit()
    await session.refresh(delegation)
    logger.info("zone.delegation.updated", extra={"delegation_id": str(delegation.id)})
    _notify("delegation_updated", delegation)
    return delegation


async def end_delegation(
    session: AsyncSession,
    delegation_id: UUID,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> ZoneDelegation:
    """Soft-revoke a delegation. Ending an already revoked delegation is a no-op."""
    now = normalize_now(now)
    await require_admin(session, actor_id)
    delegation = await get_delegation(session, delegation_id)
    if not delegation.is_active:
        return delegation

    await lock_zone(session, delegation.zone_id)
    delegation.is_active = False
    delegation.updated_at = now
    session.add(delegation)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.delegation.ended",
        zone_id=delegation.zone_id,
        target_type="zone_delegation",
        target_id=delegation.id,
        commit=False,
    )
    await session.commit()
    await session.refresh(delegation)
    logger.info("zone.delegation.ended", extra={"delegation_id": str(delegation.id)})
    _notify("delegation_ended", delegation)
    return delegation


async def list_delegations(
    session: AsyncSession,
    *,
    zone_id: UUID | None = None,
    agent_id: UUID | None = None,
    include_inactive: bool = False,
    now: datetime | None = None,
) -> list[ZoneDelegation]:
    """Delegations ordered by start.

    By default only scheduled or running ones are returned; `include_inactive`
    adds revoked and expired history. `agent_id` matches either party.
    """
    now = normalize_now(now)
    queryset = ZoneDelegation.objects.all()
    if zone_id is not None:
        queryset = queryset.filter_by(zone_id=zone_id)
    if agent_id is not None:
        queryset = queryset.filter(
            or_(
                col(ZoneDelegation.from_agent_id) == agent_id,
                col(ZoneDelegation.to_agent_id) == agent_id,
            ),
        )
    if not include_inactive:
        queryset = queryset.filter_by(is_active=True).filter(col(ZoneDelegation.end_at) > now)
    return await queryset.order_by(col(ZoneDelegation.start_at)).all(session)
