"""Zone registry CRUD service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from hse_core.core.errors import ConflictError, NotFoundError, ValidationError
from hse_core.core.logging import get_logger
from hse_core.core.time import utcnow
from hse_core.models.zone_responsibilities import ZoneResponsibility
from hse_core.models.zones import Zone
from hse_core.services.access_resolver import require_admin
from hse_core.services.audit import record_audit

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from hse_core.schemas.zones import ZoneCreate, ZoneUpdate

logger = get_logger(__name__)


async def get_zone(session: AsyncSession, zone_id: UUID) -> Zone:
    zone = await Zone.objects.by_id(zone_id).first(session)
    if zone is None:
        raise NotFoundError(f"Zone {zone_id} not found")
    return zone


async def lock_zone(session: AsyncSession, zone_id: UUID) -> Zone:
    """Lock the zone row for the rest of the transaction.

    Every responsibility and delegation write takes this lock first, so checks
    and writes for one zone never interleave.
    """
    zone = await Zone.objects.by_id(zone_id).for_update().first(session)
    if zone is None:
        raise NotFoundError(f"Zone {zone_id} not found")
    return zone


async def _ensure_code_available(
    session: AsyncSession,
    code: str,
    *,
    exclude_id: UUID | None = None,
) -> None:
    queryset = Zone.objects.filter_by(code=code)
    if exclude_id is not None:
        queryset = queryset.filter(col(Zone.id) != exclude_id)
    if await queryset.first(session) is not None:
        raise ConflictError(f"A zone with code '{code}' already exists")


async def _is_referenced(session: AsyncSession, zone_id: UUID) -> bool:
    return await ZoneResponsibility.objects.filter_by(zone_id=zone_id).first(session) is not None


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_zone(
    session: AsyncSession,
    payload: ZoneCreate,
    *,
    actor_id: UUID,
) -> Zone:
    """Register a new zone with a unique code."""
    await require_admin(session, actor_id)
    name = payload.name.strip()
    code = payload.code.strip()
    if not name or not code:
        raise ValidationError("Zone name and code are required")
    await _ensure_code_available(session, code)

    zone = Zone(name=name, code=code, description=payload.description.strip())
    session.add(zone)
    await session.flush()
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.created",
        zone_id=zone.id,
        target_type="zone",
        target_id=zone.id,
        payload={"name": name, "code": code},
        commit=False,
    )
    await session.commit()
    await session.refresh(zone)
    logger.info("zone.created", extra={"zone_id": str(zone.id), "code": code})
    return zone


async def update_zone(
    session: AsyncSession,
    zone_id: UUID,
    payload: ZoneUpdate,
    *,
    actor_id: UUID,
) -> Zone:
    """Apply a partial update.

    Name and code are frozen once any responsibility has referenced the zone.
    Deactivation goes through the same guard as `deactivate_zone`.
    """
    await require_admin(session, actor_id)
    zone = await lock_zone(session, zone_id)
    updates = payload.model_dump(exclude_unset=True)

    identity_changes: dict[str, str] = {}
    for key in ("name", "code"):
        value = updates.get(key)
        if value is None:
            continue
        value = value.strip()
        if not value:
            raise ValidationError(f"Zone {key} cannot be empty")
        if value != getattr(zone, key):
            identity_changes[key] = value
    if identity_changes and await _is_referenced(session, zone.id):
        raise ConflictError("Zone name and code cannot change once the zone has been assigned")
    if "code" in identity_changes:
        await _ensure_code_available(session, identity_changes["code"], exclude_id=zone.id)

    if updates.get("is_active") is False and zone.is_active:
        await _ensure_no_active_owner(session, zone.id)

    for key, value in identity_changes.items():
        setattr(zone, key, value)
    if updates.get("description") is not None:
        zone.description = updates["description"].strip()
    if updates.get("is_active") is not None:
        zone.is_active = bool(updates["is_active"])
    zone.updated_at = utcnow()
    session.add(zone)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.updated",
        zone_id=zone.id,
        target_type="zone",
        target_id=zone.id,
        payload={key: value for key, value in updates.items() if value is not None},
        commit=False,
    )
    await session.commit()
    await session.refresh(zone)
    return zone


async def _ensure_no_active_owner(session: AsyncSession, zone_id: UUID) -> None:
    active = await ZoneResponsibility.objects.filter_by(zone_id=zone_id, is_active=True).first(
        session,
    )
    if active is not None:
        raise ConflictError("Revoke the zone's active responsibility before deactivating it")


async def deactivate_zone(
    session: AsyncSession,
    zone_id: UUID,
    *,
    actor_id: UUID,
) -> Zone:
    """Soft-deactivate a zone; zones are never hard-deleted."""
    await require_admin(session, actor_id)
    zone = await lock_zone(session, zone_id)
    if not zone.is_active:
        return zone
    await _ensure_no_active_owner(session, zone.id)

    zone.is_active = False
    zone.updated_at = utcnow()
    session.add(zone)
    await record_audit(
        session,
        actor_id=actor_id,
        action="zone.deactivated",
        zone_id=zone.id,
        target_type="zone",
        target_id=zone.id,
        commit=False,
    )
    await session.commit()
    await session.refresh(zone)
    logger.info("zone.deactivated", extra={"zone_id": str(zone.id)})
    return zone


async def list_zones(
    session: AsyncSession,
    *,
    include_inactive: bool = False,
) -> list[Zone]:
    queryset = Zone.objects.all()
    if not include_inactive:
        queryset = queryset.filter_by(is_active=True)
    return await queryset.order_by(col(Zone.name)).all(session)
