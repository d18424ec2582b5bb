"""Zone notification queue persistence helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from hse_core.core.config import settings
from hse_core.core.logging import get_logger
from hse_core.core.time import utcnow
from hse_core.services.queue import QueuedTask, enqueue_task

logger = get_logger(__name__)
TASK_TYPE = "zone_notification"


@dataclass(frozen=True)
class ZoneNotification:
    """Payload for a zone-scoped notification event."""

    event_type: str  # delegation_created | delegation_updated | delegation_ended | work_item_aborted
    zone_id: UUID
    target_ids: list[UUID] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    attempts: int = 0


def _task_from_notification(notification: ZoneNotification) -> QueuedTask:
    return QueuedTask(
        task_type=TASK_TYPE,
        payload={
            "event_type": notification.event_type,
            "zone_id": str(notification.zone_id),
            "target_ids": [str(tid) for tid in notification.target_ids],
            "payload": notification.payload,
        },
        created_at=notification.created_at,
        attempts=notification.attempts,
    )


def decode_notification_task(task: QueuedTask) -> ZoneNotification:
    """Decode a QueuedTask into a ZoneNotification."""
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")

    p: dict[str, Any] = task.payload
    return ZoneNotification(
        event_type=str(p["event_type"]),
        zone_id=UUID(p["zone_id"]),
        target_ids=[UUID(tid) for tid in p.get("target_ids", [])],
        payload=p.get("payload", {}),
        created_at=task.created_at,
        attempts=task.attempts,
    )


def enqueue_notification(notification: ZoneNotification) -> bool:
    """Persist a zone notification in the Redis queue.

    Never raises: delivery is best-effort and must not undo a committed change.
    """
    try:
        queued = _task_from_notification(notification)
        if not enqueue_task(
            queued,
            settings.notification_queue_name,
            redis_url=settings.notification_redis_url,
        ):
            return False
        logger.info(
            "zone.notification.enqueued",
            extra={
                "event_type": notification.event_type,
                "zone_id": str(notification.zone_id),
                "target_count": len(notification.target_ids),
            },
        )
        return True
    except Exception as exc:
        logger.warning(
            "zone.notification.enqueue_failed",
            extra={
                "event_type": notification.event_type,
                "zone_id": str(notification.zone_id),
                "error": str(exc),
            },
        )
        return False

