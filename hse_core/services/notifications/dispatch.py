"""Zone notification dispatch handler and queue worker."""

from __future__ import annotations

import asyncio

from hse_core.core.config import settings
from hse_core.core.logging import configure_logging, get_logger
from hse_core.services.notifications.queue import ZoneNotification, decode_notification_task
from hse_core.services.queue import QueuedTask, dequeue_task, requeue_if_failed

logger = get_logger(__name__)
_WORKER_BLOCK_TIMEOUT_SECONDS = 5.0


def _dispatch(notification: ZoneNotification) -> None:
    """Deliver a zone notification.

    Delivery is a structured log line; email or chat transports hook in here.
    """
    logger.info(
        "zone.notification.dispatch",
        extra={
            "event_type": notification.event_type,
            "zone_id": str(notification.zone_id),
            "target_ids": [str(tid) for tid in notification.target_ids],
            "payload_keys": list(notification.payload.keys()) if notification.payload else [],
        },
    )


async def process_notification_task(task: QueuedTask) -> None:
    """Decode and dispatch a zone notification task."""
    notification = decode_notification_task(task)
    _dispatch(notification)


def requeue_notification_task(task: QueuedTask) -> bool:
    """Requeue a failed notification task with capped retries.

    Works on the raw envelope so undecodable tasks are still counted and dropped.
    """
    return requeue_if_failed(
        task,
        settings.notification_queue_name,
        max_retries=settings.notification_max_retries,
        redis_url=settings.notification_redis_url,
    )


async def flush_queue(*, block: bool = False, block_timeout: float = 0) -> int:
    """Consume queued notifications until the queue is empty."""
    processed = 0
    while True:
        try:
            task = dequeue_task(
                settings.notification_queue_name,
                redis_url=settings.notification_redis_url,
                block=block,
                block_timeout=block_timeout,
            )
        except Exception:
            logger.exception(
                "zone.notification.worker.dequeue_failed",
                extra={"queue_name": settings.notification_queue_name},
            )
            break

        if task is None:
            break

        try:
            await process_notification_task(task)
            processed += 1
        except Exception as exc:
            logger.exception(
                "zone.notification.worker.failed",
                extra={
                    "task_type": task.task_type,
                    "attempt": task.attempts,
                    "error": str(exc),
                },
            )
            if not requeue_notification_task(task):
                logger.warning(
                    "zone.notification.worker.drop_task",
                    extra={"task_type": task.task_type, "attempt": task.attempts},
                )

    if processed > 0:
        logger.info("zone.notification.worker.batch_complete", extra={"count": processed})
    return processed


async def _run_worker_loop() -> None:
    while True:
        try:
            await flush_queue(block=True, block_timeout=_WORKER_BLOCK_TIMEOUT_SECONDS)
        except Exception:
            logger.exception(
                "zone.notification.worker.loop_failed",
                extra={"queue_name": settings.notification_queue_name},
            )
            await asyncio.sleep(1)


def run_worker() -> None:
    """Entrypoint for continuous notification processing."""
    configure_logging()
    logger.info(
        "zone.notification.worker.started",
        extra={"queue_name": settings.notification_queue_name},
    )
    try:
        asyncio.run(_run_worker_loop())
    finally:
        logger.info(
            "zone.notification.worker.stopped",
            extra={"queue_name": settings.notification_queue_name},
        )
