"""Zone notification queueing + dispatch utilities."""

from hse_core.services.notifications.queue import (
    TASK_TYPE,
    ZoneNotification,
    decode_notification_task,
    enqueue_notification,
)

__all__ = [
    "TASK_TYPE",
    "ZoneNotification",
    "decode_notification_task",
    "enqueue_notification",
]
