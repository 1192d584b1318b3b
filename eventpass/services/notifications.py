"""
Notification sink consumed by the ticketing services.

Services only ever enqueue; delivery and retries belong to the
background worker in eventpass.tasks.notifications.
"""
import asyncio
import logging
from abc import ABC, abstractmethod

from eventpass.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationSink(ABC):

    @abstractmethod
    async def enqueue(self, notification: Notification) -> None:
        """Accept a fire-and-forget send request."""
        pass


class EmailNotificationQueue(NotificationSink):
    """In-process queue drained by run_notification_worker"""

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def enqueue(self, notification: Notification) -> None:
        # Never block a command on a full queue
        self._queue.put_nowait(notification)

    async def get(self) -> Notification:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()


async def dispatch_notification(sink: NotificationSink, notification: Notification) -> None:
    """Enqueue after commit; a failure here never changes the command outcome."""
    try:
        await sink.enqueue(notification)
    except Exception as e:
        logger.warning(
            f"Could not enqueue {notification.template_kind.value} for {notification.recipient}: {e}"
        )
