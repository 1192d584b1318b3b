import asyncio
import logging
from typing import Awaitable, Callable
from eventpass.config import settings
from eventpass.models.notification import Notification
from eventpass.services.email_service import send_notification_email
from eventpass.services.notifications import EmailNotificationQueue

logger = logging.getLogger(__name__)

# Seconds between delivery attempts, multiplied by the attempt number
RETRY_DELAY_SECONDS = 5


async def deliver_notification(
    notification: Notification,
    sender: Callable[[Notification], Awaitable[bool]] = send_notification_email,
    max_attempts: int = None,
    retry_delay: float = RETRY_DELAY_SECONDS
) -> bool:
    """
    Try to deliver one notification, retrying failed sends.

    Returns True if delivered; after max_attempts the notification is dropped.
    """
    max_attempts = max_attempts or settings.notification_max_attempts
    kind = notification.template_kind.value

    for attempt in range(1, max_attempts + 1):
        try:
            if await sender(notification):
                logger.info(f"Notification {kind} delivered to {notification.recipient}")
                return True
            logger.warning(f"Notification {kind} attempt {attempt}/{max_attempts} failed")
        except Exception as e:
            logger.warning(f"Notification {kind} attempt {attempt}/{max_attempts} raised: {e}")

        if attempt < max_attempts:
            await asyncio.sleep(retry_delay * attempt)

    logger.error(f"Dropping notification {kind} for {notification.recipient} after {max_attempts} attempts")
    return False


async def run_notification_worker(
    queue: EmailNotificationQueue,
    sender: Callable[[Notification], Awaitable[bool]] = send_notification_email,
    max_attempts: int = None,
    retry_delay: float = RETRY_DELAY_SECONDS
):
    """
    Main notification loop that runs until cancelled.
    """
    logger.info("Starting notification worker...")

    while True:
        notification = await queue.get()
        try:
            await deliver_notification(notification, sender, max_attempts, retry_delay)
        except Exception as e:
            logger.error(f"Error in notification worker: {e}", exc_info=True)
        finally:
            queue.task_done()
