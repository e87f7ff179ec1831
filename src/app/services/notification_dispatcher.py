"""Best-effort notification dispatch

Wraps a NotificationService so that a slow or failing transport can never
affect the caller: every send has its own timeout and every failure is
logged and reported as False.
"""

import asyncio
import logging
from src.app.services.notification_service import (
    NotificationService,
    SubscriptionNotification,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, service: NotificationService, timeout_seconds: float = 10.0):
        self.service = service
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, notification: SubscriptionNotification) -> bool:
        try:
            delivered = await asyncio.wait_for(
                self.service.send(notification), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Notification {notification.kind.value} for subscription "
                f"{notification.subscription_id} timed out after {self.timeout_seconds}s"
            )
            return False
        except Exception as e:
            logger.error(
                f"Notification {notification.kind.value} for subscription "
                f"{notification.subscription_id} failed: {e}"
            )
            return False

        if not delivered:
            logger.warning(
                f"Notification {notification.kind.value} for subscription "
                f"{notification.subscription_id} was not delivered"
            )
        return bool(delivered)
