"""Notification Service Implementations

Provides concrete implementations for sending subscription notifications.
Email/socket delivery lives in the platform's mailer; this service either
logs the notification or POSTs it to the mailer's webhook.
"""

import logging
from typing import Optional
import httpx
from src.app.services.notification_service import (
    NotificationService,
    SubscriptionNotification,
)

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs notifications

    Useful for development and testing, or as a fallback.
    """

    async def send(self, notification: SubscriptionNotification) -> bool:
        logger.info(
            f"[NOTIFICATION] {notification.kind.value} -> admin {notification.admin_id}, "
            f"subscription {notification.subscription_id}, "
            f"plan {notification.plan_name or '-'}, context {notification.context}"
        )
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that delivers via HTTP webhook

    Sends JSON payload to configured webhook URL.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST notifications to
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    async def send(self, notification: SubscriptionNotification) -> bool:
        """
        Send notification via webhook

        Returns:
            True if webhook call succeeded, False otherwise
        """
        payload = {
            "type": notification.kind.value,
            "subscription_id": notification.subscription_id,
            "admin_id": notification.admin_id,
            "plan_name": notification.plan_name,
            "context": notification.context,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to send {notification.kind.value} notification for "
                f"subscription {notification.subscription_id}: {e}"
            )
            return False

        logger.info(
            f"Webhook notification {notification.kind.value} sent for "
            f"subscription {notification.subscription_id}"
        )
        return True


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def send(self, notification: SubscriptionNotification) -> bool:
        """
        Send to all configured services

        Returns:
            True if at least one service succeeded, False otherwise
        """
        success = False
        for service in self.services:
            try:
                if await service.send(notification):
                    success = True
            except Exception as e:
                logger.error(f"Notification service {type(service).__name__} failed: {e}")
        return success


def create_notification_service(
    webhook_url: Optional[str] = None, timeout: float = 10.0
) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.
        timeout: Webhook request timeout in seconds

    Returns:
        Configured NotificationService
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url, timeout=timeout))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
