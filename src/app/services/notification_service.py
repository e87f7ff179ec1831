"""Notification Service Interface

Defines the contract for the outbound subscription notifications
(activation, expiry, reminders, ...). Delivery (email, socket, webhook)
is an external concern; callers treat every send as best-effort.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    SUBSCRIPTION_ACTIVATED = "subscription-activated"
    PAYMENT_FAILED = "payment-failed"
    SUBSCRIPTION_CANCELLED = "subscription-cancelled"
    SUBSCRIPTION_REFUNDED = "subscription-refunded"
    SUBSCRIPTION_EXPIRED = "subscription-expired"
    RENEWAL_REMINDER = "renewal-reminder"
    SUBSCRIPTION_AUTO_RENEWED = "subscription-auto-renewed"
    PAYMENT_RETRY = "payment-retry"
    PLAN_CHANGED = "plan-changed"


class SubscriptionNotification(BaseModel):
    """A notification addressed to the admin owning a subscription"""

    kind: NotificationKind
    subscription_id: str
    admin_id: str
    plan_name: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class NotificationService(ABC):
    """
    Abstract notification service for subscription events

    Implementations can deliver via:
    - Webhook (HTTP POST to the platform's mailer)
    - Logging (development)
    """

    @abstractmethod
    async def send(self, notification: SubscriptionNotification) -> bool:
        """
        Send a notification

        Args:
            notification: Notification to deliver

        Returns:
            True if the notification was delivered, False otherwise
        """
        pass
