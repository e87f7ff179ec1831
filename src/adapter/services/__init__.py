from .unit_of_work import SqlAlchemyUnitOfWork
from .clock import SystemClock
from .razorpay import RazorpaySignatureVerifier, RazorpayPaymentGateway
from .notification_service import (
    LoggingNotificationService,
    WebhookNotificationService,
    CompositeNotificationService,
    create_notification_service,
)

__all__ = [
    "SqlAlchemyUnitOfWork",
    "SystemClock",
    "RazorpaySignatureVerifier",
    "RazorpayPaymentGateway",
    "LoggingNotificationService",
    "WebhookNotificationService",
    "CompositeNotificationService",
    "create_notification_service",
]
