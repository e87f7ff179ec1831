from .unit_of_work import UnitOfWork
from .clock import Clock
from .signature_verifier import SignatureVerifier
from .payment_gateway import PaymentGateway, GatewayPayment, PaymentGatewayError
from .notification_service import (
    NotificationService,
    NotificationKind,
    SubscriptionNotification,
)
from .notification_dispatcher import NotificationDispatcher

__all__ = [
    "UnitOfWork",
    "Clock",
    "SignatureVerifier",
    "PaymentGateway",
    "GatewayPayment",
    "PaymentGatewayError",
    "NotificationService",
    "NotificationKind",
    "SubscriptionNotification",
    "NotificationDispatcher",
]
