from .base import BaseModel, generate_uuid
from .subscription import (
    Subscription,
    SubscriptionSnapshot,
    SubscriptionStatus,
    BillingCycle,
    PaymentRecord,
    PaymentStatus,
    PaymentMethod,
    UsageCounters,
)
from .subscription_plan import SubscriptionPlan, ResourceType, PlanFeature
from .lifecycle import LifecycleEvent, Transition, TRANSITIONS

__all__ = [
    "BaseModel",
    "generate_uuid",
    "Subscription",
    "SubscriptionSnapshot",
    "SubscriptionStatus",
    "BillingCycle",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentMethod",
    "UsageCounters",
    "SubscriptionPlan",
    "ResourceType",
    "PlanFeature",
    "LifecycleEvent",
    "Transition",
    "TRANSITIONS",
]
