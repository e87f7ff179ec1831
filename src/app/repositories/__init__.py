from .errors import PersistenceError
from .subscription_repository import SubscriptionRepository, SubscriptionChanges
from .plan_repository import PlanRepository

__all__ = [
    "PersistenceError",
    "SubscriptionRepository",
    "SubscriptionChanges",
    "PlanRepository",
]
