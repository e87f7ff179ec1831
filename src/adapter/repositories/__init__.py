from .subscription_repository import SqlAlchemySubscriptionRepository
from .plan_repository import SqlAlchemyPlanRepository

__all__ = [
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemyPlanRepository",
]
