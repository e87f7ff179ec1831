"""Read-side subscription use cases"""

from typing import List, Optional
from libs.result import Result, Return
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.clock import Clock
from src.domain.subscription import SubscriptionStatus
from src.domain.subscription_plan import SubscriptionPlan
from .dtos import SubscriptionDetailsDTO


class GetMySubscription:
    """
    Use Case: current subscription of an admin

    Returns None (not an error) when the admin has no active or pending
    subscription.
    """

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        clock: Clock,
    ):
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.clock = clock

    async def execute(self, admin_id: str) -> Result[Optional[SubscriptionDetailsDTO]]:
        snapshot = await self.subscription_repo.get_current_for_admin(
            admin_id, [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_PAYMENT]
        )
        if snapshot is None:
            return Return.ok(None)

        plan = await self.plan_repo.get_by_id(snapshot.plan_id)
        now = self.clock.now()
        return Return.ok(
            SubscriptionDetailsDTO(
                subscription=snapshot,
                plan_name=plan.name if plan else None,
                days_remaining=snapshot.days_remaining(now),
                is_expiring_soon=snapshot.is_expiring_soon(now),
                is_expired=snapshot.is_past_end_date(now),
            )
        )


class ListAvailablePlans:
    def __init__(self, plan_repo: PlanRepository):
        self.plan_repo = plan_repo

    async def execute(self) -> Result[List[SubscriptionPlan]]:
        return Return.ok(await self.plan_repo.list_active())
