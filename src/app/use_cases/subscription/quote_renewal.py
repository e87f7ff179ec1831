"""QuoteRenewal Use Case

Prices a manual renewal of the admin's latest active or expired
subscription. Nothing is written: the renewal is paid through checkout and
applied by the payment webhook.
"""

from libs.result import Result, Return, Error
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.clock import Clock
from src.domain.lifecycle import add_billing_cycle
from src.domain.subscription import SubscriptionStatus
from .dtos import RenewalQuoteDTO
from .errors import ErrorCode


class QuoteRenewal:
    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        clock: Clock,
        currency: str = "INR",
    ):
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.clock = clock
        self.currency = currency

    async def execute(self, admin_id: str) -> Result[RenewalQuoteDTO]:
        snapshot = await self.subscription_repo.get_current_for_admin(
            admin_id, [SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED]
        )
        if snapshot is None:
            return Return.err(
                Error(
                    code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
                    message="No subscription found to renew",
                )
            )

        plan = await self.plan_repo.get_by_id(snapshot.plan_id)
        if plan is None or not plan.is_active:
            return Return.err(
                Error(
                    code=ErrorCode.PLAN_NOT_AVAILABLE,
                    message="This subscription plan is no longer available. Please select a different plan.",
                )
            )

        start = self.clock.now()
        return Return.ok(
            RenewalQuoteDTO(
                subscription_id=snapshot.id,
                plan_id=plan.id,
                plan_name=plan.name,
                billing_cycle=snapshot.billing_cycle,
                amount=plan.price_for(snapshot.billing_cycle),
                currency=self.currency,
                new_start_date=start,
                new_end_date=add_billing_cycle(start, snapshot.billing_cycle),
                description=f"{plan.name} - {snapshot.billing_cycle.value} renewal",
            )
        )
