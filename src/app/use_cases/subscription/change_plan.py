"""ChangePlan Use Case

Upgrades or downgrades the admin's active subscription, either right away
(prorated, through the lifecycle's upgrade edge) or as a preview of the
change taking effect at the end of the current billing window.
"""

from decimal import Decimal
from libs.result import Result, Return, Error
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.clock import Clock
from src.domain.lifecycle import prorated_upgrade_amount
from src.domain.subscription import SubscriptionStatus
from .dtos import ChangePlanCommandDTO, PlanChangeDTO
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle


class ChangePlan:
    """
    Use Case: change the plan of an active subscription

    Business Rules:
    1. Target plan must exist, be active and differ from the current one
    2. A change is an upgrade when the new cycle price is higher
    3. Immediate upgrades owe the prorated difference for the remaining days;
       downgrades owe nothing
    4. Non-immediate changes are not persisted
    """

    def __init__(
        self,
        lifecycle: SubscriptionLifecycle,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        clock: Clock,
        currency: str = "INR",
    ):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.clock = clock
        self.currency = currency

    async def execute(self, command: ChangePlanCommandDTO) -> Result[PlanChangeDTO]:
        snapshot = await self.subscription_repo.get_current_for_admin(
            command.admin_id, [SubscriptionStatus.ACTIVE]
        )
        if snapshot is None:
            return Return.err(
                Error(code=ErrorCode.SUBSCRIPTION_NOT_FOUND, message="No active subscription found")
            )

        new_plan = await self.plan_repo.get_by_id(command.new_plan_id)
        if new_plan is None:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_FOUND, message="New subscription plan not found")
            )
        if not new_plan.is_active:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_AVAILABLE, message="The selected plan is not available")
            )

        billing_cycle = command.billing_cycle or snapshot.billing_cycle
        if new_plan.id == snapshot.plan_id and billing_cycle == snapshot.billing_cycle:
            return Return.err(
                Error(
                    code=ErrorCode.VALIDATION_ERROR,
                    message="You are already subscribed to this plan",
                )
            )

        current_plan = await self.plan_repo.get_by_id(snapshot.plan_id)
        if current_plan is None:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_FOUND, message=f"Plan {snapshot.plan_id} not found")
            )

        current_price = current_plan.price_for(snapshot.billing_cycle)
        new_price = new_plan.price_for(billing_cycle)
        is_upgrade = new_price > current_price
        now = self.clock.now()

        amount_due = Decimal("0")
        if is_upgrade and command.immediate:
            amount_due = prorated_upgrade_amount(
                current_price, new_price, snapshot.billing_cycle, snapshot.end_date, now
            )

        applied = False
        effective_date = snapshot.end_date
        if command.immediate:
            result = await self.lifecycle.upgrade(
                snapshot.id,
                from_plan=current_plan,
                to_plan=new_plan,
                billing_cycle=billing_cycle,
                amount_due=amount_due,
                is_upgrade=is_upgrade,
            )
            if result.is_err():
                return Return.err(result.error)
            applied = result.value.applied
            effective_date = now

        return Return.ok(
            PlanChangeDTO(
                subscription_id=snapshot.id,
                change_type="upgrade" if is_upgrade else "downgrade",
                current_plan_id=current_plan.id,
                new_plan_id=new_plan.id,
                billing_cycle=billing_cycle,
                immediate=command.immediate,
                applied=applied,
                amount_due=amount_due,
                current_price=current_price,
                new_price=new_price,
                price_difference=new_price - current_price,
                effective_date=effective_date,
                currency=self.currency,
            )
        )
