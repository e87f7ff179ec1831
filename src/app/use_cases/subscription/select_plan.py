"""SelectPlan Use Case

Creates the pending_payment subscription an admin pays for at checkout.
"""

import logging
from libs.result import Result, Return, Error
from src.app.repositories.errors import PersistenceError
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.clock import Clock
from src.app.services.unit_of_work import UnitOfWork
from src.domain.lifecycle import add_billing_cycle
from src.domain.subscription import Subscription, SubscriptionStatus, UsageCounters
from .dtos import SelectPlanCommandDTO, SelectPlanResponseDTO
from .errors import ErrorCode

logger = logging.getLogger(__name__)


class SelectPlan:
    """
    Use Case: admin selects a plan

    Business Rules:
    1. Plan must exist and be active
    2. An admin holds at most one active or pending_payment subscription
    3. The row starts in pending_payment with provisional dates; activation
       replaces them with the real billing window
    """

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        clock: Clock,
        currency: str = "INR",
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.clock = clock
        self.currency = currency

    async def execute(self, command: SelectPlanCommandDTO) -> Result[SelectPlanResponseDTO]:
        plan = await self.plan_repo.get_by_id(command.plan_id)
        if plan is None:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_FOUND, message="Subscription plan not found")
            )
        if not plan.is_active:
            return Return.err(
                Error(
                    code=ErrorCode.PLAN_NOT_AVAILABLE,
                    message="This subscription plan is not available",
                )
            )

        existing = await self.subscription_repo.get_current_for_admin(
            command.admin_id,
            [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_PAYMENT],
        )
        if existing is not None:
            if existing.status == SubscriptionStatus.ACTIVE:
                message = (
                    "You already have an active subscription. Please cancel or wait "
                    "for it to expire before selecting a new plan."
                )
            else:
                message = (
                    "You have a pending payment. Please complete the payment "
                    "before selecting a new plan."
                )
            return Return.err(
                Error(code=ErrorCode.SUBSCRIPTION_EXISTS, message=message, reason=existing.id)
            )

        now = self.clock.now()
        subscription = Subscription(
            admin_id=command.admin_id,
            plan_id=plan.id,
            status=SubscriptionStatus.PENDING_PAYMENT,
            billing_cycle=command.billing_cycle,
            start_date=now,
            end_date=add_billing_cycle(now, command.billing_cycle),
            auto_renew=command.auto_renew,
            usage=UsageCounters().model_dump(mode="json"),
            created_at=now,
            last_updated=now,
        )

        try:
            created = await self.subscription_repo.create(subscription)
            await self.uow.commit()
        except PersistenceError as e:
            await self.uow.rollback()
            logger.error(f"Failed to create subscription for admin {command.admin_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.PERSISTENCE_ERROR,
                    message="Failed to create subscription",
                    reason=str(e),
                )
            )

        logger.info(
            f"Admin {command.admin_id} selected plan {plan.name} ({command.billing_cycle.value}), "
            f"subscription {created.id} pending payment"
        )
        return Return.ok(
            SelectPlanResponseDTO(
                subscription_id=created.id,
                plan_id=plan.id,
                plan_name=plan.name,
                status=created.status,
                billing_cycle=created.billing_cycle,
                start_date=created.start_date,
                end_date=created.end_date,
                amount=plan.price_for(created.billing_cycle),
                currency=self.currency,
            )
        )
