"""Admin Subscription API Routes

Self-service subscription management for hotel admins. The acting admin is
identified by the X-Admin-Id header set by the authentication gateway.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Header, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.plan_repository import SqlAlchemyPlanRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.api.error import client_error_for
from src.api.schemas.subscription_request import (
    AutoRenewRequestSchema,
    CancelRequestSchema,
    SelectPlanRequestSchema,
    UpgradeRequestSchema,
)
from src.app.services.clock import Clock
from src.app.use_cases.subscription import (
    CancelCommandDTO,
    CancelSubscription,
    ChangePlan,
    ChangePlanCommandDTO,
    GetMySubscription,
    ListAvailablePlans,
    PlanChangeDTO,
    QuoteRenewal,
    RenewalQuoteDTO,
    SelectPlan,
    SelectPlanCommandDTO,
    SelectPlanResponseDTO,
    SetAutoRenew,
    SetAutoRenewCommandDTO,
    SubscriptionDetailsDTO,
    SubscriptionLifecycle,
    TransitionOutcomeDTO,
    UsageStatsDTO,
    UsageTracker,
)
from src.depends import get_clock, get_lifecycle, get_session
from src.domain.subscription_plan import SubscriptionPlan

router = APIRouter(prefix="/admin/subscription", tags=["Subscriptions"])


def get_admin_id(x_admin_id: str = Header(..., min_length=1)) -> str:
    return x_admin_id


@router.get("/plans", response_model=List[SubscriptionPlan])
async def list_available_plans(session: AsyncSession = Depends(get_session)):
    """List plans that can be selected, in display order."""
    result = await ListAvailablePlans(SqlAlchemyPlanRepository(session)).execute()
    return result.value


@router.post(
    "/select",
    response_model=SelectPlanResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Plan unavailable or subscription already exists"},
        404: {"description": "Plan not found"},
    },
)
async def select_plan(
    request: SelectPlanRequestSchema,
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """
    Select a plan and create a subscription awaiting payment.

    **Request body:**
    - `planId` (required): Plan to subscribe to
    - `billingCycle` (required): `monthly` or `yearly`
    - `autoRenew` (optional): Renew automatically at the end of each cycle
    """
    use_case = SelectPlan(
        uow=SqlAlchemyUnitOfWork(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        plan_repo=SqlAlchemyPlanRepository(session),
        clock=clock,
        currency=ApplicationConfig.DEFAULT_CURRENCY,
    )
    result = await use_case.execute(
        SelectPlanCommandDTO(
            admin_id=admin_id,
            plan_id=request.plan_id,
            billing_cycle=request.billing_cycle,
            auto_renew=request.auto_renew,
        )
    )
    if result.is_err():
        raise client_error_for(result.error)
    return result.value


@router.get("/my-subscription", response_model=Optional[SubscriptionDetailsDTO])
async def get_my_subscription(
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """Current active or pending subscription (null when there is none)."""
    use_case = GetMySubscription(
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyPlanRepository(session),
        clock,
    )
    result = await use_case.execute(admin_id)
    return result.value


@router.get("/usage", response_model=UsageStatsDTO)
async def get_usage_stats(
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
):
    """Per-resource usage against plan limits, with warnings at 80% and 100%."""
    tracker = UsageTracker(
        lifecycle,
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyPlanRepository(session),
    )
    result = await tracker.usage_stats(admin_id)
    if result.is_err():
        raise client_error_for(result.error)
    return result.value


@router.post("/cancel", response_model=TransitionOutcomeDTO)
async def cancel_subscription(
    request: CancelRequestSchema,
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
):
    """
    Cancel the active subscription.

    Access continues until the end of the current billing period;
    auto-renewal is turned off.
    """
    use_case = CancelSubscription(lifecycle, SqlAlchemySubscriptionRepository(session))
    result = await use_case.execute(CancelCommandDTO(admin_id=admin_id, reason=request.reason))
    if result.is_err():
        raise client_error_for(result.error)
    return result.value


@router.post("/renew", response_model=RenewalQuoteDTO)
async def renew_subscription(
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """Renewal amount and dates for the latest active or expired subscription; pay via checkout."""
    use_case = QuoteRenewal(
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyPlanRepository(session),
        clock,
        currency=ApplicationConfig.DEFAULT_CURRENCY,
    )
    result = await use_case.execute(admin_id)
    if result.is_err():
        raise client_error_for(result.error)
    return result.value


@router.post("/upgrade", response_model=PlanChangeDTO)
async def upgrade_plan(
    request: UpgradeRequestSchema,
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
):
    """
    Upgrade or downgrade the active subscription.

    With `immediate=true` the plan changes now and an upgrade owes the
    prorated difference; otherwise the response previews the change taking
    effect at the end of the billing period.
    """
    use_case = ChangePlan(
        lifecycle,
        SqlAlchemySubscriptionRepository(session),
        SqlAlchemyPlanRepository(session),
        clock,
        currency=ApplicationConfig.DEFAULT_CURRENCY,
    )
    result = await use_case.execute(
        ChangePlanCommandDTO(
            admin_id=admin_id,
            new_plan_id=request.new_plan_id,
            immediate=request.immediate,
            billing_cycle=request.billing_cycle,
        )
    )
    if result.is_err():
        raise client_error_for(result.error)
    return result.value


@router.post("/auto-renew", response_model=TransitionOutcomeDTO)
async def set_auto_renew(
    request: AutoRenewRequestSchema,
    admin_id: str = Depends(get_admin_id),
    session: AsyncSession = Depends(get_session),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
):
    use_case = SetAutoRenew(lifecycle, SqlAlchemySubscriptionRepository(session))
    result = await use_case.execute(SetAutoRenewCommandDTO(admin_id=admin_id, enabled=request.enabled))
    if result.is_err():
        raise client_error_for(result.error)
    return result.value
