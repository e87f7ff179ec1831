"""
Unit tests for the admin-facing subscription use cases

Covers:
- SelectPlan (plan checks, one open subscription per admin)
- GetMySubscription / ListAvailablePlans
- QuoteRenewal
- ChangePlan (immediate and deferred, proration)
- CancelSubscription / SetAutoRenew
"""

import pytest
from datetime import datetime
from decimal import Decimal
from src.app.use_cases.subscription import (
    CancelSubscription,
    ChangePlan,
    ErrorCode,
    GetMySubscription,
    ListAvailablePlans,
    QuoteRenewal,
    SelectPlan,
    SetAutoRenew,
)
from src.app.use_cases.subscription.dtos import (
    CancelCommandDTO,
    ChangePlanCommandDTO,
    SelectPlanCommandDTO,
    SetAutoRenewCommandDTO,
)
from src.domain.subscription import BillingCycle, SubscriptionStatus
from tests.fakes import make_plan, make_subscription


@pytest.fixture
def active(subscription_repo):
    return subscription_repo.add(
        make_subscription(
            start_date=datetime(2024, 2, 25, 10, 0),
            end_date=datetime(2024, 3, 25, 10, 0),
        )
    )


@pytest.fixture
def select_plan(uow, subscription_repo, plan_repo, clock):
    return SelectPlan(uow, subscription_repo, plan_repo, clock)


@pytest.mark.asyncio
class TestSelectPlan:
    async def test_select_creates_pending_subscription(self, select_plan, subscription_repo, uow, clock):
        """
        Given: An admin without a subscription
        When: Selecting the yearly Pro plan
        Then: A pending_payment subscription is created and priced at the yearly rate
        """
        # Arrange
        command = SelectPlanCommandDTO(
            admin_id="admin_9", plan_id="plan_pro", billing_cycle=BillingCycle.YEARLY, auto_renew=True
        )

        # Act
        result = await select_plan.execute(command)

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.status == SubscriptionStatus.PENDING_PAYMENT
        assert response.amount == Decimal("15000.00")
        assert response.end_date == datetime(2025, 3, 15, 12, 0)

        stored = subscription_repo.rows[response.subscription_id]
        assert stored.admin_id == "admin_9"
        assert stored.auto_renew is True
        assert stored.version == 1
        assert uow.commits == 1

    async def test_unknown_plan(self, select_plan):
        result = await select_plan.execute(
            SelectPlanCommandDTO(admin_id="admin_9", plan_id="nope", billing_cycle=BillingCycle.MONTHLY)
        )

        assert result.error.code == ErrorCode.PLAN_NOT_FOUND

    async def test_inactive_plan(self, select_plan, plan_repo):
        await plan_repo.create(make_plan(plan_id="plan_old", name="Old", is_active=False))

        result = await select_plan.execute(
            SelectPlanCommandDTO(admin_id="admin_9", plan_id="plan_old", billing_cycle=BillingCycle.MONTHLY)
        )

        assert result.error.code == ErrorCode.PLAN_NOT_AVAILABLE

    async def test_existing_active_subscription_blocks_selection(self, select_plan, active):
        result = await select_plan.execute(
            SelectPlanCommandDTO(admin_id="admin_1", plan_id="plan_pro", billing_cycle=BillingCycle.MONTHLY)
        )

        assert result.error.code == ErrorCode.SUBSCRIPTION_EXISTS
        assert result.error.reason == active.id
        assert "active subscription" in result.error.message

    async def test_pending_subscription_blocks_selection(self, select_plan, subscription_repo):
        subscription_repo.add(make_subscription(status=SubscriptionStatus.PENDING_PAYMENT))

        result = await select_plan.execute(
            SelectPlanCommandDTO(admin_id="admin_1", plan_id="plan_pro", billing_cycle=BillingCycle.MONTHLY)
        )

        assert result.error.code == ErrorCode.SUBSCRIPTION_EXISTS
        assert result.error.message == (
            "You have a pending payment. Please complete the payment before selecting a new plan."
        )
        assert "cancel" not in result.error.message


@pytest.mark.asyncio
class TestReadSide:
    async def test_my_subscription_details(self, subscription_repo, plan_repo, clock, active):
        result = await GetMySubscription(subscription_repo, plan_repo, clock).execute("admin_1")

        details = result.value
        assert details.subscription.id == active.id
        assert details.plan_name == "Basic"
        assert details.days_remaining == 10
        assert details.is_expiring_soon is False
        assert details.is_expired is False

    async def test_no_subscription_is_none(self, subscription_repo, plan_repo, clock):
        result = await GetMySubscription(subscription_repo, plan_repo, clock).execute("admin_1")

        assert result.is_ok()
        assert result.value is None

    async def test_list_available_plans_in_display_order(self, plan_repo):
        await plan_repo.create(make_plan(plan_id="plan_old", name="Old", is_active=False))

        result = await ListAvailablePlans(plan_repo).execute()

        assert [p.id for p in result.value] == ["plan_basic", "plan_pro"]


@pytest.mark.asyncio
class TestQuoteRenewal:
    async def test_quote_expired_subscription(self, subscription_repo, plan_repo, clock):
        subscription_repo.add(make_subscription(status=SubscriptionStatus.EXPIRED))

        result = await QuoteRenewal(subscription_repo, plan_repo, clock).execute("admin_1")

        quote = result.value
        assert quote.amount == Decimal("500.00")
        assert quote.new_start_date == clock.now()
        assert quote.new_end_date == datetime(2024, 4, 15, 12, 0)
        assert quote.description == "Basic - monthly renewal"

    async def test_quote_does_not_write(self, subscription_repo, plan_repo, clock, active):
        await QuoteRenewal(subscription_repo, plan_repo, clock).execute("admin_1")

        assert subscription_repo.rows[active.id] == active
        assert subscription_repo.cas_calls == 0

    async def test_quote_for_retired_plan(self, subscription_repo, plan_repo, clock, basic_plan, active):
        basic_plan.is_active = False

        result = await QuoteRenewal(subscription_repo, plan_repo, clock).execute("admin_1")

        assert result.error.code == ErrorCode.PLAN_NOT_AVAILABLE


@pytest.mark.asyncio
class TestChangePlan:
    async def test_immediate_upgrade_is_prorated(self, lifecycle, subscription_repo, plan_repo, clock, active):
        """
        Given: Basic monthly (500) with 10 days left
        When: Upgrading to Pro monthly (1500) immediately
        Then: (1500 - 500) / 30 * 10 = 333.33 is due and the plan switches now
        """
        # Arrange
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        # Act
        result = await use_case.execute(
            ChangePlanCommandDTO(admin_id="admin_1", new_plan_id="plan_pro", immediate=True)
        )

        # Assert
        change = result.value
        assert change.change_type == "upgrade"
        assert change.applied is True
        assert change.amount_due == Decimal("333.33")
        assert change.price_difference == Decimal("1000.00")
        assert change.effective_date == clock.now()
        assert subscription_repo.rows[active.id].plan_id == "plan_pro"

    async def test_deferred_change_is_a_preview(self, lifecycle, subscription_repo, plan_repo, clock, active):
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        result = await use_case.execute(
            ChangePlanCommandDTO(admin_id="admin_1", new_plan_id="plan_pro")
        )

        change = result.value
        assert change.applied is False
        assert change.amount_due == Decimal("0")
        assert change.effective_date == active.end_date
        assert subscription_repo.rows[active.id] == active

    async def test_immediate_downgrade_owes_nothing(self, lifecycle, subscription_repo, plan_repo, clock):
        subscription_repo.add(make_subscription(plan_id="plan_pro", end_date=datetime(2024, 4, 1)))
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        result = await use_case.execute(
            ChangePlanCommandDTO(admin_id="admin_1", new_plan_id="plan_basic", immediate=True)
        )

        assert result.value.change_type == "downgrade"
        assert result.value.amount_due == Decimal("0")
        assert subscription_repo.rows["sub_1"].plan_id == "plan_basic"

    async def test_same_plan_is_rejected(self, lifecycle, subscription_repo, plan_repo, clock, active):
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        result = await use_case.execute(
            ChangePlanCommandDTO(admin_id="admin_1", new_plan_id="plan_basic", immediate=True)
        )

        assert result.error.code == ErrorCode.VALIDATION_ERROR

    async def test_same_plan_other_cycle_is_allowed(self, lifecycle, subscription_repo, plan_repo, clock, active):
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        result = await use_case.execute(
            ChangePlanCommandDTO(
                admin_id="admin_1",
                new_plan_id="plan_basic",
                billing_cycle=BillingCycle.YEARLY,
                immediate=True,
            )
        )

        assert result.value.applied is True
        assert subscription_repo.rows[active.id].billing_cycle == BillingCycle.YEARLY

    async def test_no_active_subscription(self, lifecycle, subscription_repo, plan_repo, clock):
        use_case = ChangePlan(lifecycle, subscription_repo, plan_repo, clock)

        result = await use_case.execute(ChangePlanCommandDTO(admin_id="admin_1", new_plan_id="plan_pro"))

        assert result.error.code == ErrorCode.SUBSCRIPTION_NOT_FOUND


@pytest.mark.asyncio
class TestCancelAndAutoRenew:
    async def test_cancel_active_subscription(self, lifecycle, subscription_repo, active):
        result = await CancelSubscription(lifecycle, subscription_repo).execute(
            CancelCommandDTO(admin_id="admin_1", reason="Closing the hotel")
        )

        assert result.value.applied is True
        assert subscription_repo.rows[active.id].status == SubscriptionStatus.CANCELLED

    async def test_cancel_without_active_subscription(self, lifecycle, subscription_repo):
        result = await CancelSubscription(lifecycle, subscription_repo).execute(
            CancelCommandDTO(admin_id="admin_1", reason="Closing the hotel")
        )

        assert result.error.code == ErrorCode.SUBSCRIPTION_NOT_FOUND

    async def test_enable_auto_renew(self, lifecycle, subscription_repo, active):
        result = await SetAutoRenew(lifecycle, subscription_repo).execute(
            SetAutoRenewCommandDTO(admin_id="admin_1", enabled=True)
        )

        assert result.value.applied is True
        assert subscription_repo.rows[active.id].auto_renew is True
