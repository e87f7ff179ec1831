"""
Unit tests for SubscriptionLifecycle

Covers:
- Activation, redelivery and concurrent activation
- Failed payments (deduplicated by transaction id)
- Refund and admin cancellation
- Expiry guard, auto-renewal and its compensation on failure
- Archival after the cooldown
- Notifications are best-effort
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from src.app.use_cases.subscription import ErrorCode, NoOpReason
from src.domain.lifecycle import LifecycleEvent
from src.domain.subscription import (
    BillingCycle,
    PaymentMethod,
    PaymentStatus,
    SubscriptionStatus,
    UsageCounters,
)
from src.domain import payment_ledger
from tests.fakes import make_plan, make_subscription


@pytest.fixture
def pending(subscription_repo):
    """A subscription waiting for its first payment"""
    return subscription_repo.add(
        make_subscription(
            status=SubscriptionStatus.PENDING_PAYMENT,
            start_date=datetime(2024, 3, 15, 11, 0),
            end_date=datetime(2024, 4, 15, 11, 0),
            usage=UsageCounters(hotels=3),
        )
    )


@pytest.fixture
def active(subscription_repo):
    """An active monthly subscription ending in ten days"""
    return subscription_repo.add(
        make_subscription(
            start_date=datetime(2024, 2, 25, 10, 0),
            end_date=datetime(2024, 3, 25, 10, 0),
        )
    )


@pytest.mark.asyncio
class TestActivate:
    """Test pending_payment -> active"""

    async def test_activate_pending_subscription(self, lifecycle, pending, subscription_repo, uow, notifier, clock):
        """
        Given: A pending subscription
        When: A captured payment of 50000 paise arrives
        Then: The subscription is active for one month from now with one success entry
        """
        # Act
        result = await lifecycle.activate(pending.id, "pay_1", payment_ledger.minor_to_major(50000), method="card")

        # Assert
        assert result.is_ok()
        outcome = result.value
        assert outcome.applied is True
        assert outcome.previous_status == SubscriptionStatus.PENDING_PAYMENT
        assert outcome.status == SubscriptionStatus.ACTIVE

        stored = subscription_repo.rows[pending.id]
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.start_date == clock.now()
        assert stored.end_date == datetime(2024, 4, 15, 12, 0)
        assert stored.version == pending.version + 1
        assert stored.usage == UsageCounters()
        assert len(stored.payment_history) == 1

        entry = stored.payment_history[0]
        assert entry.amount == Decimal("500")
        assert entry.transaction_id == "pay_1"
        assert entry.status == PaymentStatus.SUCCESS
        assert "Basic" in entry.note

        assert uow.commits == 1
        assert notifier.kinds() == ["subscription-activated"]

    async def test_redelivered_event_is_a_no_op(self, lifecycle, pending, subscription_repo, notifier):
        """
        Given: A subscription already activated by pay_1
        When: The same event is delivered again
        Then: Nothing changes and no second entry is appended
        """
        # Arrange
        await lifecycle.activate(pending.id, "pay_1", Decimal("500"))
        after_first = subscription_repo.rows[pending.id]

        # Act
        result = await lifecycle.activate(pending.id, "pay_1", Decimal("500"))

        # Assert
        assert result.is_ok()
        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ALREADY_APPLIED
        assert subscription_repo.rows[pending.id] == after_first
        assert len(notifier.sent) == 1

    async def test_concurrent_activation_appends_once(self, lifecycle, pending, subscription_repo, uow):
        """
        Given: Another writer activates the subscription between our read and write
        When: Our compare-and-swap loses the race
        Then: The command re-reads, sees active, and reports a no-op
        """
        # Arrange
        async def racing_writer():
            await lifecycle.activate(pending.id, "pay_other", Decimal("500"))

        subscription_repo.before_cas = racing_writer

        # Act
        result = await lifecycle.activate(pending.id, "pay_1", Decimal("500"))

        # Assert
        assert result.is_ok()
        assert result.value.applied is False
        stored = subscription_repo.rows[pending.id]
        assert [e.transaction_id for e in stored.payment_history] == ["pay_other"]
        assert stored.version == pending.version + 1
        assert uow.rollbacks == 1

    async def test_activate_cancelled_subscription_is_illegal(self, lifecycle, subscription_repo):
        subscription_repo.add(make_subscription(status=SubscriptionStatus.CANCELLED))

        result = await lifecycle.activate("sub_1", "pay_1", Decimal("500"))

        assert result.is_ok()
        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ILLEGAL_TRANSITION

    async def test_activate_unknown_subscription(self, lifecycle):
        result = await lifecycle.activate("missing", "pay_1", Decimal("500"))

        assert result.is_err()
        assert result.error.code == ErrorCode.SUBSCRIPTION_NOT_FOUND

    async def test_gives_up_after_repeated_conflicts(self, lifecycle, pending, subscription_repo, monkeypatch):
        """
        Given: Every compare-and-swap loses
        When: Activating
        Then: A concurrency no-op is reported after the last attempt
        """
        # Arrange
        async def always_lose(*args, **kwargs):
            return None

        monkeypatch.setattr(subscription_repo, "compare_and_swap", always_lose)

        # Act
        result = await lifecycle.activate(pending.id, "pay_1", Decimal("500"))

        # Assert
        assert result.is_ok()
        assert result.value.applied is False
        assert result.value.reason == NoOpReason.CONCURRENCY_CONFLICT
        assert subscription_repo.rows[pending.id] == pending

    async def test_persistence_error_is_returned(self, lifecycle, pending, subscription_repo, uow):
        subscription_repo.fail_cas = 1

        result = await lifecycle.activate(pending.id, "pay_1", Decimal("500"))

        assert result.is_err()
        assert result.error.code == ErrorCode.PERSISTENCE_ERROR
        assert uow.rollbacks == 1
        assert subscription_repo.rows[pending.id] == pending

    async def test_notification_failure_does_not_undo_activation(
        self, lifecycle, pending, subscription_repo, notifier
    ):
        """
        Given: The notification transport is down
        When: Activating
        Then: The activation is still committed
        """
        notifier.fail = True

        result = await lifecycle.activate(pending.id, "pay_1", Decimal("500"))

        assert result.is_ok()
        assert result.value.applied is True
        assert subscription_repo.rows[pending.id].status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
class TestFailedPayment:
    async def test_failed_payment_appends_zero_amount_entry(self, lifecycle, pending, subscription_repo, notifier):
        # Act
        result = await lifecycle.record_failed_payment(pending.id, "pay_bad", "Card declined")

        # Assert
        assert result.value.applied is True
        stored = subscription_repo.rows[pending.id]
        assert stored.status == SubscriptionStatus.PENDING_PAYMENT
        assert stored.payment_history[0].amount == Decimal("0")
        assert stored.payment_history[0].status == PaymentStatus.FAILED

        assert notifier.kinds() == ["payment-failed"]
        assert notifier.sent[0].context["retry_link"] == (
            f"https://app.example.com/subscription/retry/{pending.id}"
        )

    async def test_same_failed_transaction_recorded_once(self, lifecycle, pending, subscription_repo):
        await lifecycle.record_failed_payment(pending.id, "pay_bad", "Card declined")

        result = await lifecycle.record_failed_payment(pending.id, "pay_bad", "Card declined")

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.DUPLICATE_EVENT
        assert len(subscription_repo.rows[pending.id].payment_history) == 1

    async def test_failed_payment_on_active_subscription_is_ignored(self, lifecycle, active, subscription_repo):
        result = await lifecycle.record_failed_payment(active.id, "pay_bad")

        assert result.value.applied is False
        assert subscription_repo.rows[active.id] == active


@pytest.mark.asyncio
class TestRefundAndCancel:
    async def test_refund_cancels_with_negative_entry(self, lifecycle, active, subscription_repo, notifier):
        # Act
        result = await lifecycle.refund(active.id, "pay_1", Decimal("500"))

        # Assert
        assert result.value.applied is True
        stored = subscription_repo.rows[active.id]
        assert stored.status == SubscriptionStatus.CANCELLED
        assert stored.payment_history[-1].amount == Decimal("-500")
        assert stored.payment_history[-1].method == PaymentMethod.REFUND
        assert notifier.kinds() == ["subscription-refunded"]

    async def test_refund_of_pending_subscription_is_illegal(self, lifecycle, pending):
        result = await lifecycle.refund(pending.id, "pay_1", Decimal("500"))

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ILLEGAL_TRANSITION

    async def test_cancel_keeps_end_date_and_disables_auto_renew(self, lifecycle, subscription_repo, clock):
        """
        Given: An active auto-renewing subscription
        When: The admin cancels it
        Then: It is cancelled, auto_renew is off, access continues until end_date
        """
        # Arrange
        original = subscription_repo.add(
            make_subscription(auto_renew=True, end_date=datetime(2024, 4, 1))
        )

        # Act
        result = await lifecycle.cancel(original.id, "Too expensive")

        # Assert
        stored = subscription_repo.rows[original.id]
        assert result.value.applied is True
        assert stored.status == SubscriptionStatus.CANCELLED
        assert stored.auto_renew is False
        assert stored.end_date == original.end_date
        assert stored.cancellation_reason == "Too expensive"
        assert stored.cancelled_at == clock.now()
        assert stored.payment_history[-1].status == PaymentStatus.CANCELLED

    async def test_cancel_twice_is_a_no_op(self, lifecycle, active):
        await lifecycle.cancel(active.id, "No longer needed")

        result = await lifecycle.cancel(active.id, "No longer needed")

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ALREADY_APPLIED


@pytest.mark.asyncio
class TestExpire:
    async def test_expire_past_end_date(self, lifecycle, subscription_repo, notifier):
        subscription_repo.add(make_subscription(end_date=datetime(2024, 3, 14)))

        result = await lifecycle.expire("sub_1")

        assert result.value.applied is True
        assert subscription_repo.rows["sub_1"].status == SubscriptionStatus.EXPIRED
        assert notifier.kinds() == ["subscription-expired"]

    async def test_expire_ending_later_today(self, lifecycle, subscription_repo):
        subscription_repo.add(make_subscription(end_date=datetime(2024, 3, 15, 23, 0)))

        result = await lifecycle.expire("sub_1")

        assert result.value.applied is True

    async def test_expire_before_end_date_is_a_no_op(self, lifecycle, active, subscription_repo):
        """
        Given: A subscription ending in ten days
        When: Expiry is requested
        Then: It stays active
        """
        result = await lifecycle.expire(active.id)

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.PRECONDITION_NOT_MET
        assert subscription_repo.rows[active.id] == active

    async def test_expire_is_idempotent(self, lifecycle, subscription_repo):
        subscription_repo.add(make_subscription(end_date=datetime(2024, 3, 14)))
        await lifecycle.expire("sub_1")

        result = await lifecycle.expire("sub_1")

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ALREADY_APPLIED


@pytest.mark.asyncio
class TestAutoRenew:
    async def test_auto_renew_extends_from_previous_end_date(self, lifecycle, subscription_repo, notifier, clock):
        """
        Given: An auto-renewing monthly subscription ending today
        When: Auto-renewal runs
        Then: The new window starts at the old end date and one renewal entry is appended
        """
        # Arrange
        subscription_repo.add(
            make_subscription(auto_renew=True, end_date=datetime(2024, 3, 15, 18, 0))
        )

        # Act
        result = await lifecycle.auto_renew("sub_1")

        # Assert
        assert result.value.applied is True
        stored = subscription_repo.rows["sub_1"]
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.start_date == datetime(2024, 3, 15, 18, 0)
        assert stored.end_date == datetime(2024, 4, 15, 18, 0)
        assert len(stored.payment_history) == 1
        entry = stored.payment_history[0]
        assert entry.status == PaymentStatus.AUTO_RENEWED
        assert entry.amount == Decimal("500.00")
        assert entry.date == clock.now()
        assert notifier.kinds() == ["subscription-auto-renewed"]

    async def test_auto_renew_yearly_uses_yearly_price(self, lifecycle, subscription_repo):
        subscription_repo.add(
            make_subscription(
                auto_renew=True,
                billing_cycle=BillingCycle.YEARLY,
                end_date=datetime(2024, 3, 15, 9, 0),
            )
        )

        await lifecycle.auto_renew("sub_1")

        stored = subscription_repo.rows["sub_1"]
        assert stored.end_date == datetime(2025, 3, 15, 9, 0)
        assert stored.payment_history[0].amount == Decimal("5000.00")

    async def test_auto_renew_not_due_is_a_no_op(self, lifecycle, subscription_repo):
        subscription_repo.add(make_subscription(auto_renew=True, end_date=datetime(2024, 3, 20)))

        result = await lifecycle.auto_renew("sub_1")

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.PRECONDITION_NOT_MET

    async def test_failed_renewal_disables_auto_renew(self, lifecycle, subscription_repo):
        """
        Given: An auto-renewing subscription ending today
        When: The renewal write fails
        Then: auto_renew is switched off and nothing else changes
        """
        # Arrange
        original = subscription_repo.add(
            make_subscription(auto_renew=True, end_date=datetime(2024, 3, 15, 18, 0))
        )
        subscription_repo.fail_cas = 1

        # Act
        result = await lifecycle.auto_renew(original.id)

        # Assert
        assert result.is_err()
        assert result.error.code == ErrorCode.PERSISTENCE_ERROR
        stored = subscription_repo.rows[original.id]
        assert stored.auto_renew is False
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.end_date == original.end_date
        assert stored.payment_history == ()

    async def test_missing_plan_disables_auto_renew(self, lifecycle, subscription_repo):
        subscription_repo.add(
            make_subscription(
                plan_id="plan_gone", auto_renew=True, end_date=datetime(2024, 3, 15, 18, 0)
            )
        )

        result = await lifecycle.auto_renew("sub_1")

        assert result.is_err()
        assert result.error.code == ErrorCode.PLAN_NOT_FOUND
        assert subscription_repo.rows["sub_1"].auto_renew is False


@pytest.mark.asyncio
class TestArchive:
    async def test_archive_after_cooldown(self, lifecycle, subscription_repo, clock):
        subscription_repo.add(
            make_subscription(status=SubscriptionStatus.EXPIRED, end_date=clock.now() - timedelta(days=31))
        )

        result = await lifecycle.archive("sub_1")

        assert result.value.applied is True
        assert subscription_repo.rows["sub_1"].status == SubscriptionStatus.ARCHIVED

    async def test_archive_within_cooldown_is_a_no_op(self, lifecycle, subscription_repo, clock):
        subscription_repo.add(
            make_subscription(status=SubscriptionStatus.EXPIRED, end_date=clock.now() - timedelta(days=10))
        )

        result = await lifecycle.archive("sub_1")

        assert result.value.applied is False
        assert subscription_repo.rows["sub_1"].status == SubscriptionStatus.EXPIRED

    async def test_archive_with_custom_cooldown(self, lifecycle, subscription_repo, clock):
        subscription_repo.add(
            make_subscription(status=SubscriptionStatus.EXPIRED, end_date=clock.now() - timedelta(days=10))
        )

        result = await lifecycle.archive("sub_1", cooldown=timedelta(days=7))

        assert result.value.applied is True

    async def test_archived_is_terminal(self, lifecycle, subscription_repo):
        subscription_repo.add(make_subscription(status=SubscriptionStatus.ARCHIVED))

        for outcome in [
            await lifecycle.activate("sub_1", "pay_1", Decimal("500")),
            await lifecycle.expire("sub_1"),
            await lifecycle.archive("sub_1"),
        ]:
            assert outcome.value.applied is False

        assert subscription_repo.rows["sub_1"].status == SubscriptionStatus.ARCHIVED


@pytest.mark.asyncio
class TestAdminSettings:
    async def test_set_auto_renew_on_pending_subscription(self, lifecycle, pending, subscription_repo):
        result = await lifecycle.set_auto_renew(pending.id, True)

        assert result.value.applied is True
        assert result.value.event == LifecycleEvent.SET_AUTO_RENEW
        assert subscription_repo.rows[pending.id].auto_renew is True
        assert subscription_repo.rows[pending.id].status == SubscriptionStatus.PENDING_PAYMENT

    async def test_set_auto_renew_unchanged_is_a_no_op(self, lifecycle, active):
        result = await lifecycle.set_auto_renew(active.id, False)

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.ALREADY_APPLIED

    async def test_upgrade_switches_plan_and_records_amount(
        self, lifecycle, active, subscription_repo, basic_plan, pro_plan, notifier
    ):
        # Act
        result = await lifecycle.upgrade(
            active.id, basic_plan, pro_plan, BillingCycle.MONTHLY, Decimal("333.33"), True
        )

        # Assert
        assert result.value.applied is True
        stored = subscription_repo.rows[active.id]
        assert stored.plan_id == pro_plan.id
        assert stored.end_date == active.end_date
        assert stored.payment_history[-1].amount == Decimal("333.33")
        assert stored.payment_history[-1].method == PaymentMethod.UPGRADE
        assert notifier.kinds() == ["plan-changed"]

    async def test_upgrade_from_stale_plan_is_a_no_op(self, lifecycle, active, pro_plan):
        result = await lifecycle.upgrade(
            active.id, pro_plan, make_plan(plan_id="plan_x", name="X"), BillingCycle.MONTHLY, Decimal("0"), True
        )

        assert result.value.applied is False
        assert result.value.reason == NoOpReason.PRECONDITION_NOT_MET
