"""
Integration tests for SqlAlchemySubscriptionRepository

Covers:
- Create and read back with JSON history and usage
- Conditional update: version bump, single append, stale version/status
- Interleaved writers on separate sessions
- Candidate queries used by the reconciliation jobs
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.app.repositories.subscription_repository import SubscriptionChanges
from src.domain import payment_ledger
from src.domain.subscription import (
    BillingCycle,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
    UsageCounters,
)

NOW = datetime(2024, 3, 15, 12, 0, 0)

ACTIVE_ONLY = [SubscriptionStatus.ACTIVE]
PENDING_ONLY = [SubscriptionStatus.PENDING_PAYMENT]


def new_subscription(subscription_id="sub_1", admin_id="admin_1", **overrides):
    values = dict(
        id=subscription_id,
        admin_id=admin_id,
        plan_id="plan_basic",
        status=SubscriptionStatus.PENDING_PAYMENT,
        billing_cycle=BillingCycle.MONTHLY,
        start_date=NOW,
        end_date=NOW + timedelta(days=30),
        created_at=NOW,
        last_updated=NOW,
    )
    values.update(overrides)
    return Subscription(**values)


async def seed(session, *subscriptions):
    repo = SqlAlchemySubscriptionRepository(session)
    for subscription in subscriptions:
        await repo.create(subscription)
    await session.commit()
    return repo


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_round_trip(self, db_session):
        repo = await seed(db_session, new_subscription(usage={"hotels": 2}))

        snapshot = await repo.get_by_id("sub_1")

        assert snapshot.status == SubscriptionStatus.PENDING_PAYMENT
        assert snapshot.version == 1
        assert snapshot.usage == UsageCounters(hotels=2)
        assert snapshot.payment_history == ()

    @pytest.mark.asyncio
    async def test_default_timestamps_persist_as_naive_utc(self, db_session):
        """
        Given: A subscription created without explicit creation timestamps
        When: It is stored and read back
        Then: The defaults are written and come back as naive datetimes
        """
        # Arrange
        subscription = Subscription(
            id="sub_1",
            admin_id="admin_1",
            plan_id="plan_basic",
            billing_cycle=BillingCycle.MONTHLY,
            start_date=NOW,
            end_date=NOW + timedelta(days=30),
        )

        # Act
        await seed(db_session, subscription)
        stored = await db_session.get(Subscription, "sub_1")
        await db_session.refresh(stored)

        # Assert
        assert stored.created_at.tzinfo is None
        assert stored.last_updated.tzinfo is None
        assert stored.end_date == NOW + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_missing(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)

        assert await repo.get_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_current_for_admin_picks_latest_end_date(self, db_session):
        repo = await seed(
            db_session,
            new_subscription("sub_old", status=SubscriptionStatus.EXPIRED, end_date=NOW - timedelta(days=40)),
            new_subscription("sub_new", status=SubscriptionStatus.EXPIRED, end_date=NOW - timedelta(days=5)),
            new_subscription("sub_other", admin_id="admin_2", status=SubscriptionStatus.EXPIRED),
        )

        current = await repo.get_current_for_admin("admin_1", [SubscriptionStatus.EXPIRED])
        none = await repo.get_current_for_admin("admin_1", ACTIVE_ONLY)

        assert current.id == "sub_new"
        assert none is None


class TestCompareAndSwap:
    @pytest.mark.asyncio
    async def test_applies_changes_and_appends_once(self, db_session):
        """
        Given: A pending subscription at version 1
        When: Swapping to active with a payment entry
        Then: The row is active at version 2 with exactly that entry
        """
        # Arrange
        repo = await seed(db_session, new_subscription())
        entry = payment_ledger.payment_entry(Decimal("500"), "pay_1", NOW, "INR")

        # Act
        updated = await repo.compare_and_swap(
            "sub_1",
            PENDING_ONLY,
            1,
            SubscriptionChanges(status=SubscriptionStatus.ACTIVE, append=entry),
            NOW + timedelta(minutes=1),
        )
        await db_session.commit()

        # Assert
        assert updated.status == SubscriptionStatus.ACTIVE
        assert updated.version == 2
        assert updated.last_updated == NOW + timedelta(minutes=1)
        assert updated.payment_history == (entry,)
        assert (await repo.get_by_id("sub_1")).payment_history[0].amount == Decimal("500")

    @pytest.mark.asyncio
    async def test_stale_version_matches_nothing(self, db_session):
        repo = await seed(db_session, new_subscription())

        result = await repo.compare_and_swap(
            "sub_1", PENDING_ONLY, 7, SubscriptionChanges(status=SubscriptionStatus.ACTIVE), NOW
        )

        assert result is None
        assert (await repo.get_by_id("sub_1")).status == SubscriptionStatus.PENDING_PAYMENT

    @pytest.mark.asyncio
    async def test_unexpected_status_matches_nothing(self, db_session):
        repo = await seed(db_session, new_subscription())

        result = await repo.compare_and_swap(
            "sub_1", ACTIVE_ONLY, 1, SubscriptionChanges(status=SubscriptionStatus.EXPIRED), NOW
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_history_is_kept_across_appends(self, db_session):
        repo = await seed(db_session, new_subscription())
        failed = payment_ledger.failed_entry("pay_0", NOW, "INR", "Card declined")
        paid = payment_ledger.payment_entry(Decimal("500"), "pay_1", NOW, "INR")

        await repo.compare_and_swap("sub_1", PENDING_ONLY, 1, SubscriptionChanges(append=failed), NOW)
        await repo.compare_and_swap(
            "sub_1", PENDING_ONLY, 2, SubscriptionChanges(status=SubscriptionStatus.ACTIVE, append=paid), NOW
        )
        await db_session.commit()

        history = (await repo.get_by_id("sub_1")).payment_history
        assert [e.status for e in history] == [PaymentStatus.FAILED, PaymentStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_second_writer_with_same_version_loses(self, session_factory):
        """
        Given: Two sessions that both read version 1
        When: Both try to activate
        Then: Only the first write lands; the second matches nothing
        """
        # Arrange
        async with session_factory() as setup:
            await seed(setup, new_subscription())

        # Act
        async with session_factory() as first:
            repo = SqlAlchemySubscriptionRepository(first)
            winner = await repo.compare_and_swap(
                "sub_1", PENDING_ONLY, 1,
                SubscriptionChanges(
                    status=SubscriptionStatus.ACTIVE,
                    append=payment_ledger.payment_entry(Decimal("500"), "pay_a", NOW, "INR"),
                ),
                NOW,
            )
            await first.commit()

        async with session_factory() as second:
            repo = SqlAlchemySubscriptionRepository(second)
            loser = await repo.compare_and_swap(
                "sub_1", PENDING_ONLY, 1,
                SubscriptionChanges(
                    status=SubscriptionStatus.ACTIVE,
                    append=payment_ledger.payment_entry(Decimal("500"), "pay_b", NOW, "INR"),
                ),
                NOW,
            )
            await second.commit()

        # Assert
        assert winner is not None
        assert loser is None
        async with session_factory() as check:
            stored = await SqlAlchemySubscriptionRepository(check).get_by_id("sub_1")
        assert [e.transaction_id for e in stored.payment_history] == ["pay_a"]
        assert stored.version == 2


class TestCandidateQueries:
    @pytest.mark.asyncio
    async def test_find_by_status_window(self, db_session):
        repo = await seed(
            db_session,
            new_subscription("sub_a", status=SubscriptionStatus.ACTIVE, end_date=datetime(2024, 3, 15, 18)),
            new_subscription("sub_b", status=SubscriptionStatus.ACTIVE, end_date=datetime(2024, 3, 14)),
            new_subscription(
                "sub_c", status=SubscriptionStatus.ACTIVE, end_date=datetime(2024, 3, 15, 6), auto_renew=True
            ),
            new_subscription("sub_d", status=SubscriptionStatus.ACTIVE, end_date=datetime(2024, 3, 16)),
        )

        due = await repo.find_by_status(SubscriptionStatus.ACTIVE, end_before=datetime(2024, 3, 16))
        today_auto = await repo.find_by_status(
            SubscriptionStatus.ACTIVE,
            end_from=datetime(2024, 3, 15),
            end_before=datetime(2024, 3, 16),
            auto_renew=True,
        )

        assert [s.id for s in due] == ["sub_b", "sub_c", "sub_a"]
        assert [s.id for s in today_auto] == ["sub_c"]

    @pytest.mark.asyncio
    async def test_pending_with_recent_failed_payment(self, db_session):
        recent = payment_ledger.failed_entry("pay_1", NOW - timedelta(days=1), "INR")
        stale = payment_ledger.failed_entry("pay_2", NOW - timedelta(days=10), "INR")
        repo = await seed(
            db_session,
            new_subscription("sub_recent", payment_history=[recent.model_dump(mode="json")]),
            new_subscription("sub_stale", payment_history=[stale.model_dump(mode="json")]),
            new_subscription(
                "sub_active",
                status=SubscriptionStatus.ACTIVE,
                payment_history=[recent.model_dump(mode="json")],
            ),
        )

        found = await repo.find_pending_with_failed_payment_since(NOW - timedelta(days=3))

        assert [s.id for s in found] == ["sub_recent"]
