"""SQLAlchemy Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.

The conditional update is a single ``UPDATE ... WHERE id = :id AND
status IN (:expected) AND version = :version``; the row count tells whether
the precondition held. The payment history append is computed from the row
read at the expected version, so a concurrent writer (which bumps the
version) makes the UPDATE match nothing instead of losing an entry.
"""

from datetime import datetime
from typing import Any, Collection, Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.errors import PersistenceError
from src.app.repositories.subscription_repository import (
    SubscriptionChanges,
    SubscriptionRepository,
)
from src.domain import payment_ledger
from src.domain.subscription import (
    Subscription,
    SubscriptionSnapshot,
    SubscriptionStatus,
)


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Uses async session for database operations. Reads always refresh the
    identity map so a snapshot reflects the committed row, not a stale
    instance cached earlier in the same session.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, subscription_id: str) -> Optional[SubscriptionSnapshot]:
        row = await self._get_row(subscription_id)
        return row.to_snapshot() if row else None

    async def get_current_for_admin(
        self, admin_id: str, statuses: Collection[SubscriptionStatus]
    ) -> Optional[SubscriptionSnapshot]:
        statement = (
            select(Subscription)
            .where(Subscription.admin_id == admin_id)
            .where(Subscription.status.in_(list(statuses)))
            .order_by(Subscription.end_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load subscription for admin {admin_id}") from e
        row = result.scalars().first()
        return row.to_snapshot() if row else None

    async def create(self, subscription: Subscription) -> SubscriptionSnapshot:
        """
        Create a new subscription

        Args:
            subscription: Subscription entity to persist

        Returns:
            Snapshot of the created subscription
        """
        try:
            self.session.add(subscription)
            await self.session.flush()
            await self.session.refresh(subscription)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create subscription for admin {subscription.admin_id}") from e
        return subscription.to_snapshot()

    async def compare_and_swap(
        self,
        subscription_id: str,
        expected_statuses: Collection[SubscriptionStatus],
        expected_version: int,
        changes: SubscriptionChanges,
        now: datetime,
    ) -> Optional[SubscriptionSnapshot]:
        current = await self._get_row(subscription_id)
        if current is None:
            return None
        if current.status not in expected_statuses or current.version != expected_version:
            return None

        values = self._values_for(changes, current)
        values["version"] = expected_version + 1
        values["last_updated"] = now

        statement = (
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .where(Subscription.status.in_(list(expected_statuses)))
            .where(Subscription.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(statement)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update subscription {subscription_id}") from e

        if result.rowcount != 1:
            return None
        return await self.get_by_id(subscription_id)

    async def find_by_status(
        self,
        status: SubscriptionStatus,
        end_from: Optional[datetime] = None,
        end_before: Optional[datetime] = None,
        auto_renew: Optional[bool] = None,
    ) -> List[SubscriptionSnapshot]:
        statement = select(Subscription).where(Subscription.status == status)
        if end_from is not None:
            statement = statement.where(Subscription.end_date >= end_from)
        if end_before is not None:
            statement = statement.where(Subscription.end_date < end_before)
        if auto_renew is not None:
            statement = statement.where(Subscription.auto_renew == auto_renew)
        statement = statement.order_by(Subscription.end_date).execution_options(
            populate_existing=True
        )

        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list {status.value} subscriptions") from e
        return [row.to_snapshot() for row in result.scalars().all()]

    async def find_pending_with_failed_payment_since(
        self, since: datetime
    ) -> List[SubscriptionSnapshot]:
        # payment_history is a JSON column; filtering it portably means
        # loading the pending rows and checking entries in Python
        pending = await self.find_by_status(SubscriptionStatus.PENDING_PAYMENT)
        return [
            snapshot
            for snapshot in pending
            if payment_ledger.failed_since(snapshot.payment_history, since)
        ]

    async def _get_row(self, subscription_id: str) -> Optional[Subscription]:
        statement = (
            select(Subscription)
            .where(Subscription.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load subscription {subscription_id}") from e
        return result.scalar_one_or_none()

    @staticmethod
    def _values_for(changes: SubscriptionChanges, current: Subscription) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for field in (
            "status",
            "plan_id",
            "billing_cycle",
            "start_date",
            "end_date",
            "auto_renew",
            "cancellation_reason",
            "cancelled_at",
        ):
            value = getattr(changes, field)
            if value is not None:
                values[field] = value
        if changes.usage is not None:
            values["usage"] = changes.usage.model_dump(mode="json")
        if changes.append is not None:
            values["payment_history"] = list(current.payment_history or []) + [
                changes.append.model_dump(mode="json")
            ]
        return values
