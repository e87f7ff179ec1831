"""Subscription Repository Interface

Defines the contract for subscription persistence operations.

Reads return immutable snapshots. The only write to an existing
subscription is ``compare_and_swap``: it applies a set of changes (and at
most one payment history append) if and only if the stored row still has
one of the expected statuses and the expected version.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, List, Optional
from pydantic import BaseModel, ConfigDict
from src.domain.subscription import (
    BillingCycle,
    PaymentRecord,
    Subscription,
    SubscriptionSnapshot,
    SubscriptionStatus,
    UsageCounters,
)


class SubscriptionChanges(BaseModel):
    """Field changes applied by a conditional update; None means unchanged"""

    model_config = ConfigDict(frozen=True)

    status: Optional[SubscriptionStatus] = None
    plan_id: Optional[str] = None
    billing_cycle: Optional[BillingCycle] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    auto_renew: Optional[bool] = None
    usage: Optional[UsageCounters] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    append: Optional[PaymentRecord] = None


class SubscriptionRepository(ABC):
    """
    Repository interface for Subscription persistence

    Raises PersistenceError when the underlying storage fails.
    """

    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Optional[SubscriptionSnapshot]:
        """
        Retrieve subscription by ID

        Args:
            subscription_id: Subscription ID

        Returns:
            SubscriptionSnapshot if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_current_for_admin(
        self, admin_id: str, statuses: Collection[SubscriptionStatus]
    ) -> Optional[SubscriptionSnapshot]:
        """
        Retrieve the admin's subscription in one of the given statuses

        When several match, the one with the latest end_date is returned.
        """
        pass

    @abstractmethod
    async def create(self, subscription: Subscription) -> SubscriptionSnapshot:
        """
        Persist a new subscription row

        Args:
            subscription: Subscription entity (normally pending_payment)

        Returns:
            Snapshot of the created subscription
        """
        pass

    @abstractmethod
    async def compare_and_swap(
        self,
        subscription_id: str,
        expected_statuses: Collection[SubscriptionStatus],
        expected_version: int,
        changes: SubscriptionChanges,
        now: datetime,
    ) -> Optional[SubscriptionSnapshot]:
        """
        Atomically apply changes if the precondition still holds

        Args:
            subscription_id: Subscription to update
            expected_statuses: Statuses the row must currently have
            expected_version: Version the row must currently have
            changes: Field changes and optional payment history append
            now: Timestamp written to last_updated

        Returns:
            Snapshot after the update, or None if the precondition did not hold
        """
        pass

    @abstractmethod
    async def find_by_status(
        self,
        status: SubscriptionStatus,
        end_from: Optional[datetime] = None,
        end_before: Optional[datetime] = None,
        auto_renew: Optional[bool] = None,
    ) -> List[SubscriptionSnapshot]:
        """
        Select candidate subscriptions by status and end_date window

        Args:
            status: Required status
            end_from: Inclusive lower bound on end_date
            end_before: Exclusive upper bound on end_date
            auto_renew: Optional filter on the auto_renew flag

        Returns:
            Matching snapshots ordered by end_date
        """
        pass

    @abstractmethod
    async def find_pending_with_failed_payment_since(
        self, since: datetime
    ) -> List[SubscriptionSnapshot]:
        """
        Select pending_payment subscriptions with a failed entry dated >= since
        """
        pass
