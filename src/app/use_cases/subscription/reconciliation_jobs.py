"""Reconciliation Jobs

Periodic passes that move subscriptions along time-driven edges and send
time-driven notifications. Every job:

- selects its candidates with one query
- handles each candidate independently (one failure never stops the pass)
- is safe to re-run: state changes go through the lifecycle's conditional
  update, so a second pass over the same data finds nothing to do
- reports a JobRunResultDTO instead of raising on per-item failures
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Sequence
from libs.result import Result, Return, Error
from src.app.repositories.errors import PersistenceError
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.clock import Clock
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.app.services.notification_service import (
    NotificationKind,
    SubscriptionNotification,
)
from src.domain.lifecycle import day_window
from src.domain.subscription import SubscriptionSnapshot, SubscriptionStatus
from .dtos import JobRunResultDTO, TransitionOutcomeDTO
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle
from .usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
SKIPPED = "skipped"
FAILED = "failed"


def _tally(result: Result[TransitionOutcomeDTO]) -> str:
    if result.is_err():
        return FAILED
    return SUCCEEDED if result.value.applied else SKIPPED


class ReconciliationJob(ABC):
    """Template for a reconciliation pass: select, then handle each item"""

    name: str = ""
    title: str = ""

    def __init__(self, subscription_repo: SubscriptionRepository, clock: Clock):
        self.subscription_repo = subscription_repo
        self.clock = clock

    @abstractmethod
    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        pass

    @abstractmethod
    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        """Process one candidate; returns SUCCEEDED, SKIPPED or FAILED"""
        pass

    async def execute(self) -> Result[JobRunResultDTO]:
        started = time.time()
        now = self.clock.now()
        logger.info(f"[{self.title}] Starting {self.name} job at {now.isoformat()}")

        try:
            candidates = await self.select(now)
        except PersistenceError as e:
            logger.error(f"[{self.title}] Failed to select candidates: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.PERSISTENCE_ERROR,
                    message=f"{self.name} could not load candidates",
                    reason=str(e),
                )
            )

        logger.info(f"[{self.title}] Found {len(candidates)} candidate subscriptions")
        counts = {SUCCEEDED: 0, SKIPPED: 0, FAILED: 0}
        for subscription in candidates:
            try:
                outcome = await self.handle(subscription, now)
            except Exception as e:
                logger.exception(f"[{self.title}] Error processing subscription {subscription.id}: {e}")
                outcome = FAILED
            counts[outcome] += 1
            if outcome == FAILED:
                logger.error(f"[{self.title}] Subscription {subscription.id} failed")
            else:
                logger.info(f"[{self.title}] Subscription {subscription.id} {outcome}")

        logger.info(
            f"[{self.title}] Job completed. Success: {counts[SUCCEEDED]}, "
            f"Skipped: {counts[SKIPPED]}, Errors: {counts[FAILED]}"
        )
        return Return.ok(
            JobRunResultDTO(
                job_name=self.name,
                candidates=len(candidates),
                succeeded=counts[SUCCEEDED],
                skipped=counts[SKIPPED],
                failed=counts[FAILED],
                started_at=now,
                finished_at=self.clock.now(),
                execution_time_ms=int((time.time() - started) * 1000),
            )
        )


class ExpiryCheckJob(ReconciliationJob):
    """
    active -> expired for windows ending today (or earlier)

    Subscriptions with auto_renew ending today are left to the auto-renewal
    pass. Overdue ones (missed passes, failed renewals) are expired
    regardless of auto_renew.
    """

    name = "expiryCheck"
    title = "Expiry Checker"

    def __init__(self, subscription_repo: SubscriptionRepository, clock: Clock, lifecycle: SubscriptionLifecycle):
        super().__init__(subscription_repo, clock)
        self.lifecycle = lifecycle

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        _, tomorrow = day_window(now)
        return await self.subscription_repo.find_by_status(
            SubscriptionStatus.ACTIVE, end_before=tomorrow
        )

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        today, _ = day_window(now)
        if subscription.auto_renew and subscription.end_date >= today:
            return SKIPPED
        return _tally(await self.lifecycle.expire(subscription.id))


class RenewalReminderJob(ReconciliationJob):
    """Reminds admins 7, 3 and 1 days before end_date; no state change"""

    name = "renewalReminder"
    title = "Renewal Reminder"

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        clock: Clock,
        plan_repo: PlanRepository,
        dispatcher: NotificationDispatcher,
        reminder_days: Sequence[int] = (7, 3, 1),
    ):
        super().__init__(subscription_repo, clock)
        self.plan_repo = plan_repo
        self.dispatcher = dispatcher
        self.reminder_days = tuple(reminder_days)

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        candidates: List[SubscriptionSnapshot] = []
        for days in self.reminder_days:
            start, end = day_window(now, days)
            candidates.extend(
                await self.subscription_repo.find_by_status(
                    SubscriptionStatus.ACTIVE, end_from=start, end_before=end
                )
            )
        return candidates

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        today, _ = day_window(now)
        days_left = (subscription.end_date - today).days
        plan = await self.plan_repo.get_by_id(subscription.plan_id)
        delivered = await self.dispatcher.dispatch(
            SubscriptionNotification(
                kind=NotificationKind.RENEWAL_REMINDER,
                subscription_id=subscription.id,
                admin_id=subscription.admin_id,
                plan_name=plan.name if plan else None,
                context={
                    "days_remaining": days_left,
                    "end_date": subscription.end_date.isoformat(),
                    "auto_renew": subscription.auto_renew,
                },
            )
        )
        return SUCCEEDED if delivered else FAILED


class UsageResetJob(ReconciliationJob):
    """Zeroes orders_this_month on every active subscription"""

    name = "usageReset"
    title = "Usage Counter Reset"

    def __init__(self, subscription_repo: SubscriptionRepository, clock: Clock, usage_tracker: UsageTracker):
        super().__init__(subscription_repo, clock)
        self.usage_tracker = usage_tracker

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        return await self.subscription_repo.find_by_status(SubscriptionStatus.ACTIVE)

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        return _tally(await self.usage_tracker.reset_monthly_counter(subscription.id))


class AutoRenewalJob(ReconciliationJob):
    name = "autoRenewal"
    title = "Auto-Renewal Handler"

    def __init__(self, subscription_repo: SubscriptionRepository, clock: Clock, lifecycle: SubscriptionLifecycle):
        super().__init__(subscription_repo, clock)
        self.lifecycle = lifecycle

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        today, tomorrow = day_window(now)
        return await self.subscription_repo.find_by_status(
            SubscriptionStatus.ACTIVE, end_from=today, end_before=tomorrow, auto_renew=True
        )

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        return _tally(await self.lifecycle.auto_renew(subscription.id))


class PaymentRetryJob(ReconciliationJob):
    """Sends a retry link for pending subscriptions with a recent failed payment"""

    name = "paymentRetry"
    title = "Failed Payment Retry"

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        clock: Clock,
        plan_repo: PlanRepository,
        lifecycle: SubscriptionLifecycle,
        dispatcher: NotificationDispatcher,
        lookback_days: int = 3,
    ):
        super().__init__(subscription_repo, clock)
        self.plan_repo = plan_repo
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher
        self.lookback_days = lookback_days

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        return await self.subscription_repo.find_pending_with_failed_payment_since(
            now - timedelta(days=self.lookback_days)
        )

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        plan = await self.plan_repo.get_by_id(subscription.plan_id)
        if plan is None:
            logger.warning(f"[{self.title}] Plan {subscription.plan_id} not found, skipping {subscription.id}")
            return SKIPPED
        delivered = await self.dispatcher.dispatch(
            SubscriptionNotification(
                kind=NotificationKind.PAYMENT_RETRY,
                subscription_id=subscription.id,
                admin_id=subscription.admin_id,
                plan_name=plan.name,
                context={
                    "retry_link": self.lifecycle.retry_link(subscription.id),
                    "amount": str(plan.price_for(subscription.billing_cycle)),
                    "billing_cycle": subscription.billing_cycle.value,
                },
            )
        )
        return SUCCEEDED if delivered else FAILED


class CleanupJob(ReconciliationJob):
    """expired -> archived once end_date is older than the cooldown"""

    name = "cleanup"
    title = "Inactive Cleanup"

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        clock: Clock,
        lifecycle: SubscriptionLifecycle,
        archive_after_days: int = 30,
    ):
        super().__init__(subscription_repo, clock)
        self.lifecycle = lifecycle
        self.archive_after_days = archive_after_days

    async def select(self, now: datetime) -> Sequence[SubscriptionSnapshot]:
        return await self.subscription_repo.find_by_status(
            SubscriptionStatus.EXPIRED,
            end_before=now - timedelta(days=self.archive_after_days),
        )

    async def handle(self, subscription: SubscriptionSnapshot, now: datetime) -> str:
        return _tally(
            await self.lifecycle.archive(
                subscription.id, cooldown=timedelta(days=self.archive_after_days)
            )
        )
