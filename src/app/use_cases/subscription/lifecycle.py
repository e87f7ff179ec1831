"""SubscriptionLifecycle Use Case

Applies lifecycle commands to a subscription. Webhooks, admin requests and
scheduled jobs all go through this class; none of them writes a
subscription directly.

Every command follows the same steps:
1. Read a snapshot
2. Check the edge's source statuses (not allowed -> logged no-op)
3. Build the changes from the snapshot (guard failed -> logged no-op)
4. Compare-and-swap on (status in sources, version)
5. Commit, then notify (best-effort, after commit)

A lost compare-and-swap re-reads the row and re-evaluates the edge, so a
writer that lost a race observes a no-op instead of appending a second
ledger entry.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union
from libs.result import Result, Return, Error
from src.app.repositories.errors import PersistenceError
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import (
    SubscriptionChanges,
    SubscriptionRepository,
)
from src.app.services.clock import Clock
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.app.services.notification_service import (
    NotificationKind,
    SubscriptionNotification,
)
from src.app.services.unit_of_work import UnitOfWork
from src.domain import payment_ledger
from src.domain.lifecycle import (
    ARCHIVE_COOLDOWN,
    LifecycleEvent,
    add_billing_cycle,
    day_window,
    transition_for,
)
from src.domain.subscription import (
    BillingCycle,
    PaymentStatus,
    SubscriptionSnapshot,
    UsageCounters,
)
from src.domain.subscription_plan import SubscriptionPlan
from .dtos import TransitionOutcomeDTO
from .errors import ErrorCode, NoOpReason

logger = logging.getLogger(__name__)

Built = Union[SubscriptionChanges, str, Error]
ChangeBuilder = Callable[[SubscriptionSnapshot, datetime], Awaitable[Built]]
Notifier = Callable[[SubscriptionSnapshot], Optional[SubscriptionNotification]]


class SubscriptionLifecycle:
    """
    Use Case: drive a subscription through its lifecycle

    Business Rules:
    1. Only the edges in src.domain.lifecycle are ever applied
    2. One command appends at most one payment history entry
    3. endDate is derived from billing_cycle: activation starts now,
       auto-renewal starts at the previous endDate
    4. Notifications never block or undo a committed change
    5. A failed auto-renewal disables auto_renew (no retry this cycle)
    """

    MAX_ATTEMPTS = 3

    def __init__(
        self,
        uow: UnitOfWork,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        clock: Clock,
        dispatcher: NotificationDispatcher,
        currency: str = "INR",
        frontend_url: str = "http://localhost:3000",
    ):
        self.uow = uow
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo
        self.clock = clock
        self.dispatcher = dispatcher
        self.currency = currency
        self.frontend_url = frontend_url.rstrip("/")

    # Payment events -------------------------------------------------------

    async def activate(
        self,
        subscription_id: str,
        payment_id: str,
        amount: Decimal,
        method: Optional[str] = None,
        plan_name: Optional[str] = None,
        source: str = "webhook",
    ) -> Result[TransitionOutcomeDTO]:
        """pending_payment -> active; starts a fresh window at activation time"""
        plan: Optional[SubscriptionPlan] = None

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            nonlocal plan
            plan = await self.plan_repo.get_by_id(snapshot.plan_id)
            label = plan_name or (plan.name if plan else None) or "Subscription"
            return SubscriptionChanges(
                start_date=now,
                end_date=add_billing_cycle(now, snapshot.billing_cycle),
                usage=UsageCounters(),
                append=payment_ledger.payment_entry(
                    amount=amount,
                    transaction_id=payment_id,
                    now=now,
                    currency=self.currency,
                    note=f"Payment via {source} - {label} (Method: {method or 'unknown'})",
                ),
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.SUBSCRIPTION_ACTIVATED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                plan_name=plan_name or (plan.name if plan else None),
                context={
                    "start_date": updated.start_date.isoformat(),
                    "end_date": updated.end_date.isoformat(),
                    "amount": str(amount),
                },
            )

        return await self._apply(subscription_id, LifecycleEvent.ACTIVATE, build, notify)

    async def record_failed_payment(
        self,
        subscription_id: str,
        transaction_id: str,
        error_description: Optional[str] = None,
        plan_name: Optional[str] = None,
    ) -> Result[TransitionOutcomeDTO]:
        """pending_payment self-loop; appends a zero-amount failed entry"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            if payment_ledger.find_by_transaction(
                snapshot.payment_history, transaction_id, PaymentStatus.FAILED
            ):
                return NoOpReason.DUPLICATE_EVENT
            return SubscriptionChanges(
                append=payment_ledger.failed_entry(
                    transaction_id, now, self.currency, error_description
                )
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.PAYMENT_FAILED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                plan_name=plan_name,
                context={
                    "reason": error_description or "Payment processing failed",
                    "retry_link": self.retry_link(updated.id),
                },
            )

        return await self._apply(
            subscription_id, LifecycleEvent.RECORD_FAILED_PAYMENT, build, notify
        )

    async def refund(
        self, subscription_id: str, payment_id: str, amount: Decimal
    ) -> Result[TransitionOutcomeDTO]:
        """active -> cancelled; appends a negative refunded entry"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            return SubscriptionChanges(
                auto_renew=False,
                append=payment_ledger.refund_entry(amount, payment_id, now, self.currency),
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.SUBSCRIPTION_REFUNDED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                context={
                    "refund_amount": str(abs(amount)),
                    "refund_date": updated.last_updated.isoformat(),
                },
            )

        return await self._apply(subscription_id, LifecycleEvent.REFUND, build, notify)

    # Admin commands -------------------------------------------------------

    async def cancel(self, subscription_id: str, reason: str) -> Result[TransitionOutcomeDTO]:
        """active -> cancelled by the admin; access continues until end_date"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            return SubscriptionChanges(
                auto_renew=False,
                cancellation_reason=reason,
                cancelled_at=now,
                append=payment_ledger.cancellation_entry(now, self.currency, reason),
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.SUBSCRIPTION_CANCELLED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                context={
                    "cancellation_date": updated.cancelled_at.isoformat(),
                    "access_until": updated.end_date.isoformat(),
                },
            )

        return await self._apply(subscription_id, LifecycleEvent.CANCEL, build, notify)

    async def upgrade(
        self,
        subscription_id: str,
        from_plan: SubscriptionPlan,
        to_plan: SubscriptionPlan,
        billing_cycle: BillingCycle,
        amount_due: Decimal,
        is_upgrade: bool,
    ) -> Result[TransitionOutcomeDTO]:
        """active self-loop switching plan; dates are left untouched"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            if snapshot.plan_id == to_plan.id and snapshot.billing_cycle == billing_cycle:
                return NoOpReason.ALREADY_APPLIED
            if snapshot.plan_id != from_plan.id:
                return NoOpReason.PRECONDITION_NOT_MET
            return SubscriptionChanges(
                plan_id=to_plan.id,
                billing_cycle=billing_cycle,
                append=payment_ledger.plan_change_entry(
                    amount_due, is_upgrade, from_plan.name, to_plan.name, now, self.currency
                ),
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.PLAN_CHANGED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                plan_name=to_plan.name,
                context={
                    "previous_plan": from_plan.name,
                    "change_type": "upgrade" if is_upgrade else "downgrade",
                    "amount_due": str(amount_due),
                },
            )

        return await self._apply(subscription_id, LifecycleEvent.UPGRADE, build, notify)

    async def set_auto_renew(self, subscription_id: str, enabled: bool) -> Result[TransitionOutcomeDTO]:
        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            if snapshot.auto_renew == enabled:
                return NoOpReason.ALREADY_APPLIED
            return SubscriptionChanges(auto_renew=enabled)

        return await self._apply(subscription_id, LifecycleEvent.SET_AUTO_RENEW, build)

    async def update_usage(
        self,
        subscription_id: str,
        transform: Callable[[UsageCounters], UsageCounters],
    ) -> Result[TransitionOutcomeDTO]:
        """Rewrite the usage counters of an active subscription"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            usage = transform(snapshot.usage)
            if usage == snapshot.usage:
                return NoOpReason.ALREADY_APPLIED
            return SubscriptionChanges(usage=usage)

        return await self._apply(subscription_id, LifecycleEvent.RESET_USAGE, build)

    # Scheduled commands ---------------------------------------------------

    async def expire(self, subscription_id: str) -> Result[TransitionOutcomeDTO]:
        """active -> expired once end_date falls before the end of today"""
        plan: Optional[SubscriptionPlan] = None

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            nonlocal plan
            _, tomorrow = day_window(now)
            if snapshot.end_date >= tomorrow:
                return NoOpReason.PRECONDITION_NOT_MET
            plan = await self.plan_repo.get_by_id(snapshot.plan_id)
            return SubscriptionChanges()

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.SUBSCRIPTION_EXPIRED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                plan_name=plan.name if plan else None,
                context={"end_date": updated.end_date.isoformat()},
            )

        return await self._apply(subscription_id, LifecycleEvent.EXPIRE, build, notify)

    async def auto_renew(self, subscription_id: str) -> Result[TransitionOutcomeDTO]:
        """
        active self-loop extending the window from the previous end_date

        If the renewal cannot be written, auto_renew is switched off so the
        subscription is not retried (and not re-failed) every day.
        """
        plan: Optional[SubscriptionPlan] = None

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            nonlocal plan
            _, tomorrow = day_window(now)
            if not snapshot.auto_renew or snapshot.end_date >= tomorrow:
                return NoOpReason.PRECONDITION_NOT_MET
            plan = await self.plan_repo.get_by_id(snapshot.plan_id)
            if plan is None:
                return Error(
                    code=ErrorCode.PLAN_NOT_FOUND,
                    message=f"Plan {snapshot.plan_id} not found for renewal",
                )
            new_start = snapshot.end_date
            return SubscriptionChanges(
                start_date=new_start,
                end_date=add_billing_cycle(new_start, snapshot.billing_cycle),
                append=payment_ledger.auto_renewal_entry(
                    amount=plan.price_for(snapshot.billing_cycle),
                    billing_cycle=snapshot.billing_cycle,
                    subscription_id=snapshot.id,
                    renewed_from=new_start,
                    now=now,
                    currency=self.currency,
                ),
            )

        def notify(updated: SubscriptionSnapshot) -> SubscriptionNotification:
            return SubscriptionNotification(
                kind=NotificationKind.SUBSCRIPTION_AUTO_RENEWED,
                subscription_id=updated.id,
                admin_id=updated.admin_id,
                plan_name=plan.name if plan else None,
                context={"new_end_date": updated.end_date.isoformat()},
            )

        result = await self._apply(subscription_id, LifecycleEvent.AUTO_RENEW, build, notify)
        if result.is_err() and result.error.code != ErrorCode.SUBSCRIPTION_NOT_FOUND:
            await self._disable_auto_renew_after_failure(subscription_id, result.error)
        return result

    async def archive(
        self, subscription_id: str, cooldown: timedelta = ARCHIVE_COOLDOWN
    ) -> Result[TransitionOutcomeDTO]:
        """expired -> archived after the cooldown; archived is terminal"""

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            if snapshot.end_date >= now - cooldown:
                return NoOpReason.PRECONDITION_NOT_MET
            return SubscriptionChanges()

        return await self._apply(subscription_id, LifecycleEvent.ARCHIVE, build)

    def retry_link(self, subscription_id: str) -> str:
        return f"{self.frontend_url}/subscription/retry/{subscription_id}"

    # Internals ------------------------------------------------------------

    async def _disable_auto_renew_after_failure(self, subscription_id: str, error: Error) -> None:
        logger.error(
            f"Auto-renewal failed for subscription {subscription_id}: "
            f"{error.message} ({error.reason}); disabling auto-renew"
        )

        async def build(snapshot: SubscriptionSnapshot, now: datetime) -> Built:
            if not snapshot.auto_renew:
                return NoOpReason.ALREADY_APPLIED
            return SubscriptionChanges(auto_renew=False)

        result = await self._apply(subscription_id, LifecycleEvent.SET_AUTO_RENEW, build)
        if result.is_err():
            logger.error(
                f"Failed to disable auto-renew for subscription {subscription_id}: "
                f"{result.error.reason}"
            )

    async def _apply(
        self,
        subscription_id: str,
        event: LifecycleEvent,
        build: ChangeBuilder,
        notify: Optional[Notifier] = None,
    ) -> Result[TransitionOutcomeDTO]:
        transition = transition_for(event)
        snapshot: Optional[SubscriptionSnapshot] = None

        try:
            for attempt in range(1, self.MAX_ATTEMPTS + 1):
                snapshot = await self.subscription_repo.get_by_id(subscription_id)
                if snapshot is None:
                    logger.warning(f"{event.value}: subscription {subscription_id} not found")
                    return Return.err(
                        Error(
                            code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
                            message=f"Subscription {subscription_id} not found",
                        )
                    )

                if not transition.allows(snapshot.status):
                    reason = (
                        NoOpReason.ALREADY_APPLIED
                        if snapshot.status == transition.target
                        else NoOpReason.ILLEGAL_TRANSITION
                    )
                    logger.info(
                        f"{event.value} ignored for subscription {subscription_id}: "
                        f"status is {snapshot.status.value} ({reason})"
                    )
                    return Return.ok(self._outcome(snapshot, snapshot, event, False, reason))

                now = self.clock.now()
                built = await build(snapshot, now)
                if isinstance(built, Error):
                    return Return.err(built)
                if isinstance(built, str):
                    logger.info(f"{event.value} ignored for subscription {subscription_id}: {built}")
                    return Return.ok(self._outcome(snapshot, snapshot, event, False, built))

                changes = built.model_copy(
                    update={"status": transition.resulting_status(snapshot.status)}
                )
                updated = await self.subscription_repo.compare_and_swap(
                    subscription_id,
                    transition.sources,
                    snapshot.version,
                    changes,
                    now,
                )
                if updated is None:
                    await self.uow.rollback()
                    logger.info(
                        f"{event.value}: subscription {subscription_id} changed concurrently "
                        f"(attempt {attempt}/{self.MAX_ATTEMPTS}), re-checking"
                    )
                    continue

                await self.uow.commit()
                logger.info(
                    f"{event.value} applied to subscription {subscription_id}: "
                    f"{snapshot.status.value} -> {updated.status.value}"
                )
                if notify is not None:
                    notification = notify(updated)
                    if notification is not None:
                        await self.dispatcher.dispatch(notification)
                return Return.ok(self._outcome(snapshot, updated, event, True, None))

        except PersistenceError as e:
            await self.uow.rollback()
            logger.error(f"{event.value} failed for subscription {subscription_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.PERSISTENCE_ERROR,
                    message=f"Failed to apply {event.value}",
                    reason=str(e),
                )
            )

        logger.warning(
            f"{event.value} gave up on subscription {subscription_id} after "
            f"{self.MAX_ATTEMPTS} concurrent updates"
        )
        return Return.ok(
            self._outcome(snapshot, snapshot, event, False, NoOpReason.CONCURRENCY_CONFLICT)
        )

    @staticmethod
    def _outcome(
        before: SubscriptionSnapshot,
        after: SubscriptionSnapshot,
        event: LifecycleEvent,
        applied: bool,
        reason: Optional[str],
    ) -> TransitionOutcomeDTO:
        return TransitionOutcomeDTO(
            subscription_id=before.id,
            event=event,
            applied=applied,
            reason=reason,
            previous_status=before.status,
            status=after.status,
            subscription=after,
        )
