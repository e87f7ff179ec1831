"""UsageTracker Use Case

Maintains a subscription's usage counters and answers quota questions
against the plan limits. Counter writes go through SubscriptionLifecycle
so they obey the same conditional-update rules as every other change.
"""

import logging
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from src.app.repositories.plan_repository import PlanRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.subscription import (
    SubscriptionSnapshot,
    SubscriptionStatus,
    UsageCounters,
)
from src.domain.subscription_plan import PlanFeature, ResourceType, SubscriptionPlan, used_amount
from .dtos import (
    ResourceUsageDTO,
    TransitionOutcomeDTO,
    UsageStatsDTO,
    UsageWarningDTO,
)
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)

WARNING_THRESHOLD = 80.0

USAGE_VISIBLE_STATUSES = [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_PAYMENT]


def is_limit_reached(
    plan: SubscriptionPlan, usage: UsageCounters, resource: ResourceType
) -> bool:
    return used_amount(usage, resource) >= plan.limit_for(resource)


def has_feature(plan: SubscriptionPlan, feature: PlanFeature) -> bool:
    return plan.has_feature(feature)


def _resource_usage(used, limit) -> ResourceUsageDTO:
    percentage = round(used / limit * 100, 2) if limit > 0 else 100.0
    return ResourceUsageDTO(
        used=used,
        limit=limit,
        percentage=percentage,
        available=max(0, limit - used),
    )


class UsageTracker:
    """
    Use Case: track resource usage of a subscription

    Business Rules:
    1. reinitialize zeroes every counter
    2. reset_monthly_counter zeroes orders_this_month only
    3. Counters only change on active subscriptions
    4. Stats warn at >= 80% of a limit and again at 100%
    """

    def __init__(
        self,
        lifecycle: SubscriptionLifecycle,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
    ):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo
        self.plan_repo = plan_repo

    async def reinitialize(self, subscription_id: str) -> Result[TransitionOutcomeDTO]:
        return await self.lifecycle.update_usage(subscription_id, lambda _: UsageCounters())

    async def reset_monthly_counter(self, subscription_id: str) -> Result[TransitionOutcomeDTO]:
        return await self.lifecycle.update_usage(
            subscription_id,
            lambda usage: usage.model_copy(update={"orders_this_month": 0}),
        )

    async def is_limit_reached(self, subscription_id: str, resource: ResourceType) -> Result[bool]:
        loaded = await self._load(subscription_id)
        if loaded.is_err():
            return loaded
        snapshot, plan = loaded.value
        return Return.ok(is_limit_reached(plan, snapshot.usage, resource))

    async def has_feature(self, subscription_id: str, feature: PlanFeature) -> Result[bool]:
        loaded = await self._load(subscription_id)
        if loaded.is_err():
            return loaded
        _, plan = loaded.value
        return Return.ok(has_feature(plan, feature))

    async def usage_stats(self, admin_id: str) -> Result[UsageStatsDTO]:
        """
        Per-resource usage of the admin's active or pending-payment subscription

        Returns:
            Result[UsageStatsDTO]: usage map keyed by resource name plus warnings
        """
        snapshot = await self.subscription_repo.get_current_for_admin(
            admin_id, USAGE_VISIBLE_STATUSES
        )
        if snapshot is None:
            return Return.err(
                Error(
                    code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
                    message="No active or pending subscription found",
                )
            )
        plan = await self.plan_repo.get_by_id(snapshot.plan_id)
        if plan is None:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_FOUND, message=f"Plan {snapshot.plan_id} not found")
            )

        usage: Dict[str, ResourceUsageDTO] = {}
        warnings: List[UsageWarningDTO] = []
        for resource in ResourceType:
            stats = _resource_usage(used_amount(snapshot.usage, resource), plan.limit_for(resource))
            usage[resource.value] = stats
            if stats.percentage >= 100:
                warnings.append(
                    UsageWarningDTO(
                        resource=resource.value,
                        message=f"You have reached your {resource.value} limit",
                    )
                )
            elif stats.percentage >= WARNING_THRESHOLD:
                warnings.append(
                    UsageWarningDTO(
                        resource=resource.value,
                        message=f"You are using {stats.percentage:.0f}% of your {resource.value} limit. Consider upgrading.",
                    )
                )

        return Return.ok(
            UsageStatsDTO(
                subscription_id=snapshot.id,
                plan_name=plan.name,
                billing_cycle=snapshot.billing_cycle,
                usage=usage,
                warnings=warnings,
            )
        )

    async def _load(self, subscription_id: str) -> Result:
        snapshot: Optional[SubscriptionSnapshot] = await self.subscription_repo.get_by_id(subscription_id)
        if snapshot is None:
            return Return.err(
                Error(
                    code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
                    message=f"Subscription {subscription_id} not found",
                )
            )
        plan = await self.plan_repo.get_by_id(snapshot.plan_id)
        if plan is None:
            return Return.err(
                Error(code=ErrorCode.PLAN_NOT_FOUND, message=f"Plan {snapshot.plan_id} not found")
            )
        return Return.ok((snapshot, plan))
