"""Admin-initiated subscription commands"""

import logging
from libs.result import Result, Return, Error
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.subscription import SubscriptionStatus
from .dtos import CancelCommandDTO, SetAutoRenewCommandDTO, TransitionOutcomeDTO
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class CancelSubscription:
    """
    Use Case: admin cancels the active subscription

    Access continues until end_date; auto_renew is switched off and the
    reason is kept on the row.
    """

    def __init__(self, lifecycle: SubscriptionLifecycle, subscription_repo: SubscriptionRepository):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo

    async def execute(self, command: CancelCommandDTO) -> Result[TransitionOutcomeDTO]:
        snapshot = await self.subscription_repo.get_current_for_admin(
            command.admin_id, [SubscriptionStatus.ACTIVE]
        )
        if snapshot is None:
            return Return.err(
                Error(code=ErrorCode.SUBSCRIPTION_NOT_FOUND, message="No active subscription found")
            )

        logger.info(f"Admin {command.admin_id} cancelling subscription {snapshot.id}")
        return await self.lifecycle.cancel(snapshot.id, command.reason)


class SetAutoRenew:
    def __init__(self, lifecycle: SubscriptionLifecycle, subscription_repo: SubscriptionRepository):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo

    async def execute(self, command: SetAutoRenewCommandDTO) -> Result[TransitionOutcomeDTO]:
        snapshot = await self.subscription_repo.get_current_for_admin(
            command.admin_id, [SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING_PAYMENT]
        )
        if snapshot is None:
            return Return.err(
                Error(code=ErrorCode.SUBSCRIPTION_NOT_FOUND, message="No active subscription found")
            )
        return await self.lifecycle.set_auto_renew(snapshot.id, command.enabled)
