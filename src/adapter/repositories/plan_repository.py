"""SQLAlchemy Subscription Plan Repository Implementation"""

from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.errors import PersistenceError
from src.app.repositories.plan_repository import PlanRepository
from src.domain.subscription_plan import SubscriptionPlan


class SqlAlchemyPlanRepository(PlanRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, plan_id: str) -> Optional[SubscriptionPlan]:
        statement = select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id)
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load plan {plan_id}") from e
        return result.scalar_one_or_none()

    async def list_active(self) -> List[SubscriptionPlan]:
        """
        Retrieve selectable plans

        Returns:
            Active plans ordered by display_order, then monthly price
        """
        statement = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active == True)  # noqa: E712
            .order_by(SubscriptionPlan.display_order, SubscriptionPlan.price_monthly)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list active plans") from e
        return list(result.scalars().all())

    async def create(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        try:
            self.session.add(plan)
            await self.session.flush()
            await self.session.refresh(plan)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create plan {plan.name}") from e
        return plan
