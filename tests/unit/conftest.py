from datetime import datetime
import pytest
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.app.use_cases.subscription import SubscriptionLifecycle, UsageTracker
from tests.fakes import (
    FakeUnitOfWork,
    FrozenClock,
    InMemoryPlanRepository,
    InMemorySubscriptionRepository,
    RecordingNotificationService,
    make_plan,
)

NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def subscription_repo():
    return InMemorySubscriptionRepository()


@pytest.fixture
def basic_plan():
    return make_plan()


@pytest.fixture
def pro_plan():
    return make_plan(
        plan_id="plan_pro",
        name="Pro",
        monthly="1500.00",
        yearly="15000.00",
        max_hotels=5,
        analytics_access=True,
        display_order=1,
    )


@pytest.fixture
def plan_repo(basic_plan, pro_plan):
    return InMemoryPlanRepository([basic_plan, pro_plan])


@pytest.fixture
def notifier():
    return RecordingNotificationService()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, timeout_seconds=1.0)


@pytest.fixture
def lifecycle(uow, subscription_repo, plan_repo, clock, dispatcher):
    return SubscriptionLifecycle(
        uow=uow,
        subscription_repo=subscription_repo,
        plan_repo=plan_repo,
        clock=clock,
        dispatcher=dispatcher,
        frontend_url="https://app.example.com",
    )


@pytest.fixture
def usage_tracker(lifecycle, subscription_repo, plan_repo):
    return UsageTracker(lifecycle, subscription_repo, plan_repo)
