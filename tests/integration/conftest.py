from datetime import datetime
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.depends import (
    get_clock,
    get_notification_dispatcher,
    get_payment_gateway,
    get_session,
    get_signature_verifier,
)
from src.worker.subscription_jobs import SubscriptionJobsWorker
from tests.fakes import (
    FakePaymentGateway,
    FrozenClock,
    RecordingNotificationService,
    StaticSignatureVerifier,
)

NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create test database engine on a throwaway SQLite file"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'subscriptions_test.db'}", echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotificationService()


@pytest.fixture
def verifier():
    return StaticSignatureVerifier()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def app(db_session, session_factory, clock, notifier, verifier, gateway):
    """Application with session, clock, gateway and notification overrides"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    dispatcher = NotificationDispatcher(notifier, timeout_seconds=1.0)
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_signature_verifier] = lambda: verifier
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    # ASGITransport does not run the lifespan, so the scheduler is wired here
    worker = SubscriptionJobsWorker(
        session_factory=session_factory,
        clock=clock,
        notification_service=notifier,
        config=ApplicationConfig,
    )
    app.state.scheduler = worker.create_scheduler()
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
