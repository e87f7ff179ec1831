from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.repositories.plan_repository import SqlAlchemyPlanRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.clock import SystemClock
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.razorpay import RazorpayPaymentGateway, RazorpaySignatureVerifier
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.clock import Clock
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.app.services.payment_gateway import PaymentGateway
from src.app.services.signature_verifier import SignatureVerifier
from src.app.use_cases.subscription import SubscriptionLifecycle

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

_clock = SystemClock()
_dispatcher = NotificationDispatcher(
    create_notification_service(
        ApplicationConfig.NOTIFICATION_WEBHOOK_URL,
        timeout=ApplicationConfig.NOTIFICATION_TIMEOUT_SECONDS,
    ),
    timeout_seconds=ApplicationConfig.NOTIFICATION_TIMEOUT_SECONDS,
)
_verifier = RazorpaySignatureVerifier(
    webhook_secret=ApplicationConfig.RAZORPAY_WEBHOOK_SECRET,
    key_secret=ApplicationConfig.RAZORPAY_KEY_SECRET,
)
_gateway = RazorpayPaymentGateway(
    key_id=ApplicationConfig.RAZORPAY_KEY_ID,
    key_secret=ApplicationConfig.RAZORPAY_KEY_SECRET,
    base_url=ApplicationConfig.RAZORPAY_API_URL,
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_unit_of_work(session: AsyncSession = Depends(get_session)):
    yield SqlAlchemyUnitOfWork(session)


def get_clock() -> Clock:
    return _clock


def get_notification_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def get_signature_verifier() -> SignatureVerifier:
    return _verifier


def get_payment_gateway() -> PaymentGateway:
    return _gateway


def get_scheduler(request: Request):
    """Scheduler started by the app lifespan (None when disabled)"""
    return getattr(request.app.state, "scheduler", None)


def get_lifecycle(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(
        uow=SqlAlchemyUnitOfWork(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        plan_repo=SqlAlchemyPlanRepository(session),
        clock=clock,
        dispatcher=dispatcher,
        currency=ApplicationConfig.DEFAULT_CURRENCY,
        frontend_url=ApplicationConfig.FRONTEND_URL,
    )
