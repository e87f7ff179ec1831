"""Subscription Reconciliation Background Worker

Wires the six reconciliation jobs to the database and runs them on their
schedules. Can be run as a standalone script or started inside the API
process (see src.api.app).

Jobs:
    expiryCheck       daily 00:00     active -> expired
    renewalReminder   daily 09:00     reminders 7/3/1 days before end_date
    usageReset        monthly 1st     orders_this_month = 0
    autoRenewal       daily 00:00     renew auto_renew subscriptions ending today
    paymentRetry      daily 10:00     retry link for recent failed payments
    cleanup           weekly Sun 02:00  expired -> archived after 30 days
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.plan_repository import SqlAlchemyPlanRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.clock import SystemClock
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.clock import Clock
from src.app.services.notification_dispatcher import NotificationDispatcher
from src.app.services.notification_service import NotificationService
from src.app.use_cases.subscription import (
    AutoRenewalJob,
    CleanupJob,
    ExpiryCheckJob,
    JobRunResultDTO,
    PaymentRetryJob,
    ReconciliationJob,
    RenewalReminderJob,
    SubscriptionLifecycle,
    UsageResetJob,
    UsageTracker,
)
from src.worker.scheduler import ReconciliationScheduler, Schedule, ScheduledJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobDefinition:
    name: str
    title: str
    schedule: Schedule
    description: str


JOB_DEFINITIONS: List[JobDefinition] = [
    JobDefinition(
        ExpiryCheckJob.name, ExpiryCheckJob.title, Schedule.daily(0),
        "Expires subscriptions that reached their end date",
    ),
    JobDefinition(
        RenewalReminderJob.name, RenewalReminderJob.title, Schedule.daily(9),
        "Sends renewal reminders at 7, 3, and 1 day before expiry",
    ),
    JobDefinition(
        UsageResetJob.name, UsageResetJob.title, Schedule.monthly(1, 0),
        "Resets monthly order counters for all subscriptions",
    ),
    JobDefinition(
        AutoRenewalJob.name, AutoRenewalJob.title, Schedule.daily(0),
        "Renews subscriptions with auto-renew enabled that end today",
    ),
    JobDefinition(
        PaymentRetryJob.name, PaymentRetryJob.title, Schedule.daily(10),
        "Sends retry links for payments that failed in the last 3 days",
    ),
    JobDefinition(
        CleanupJob.name, CleanupJob.title, Schedule.weekly(6, 2),
        "Archives subscriptions expired for 30+ days",
    ),
]


class SubscriptionJobsWorker:
    """
    Background worker for subscription reconciliation

    Features:
    - One session per job run; each subscription is committed on its own
    - Jobs can be run once by name or on their schedules
    - Clock and notification service are injectable

    Usage:
        # Run one job once
        worker = SubscriptionJobsWorker()
        result = await worker.run_once("expiryCheck")

        # Run on schedule until cancelled
        worker = SubscriptionJobsWorker()
        await worker.run_forever()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        config=ApplicationConfig,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to config.DB_URI); ignored when
                    session_factory is given
            session_factory: Existing session factory (e.g. the API's)
            clock: Time source (defaults to SystemClock)
            notification_service: Delivery service (defaults to config-based)
            config: Configuration object
        """
        self.config = config
        self.engine = None
        if session_factory is None:
            self.engine = create_async_engine(db_uri or config.DB_URI, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory
        self.clock = clock or SystemClock()
        self.dispatcher = NotificationDispatcher(
            notification_service
            or create_notification_service(
                config.NOTIFICATION_WEBHOOK_URL, timeout=config.NOTIFICATION_TIMEOUT_SECONDS
            ),
            timeout_seconds=config.NOTIFICATION_TIMEOUT_SECONDS,
        )
        self._builders: Dict[str, Callable[..., ReconciliationJob]] = {
            ExpiryCheckJob.name: lambda repo, plans, lifecycle: ExpiryCheckJob(
                repo, self.clock, lifecycle
            ),
            RenewalReminderJob.name: lambda repo, plans, lifecycle: RenewalReminderJob(
                repo, self.clock, plans, self.dispatcher, config.RENEWAL_REMINDER_DAYS
            ),
            UsageResetJob.name: lambda repo, plans, lifecycle: UsageResetJob(
                repo, self.clock, UsageTracker(lifecycle, repo, plans)
            ),
            AutoRenewalJob.name: lambda repo, plans, lifecycle: AutoRenewalJob(
                repo, self.clock, lifecycle
            ),
            PaymentRetryJob.name: lambda repo, plans, lifecycle: PaymentRetryJob(
                repo, self.clock, plans, lifecycle, self.dispatcher,
                config.FAILED_PAYMENT_LOOKBACK_DAYS,
            ),
            CleanupJob.name: lambda repo, plans, lifecycle: CleanupJob(
                repo, self.clock, lifecycle, config.ARCHIVE_AFTER_DAYS
            ),
        }

        logger.info("SubscriptionJobsWorker initialized")

    @property
    def job_names(self) -> List[str]:
        return [definition.name for definition in JOB_DEFINITIONS]

    async def run_once(self, job_name: str) -> JobRunResultDTO:
        """
        Run one job once

        Args:
            job_name: One of JOB_DEFINITIONS' names

        Returns:
            JobRunResultDTO with per-item counts
        """
        builder = self._builders.get(job_name)
        if builder is None:
            raise ValueError(f"Unknown job: {job_name}")

        async with self.async_session_factory() as session:
            subscription_repo = SqlAlchemySubscriptionRepository(session)
            plan_repo = SqlAlchemyPlanRepository(session)
            lifecycle = SubscriptionLifecycle(
                uow=SqlAlchemyUnitOfWork(session),
                subscription_repo=subscription_repo,
                plan_repo=plan_repo,
                clock=self.clock,
                dispatcher=self.dispatcher,
                currency=self.config.DEFAULT_CURRENCY,
                frontend_url=self.config.FRONTEND_URL,
            )
            job = builder(subscription_repo, plan_repo, lifecycle)
            result = await job.execute()

        if result.is_err():
            logger.error(f"Job {job_name} failed: {result.error.message}")
            raise RuntimeError(f"Job {job_name} failed: {result.error.message}")
        return result.value

    def create_scheduler(self) -> ReconciliationScheduler:
        return ReconciliationScheduler(
            self.clock,
            [
                ScheduledJob(
                    name=definition.name,
                    schedule=definition.schedule,
                    description=definition.description,
                    run=self._runner(definition.name),
                )
                for definition in JOB_DEFINITIONS
            ],
        )

    async def run_forever(self):
        """Run all jobs on their schedules until cancelled"""
        scheduler = self.create_scheduler()
        scheduler.start()
        logger.info("All subscription jobs are running")
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()

    async def shutdown(self):
        """Cleanup resources"""
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("SubscriptionJobsWorker shutdown complete")

    def _runner(self, job_name: str):
        async def run() -> JobRunResultDTO:
            return await self.run_once(job_name)
        return run


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run every job on its schedule
        python -m src.worker.subscription_jobs

        # Run a single job once and exit
        python -m src.worker.subscription_jobs --job expiryCheck

        # List jobs
        python -m src.worker.subscription_jobs --list
    """
    import argparse

    logging.basicConfig(
        level=getattr(logging, str(ApplicationConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Subscription Reconciliation Worker")
    parser.add_argument(
        "--job", choices=[d.name for d in JOB_DEFINITIONS], help="Run one job once and exit"
    )
    parser.add_argument(
        "--list", action="store_true", help="List jobs and their schedules"
    )
    args = parser.parse_args()

    if args.list:
        for definition in JOB_DEFINITIONS:
            print(f"{definition.name:<16} {definition.schedule.describe():<28} {definition.description}")
        return

    worker = SubscriptionJobsWorker()

    try:
        if args.job:
            result = await worker.run_once(args.job)
            print(f"{result.job_name} complete:")
            print(f"  Candidates: {result.candidates}")
            print(f"  Succeeded: {result.succeeded}")
            print(f"  Skipped: {result.skipped}")
            print(f"  Failed: {result.failed}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
