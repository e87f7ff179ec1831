"""Background workers for the subscription service"""
from .scheduler import ReconciliationScheduler, Schedule, ScheduledJob
from .subscription_jobs import JOB_DEFINITIONS, SubscriptionJobsWorker

__all__ = [
    "JOB_DEFINITIONS",
    "ReconciliationScheduler",
    "Schedule",
    "ScheduledJob",
    "SubscriptionJobsWorker",
]
