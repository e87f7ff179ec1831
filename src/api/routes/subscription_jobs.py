"""Subscription Jobs API Routes

Super-admin view and manual trigger of the reconciliation scheduler.
"""

from fastapi import APIRouter, Depends, status

from libs.result import Error
from src.api.error import ClientError, client_error_for
from src.api.schemas.subscription_request import TriggerJobRequestSchema
from src.app.use_cases.subscription import ErrorCode, JobRunResultDTO
from src.depends import get_scheduler
from src.worker.subscription_jobs import JOB_DEFINITIONS

router = APIRouter(prefix="/super-admin/subscription-jobs", tags=["Subscription Jobs"])


def require_scheduler(scheduler=Depends(get_scheduler)):
    if scheduler is None:
        raise ClientError(
            Error(code="SCHEDULER_DISABLED", message="Subscription scheduler is not enabled"),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return scheduler


@router.get("/status")
async def get_jobs_status(scheduler=Depends(require_scheduler)):
    """Per job: scheduler running flag, whether the job is executing now, schedule, description, next and last run."""
    return {"jobs": scheduler.status()}


@router.get("/available")
async def list_available_jobs():
    return {
        "jobs": [
            {
                "name": definition.name,
                "title": definition.title,
                "schedule": definition.schedule.describe(),
                "description": definition.description,
            }
            for definition in JOB_DEFINITIONS
        ]
    }


@router.post(
    "/trigger",
    response_model=JobRunResultDTO,
    responses={
        400: {"description": "Unknown job"},
        409: {"description": "Job already running"},
    },
)
async def trigger_job(request: TriggerJobRequestSchema, scheduler=Depends(require_scheduler)):
    """Run a job now and return its summary."""
    result = await scheduler.trigger(request.job_name)
    if result.is_err():
        if result.error.code == ErrorCode.UNKNOWN_JOB:
            raise ClientError(result.error, status_code=status.HTTP_400_BAD_REQUEST)
        raise client_error_for(result.error)
    return result.value
