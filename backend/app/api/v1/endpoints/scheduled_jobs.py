from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_scheduled_job_service
from app.core.rate_limiting import limiter, RATE_LIMITS
from app.core.exceptions import ValidationError
from app.core.security_utils import InputValidator
from app.models.scheduled_job import ScheduledBulkJob as ScheduledBulkJobModel
from app.schemas.scheduled_job import (
    ScheduledBulkJobCreate, ScheduledBulkJob, ScheduledBulkJobsResponse, ScheduledBulkJobStopResponse
)
from app.services.bulk.scheduler import ScheduledJobService

router = APIRouter()


def _schedule_schema(schedule: ScheduledBulkJobModel) -> ScheduledBulkJob:
    return ScheduledBulkJob(
        scheduledJobId=schedule.id,
        name=schedule.name,
        scheduleTime=schedule.schedule_time,
        timezone=schedule.timezone,
        isActive=bool(schedule.is_active),
        selectedNiches=schedule.selected_niches or [],
        tones=schedule.tones or [],
        templates=schedule.templates or [],
        platforms=schedule.platforms or [],
        aiModel=schedule.ai_model,
        nextRunAt=schedule.next_run_at,
        lastRunAt=schedule.last_run_at,
        totalRuns=schedule.total_runs or 0,
        consecutiveFailures=schedule.consecutive_failures or 0,
        lastError=schedule.last_error,
        lastJobId=schedule.last_job_id
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ScheduledBulkJob)
@limiter.limit(RATE_LIMITS["schedule_management"])
async def create_scheduled_bulk_job(
    request: Request,
    payload: ScheduledBulkJobCreate,
    service: ScheduledJobService = Depends(get_scheduled_job_service)
):
    """
    Create a daily schedule that submits a bulk job at the given local time
    """
    if payload.webhookUrl and not InputValidator.validate_url(payload.webhookUrl):
        raise ValidationError("Invalid webhook URL")
    payload = payload.model_copy(update={
        "selectedNiches": InputValidator.normalize_names(payload.selectedNiches)
    })

    schedule = service.create_schedule(payload)
    return _schedule_schema(schedule)


@router.get("", response_model=ScheduledBulkJobsResponse)
async def list_scheduled_bulk_jobs(
    service: ScheduledJobService = Depends(get_scheduled_job_service)
):
    """
    List active schedules
    """
    schedules = service.list_schedules(active_only=True)
    return ScheduledBulkJobsResponse(
        jobs=[_schedule_schema(schedule) for schedule in schedules],
        total=len(schedules)
    )


@router.delete("/{scheduled_job_id}", response_model=ScheduledBulkJobStopResponse)
async def stop_scheduled_bulk_job(
    scheduled_job_id: int,
    service: ScheduledJobService = Depends(get_scheduled_job_service)
):
    """
    Deactivate a schedule; runs already started are not affected
    """
    schedule = service.deactivate(scheduled_job_id)
    return ScheduledBulkJobStopResponse(
        scheduledJobId=schedule.id,
        message=f"Scheduled job '{schedule.name}' stopped"
    )
