from fastapi import APIRouter, Depends, Query, Request, status
from typing import Dict, Optional

from app.api.deps import get_orchestrator
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.rate_limiting import limiter, RATE_LIMITS
from app.core.security_utils import InputValidator
from app.models.content import BulkGeneratedContent
from app.models.job import BulkContentJob, JobStatus
from app.schemas.job import (
    BulkJobCreate, BulkJobSubmitResponse, BulkJob, GeneratedContent,
    BulkJobsResponse, BulkJobDetailResponse, BulkContentResponse, ResumeResponse
)
from app.services.bulk.orchestrator import BulkJobOrchestrator
from app.services.bulk.resume import ResumeManager
from app.services.bulk.types import BulkJobRequest

router = APIRouter()


def _job_schema(job: BulkContentJob, content_count: Optional[int] = None) -> BulkJob:
    return BulkJob(
        jobId=job.job_id,
        status=job.status,
        selectedNiches=job.selected_niches or [],
        totalWorkItems=job.total_work_items or 0,
        completedWorkItems=job.completed_work_items or 0,
        progressPercentage=job.progress_percentage,
        workItemsByNiche=job.work_items_by_niche or {},
        progressLog=job.progress_log or [],
        errorLog=job.error_log or [],
        platforms=job.platforms or [],
        tones=job.tones or [],
        templates=job.templates or [],
        aiModel=job.ai_model,
        webhookUrl=job.webhook_url,
        source=job.source,
        generatedContentCount=content_count,
        startedAt=job.started_at,
        completedAt=job.completed_at,
        createdAt=job.created_at,
        updatedAt=job.updated_at
    )


def _content_schema(row: BulkGeneratedContent) -> GeneratedContent:
    return GeneratedContent(
        contentId=row.id,
        bulkJobId=row.bulk_job_id,
        productName=row.product_name,
        niche=row.niche,
        tone=row.tone,
        template=row.template,
        platforms=row.platforms or [],
        mainContent=row.main_content,
        platformCaptions=row.platform_captions or {},
        viralInspiration=row.viral_inspiration,
        affiliateLink=row.affiliate_link,
        evaluationScores=row.evaluation_scores,
        contentHistoryId=row.content_history_id,
        modelUsed=row.model_used,
        generationTimeMs=row.generation_time_ms,
        createdAt=row.created_at
    )


def _validate_submission(payload: BulkJobCreate) -> BulkJobCreate:
    niches = InputValidator.normalize_names(payload.selectedNiches)
    if not niches:
        raise ValidationError("At least one niche must be selected")
    for name in niches + payload.tones + payload.templates:
        if not InputValidator.validate_name(name):
            raise ValidationError(f"Invalid name: {name!r}")

    platforms = InputValidator.normalize_names(payload.platforms)
    unsupported = [p for p in platforms if p not in settings.SUPPORTED_PLATFORMS]
    if unsupported:
        raise ValidationError(f"Unsupported platforms: {', '.join(unsupported)}")

    if payload.webhookUrl and not InputValidator.validate_url(payload.webhookUrl):
        raise ValidationError("Invalid webhook URL")
    for niche, link in (payload.manualAffiliateLinks or {}).items():
        if not InputValidator.validate_url(link):
            raise ValidationError(f"Invalid affiliate link for {niche}")

    overrides: Dict[str, str] = {
        niche.strip().lower(): InputValidator.sanitize_string(product, max_length=200)
        for niche, product in (payload.productOverrides or {}).items()
    }
    manual_links = {
        niche.strip().lower(): link for niche, link in (payload.manualAffiliateLinks or {}).items()
    }
    return payload.model_copy(update={
        "selectedNiches": niches,
        "platforms": platforms,
        "productOverrides": overrides,
        "manualAffiliateLinks": manual_links
    })


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=BulkJobSubmitResponse)
@limiter.limit(RATE_LIMITS["bulk_submission"])
async def submit_bulk_job(
    request: Request,
    payload: BulkJobCreate,
    orchestrator: BulkJobOrchestrator = Depends(get_orchestrator)
):
    """
    Submit a bulk generation job; the run continues in the background
    """
    payload = _validate_submission(payload)
    job = await orchestrator.start_job(BulkJobRequest.from_schema(payload))

    return BulkJobSubmitResponse(
        jobId=job.job_id,
        status=job.status,
        totalWorkItems=job.total_work_items,
        workItems=job.work_items_by_niche,
        message=f"Bulk generation started for {job.total_work_items} niches"
    )


@router.get("", response_model=BulkJobsResponse)
async def list_bulk_jobs(
    status_filter: Optional[str] = Query(None, alias="status"),
    niche: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    orchestrator: BulkJobOrchestrator = Depends(get_orchestrator)
):
    """
    List recent bulk jobs, newest first
    """
    if status_filter and status_filter not in JobStatus.TRANSITIONS:
        raise ValidationError(f"Unknown status: {status_filter}")

    jobs = await orchestrator.list_jobs(status=status_filter, niche=niche, limit=limit)
    counts = await orchestrator.job_store.count_content([job.job_id for job in jobs])

    return BulkJobsResponse(
        jobs=[_job_schema(job, counts.get(job.job_id, 0)) for job in jobs],
        total=len(jobs)
    )


@router.post("/resume", response_model=ResumeResponse)
@limiter.limit(RATE_LIMITS["resume"])
async def resume_bulk_jobs(
    request: Request,
    orchestrator: BulkJobOrchestrator = Depends(get_orchestrator)
):
    """
    Re-launch jobs stuck in processing that no task in this process is running
    """
    resumed = await ResumeManager(orchestrator).resume_interrupted_jobs()
    return ResumeResponse(
        resumedJobIds=resumed,
        message=f"Resumed {len(resumed)} interrupted bulk jobs"
    )


@router.get("/{job_id}", response_model=BulkJobDetailResponse)
async def get_bulk_job(
    job_id: str,
    orchestrator: BulkJobOrchestrator = Depends(get_orchestrator)
):
    """
    Get a bulk job with its generated content
    """
    job = await orchestrator.get_job(job_id)
    content = await orchestrator.job_store.list_content(job_id)

    return BulkJobDetailResponse(
        bulkJob=_job_schema(job, len(content)),
        generatedContent=[_content_schema(row) for row in content],
        progressPercentage=job.progress_percentage,
        isComplete=job.status == JobStatus.COMPLETED,
        isFailed=job.status == JobStatus.FAILED,
        totalGenerated=len(content)
    )


@router.get("/{job_id}/content", response_model=BulkContentResponse)
async def get_bulk_job_content(
    job_id: str,
    orchestrator: BulkJobOrchestrator = Depends(get_orchestrator)
):
    """
    Get the generated content of a bulk job
    """
    await orchestrator.get_job(job_id)
    content = await orchestrator.job_store.list_content(job_id)

    return BulkContentResponse(
        jobId=job_id,
        content=[_content_schema(row) for row in content]
    )
