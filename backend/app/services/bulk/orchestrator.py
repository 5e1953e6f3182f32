"""
Bulk job orchestrator

``start_job`` validates a submission, resolves one work item per niche,
creates the job and launches its run as a detached task. ``run_job`` walks
the work items sequentially through the per-item pipeline. An item that
fails is logged and counted; only an orchestrator-level failure (the job
store, or a job row it cannot run) ends a run as failed. A run that a newer
run of the same job has superseded stops without touching the job.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    GlowBotException, InvalidStatusTransition, JobStoreError, StaleRunError, ValidationError
)
from app.db.session import SessionLocal
from app.models.job import BulkContentJob, JobStatus
from app.services.bulk.collaborators import ContentCollaborators, DefaultContentCollaborators
from app.services.bulk.job_store import JobStore, progress_entry
from app.services.bulk.pipeline import ItemOutcome, ItemPipeline
from app.services.bulk.registry import JobRegistry
from app.services.bulk.results import StageError
from app.services.bulk.types import BulkJobRequest, PipelineStage, RunConfig, WorkItemSpec

logger = logging.getLogger(__name__)


class BulkJobOrchestrator:
    def __init__(
        self,
        job_store: JobStore,
        collaborators: ContentCollaborators,
        registry: JobRegistry,
        pipeline: ItemPipeline = None
    ):
        self.job_store = job_store
        self.collaborators = collaborators
        self.registry = registry
        self.pipeline = pipeline or ItemPipeline(collaborators)

    async def start_job(self, request: BulkJobRequest) -> BulkContentJob:
        """Create a pending job and launch its run without waiting for it"""
        if not request.selected_niches:
            raise ValidationError("At least one niche must be selected")

        try:
            work_items = await self.collaborators.select_work_items(
                request.selected_niches,
                request.product_overrides,
                use_existing_products=request.use_existing_products
            )
        except Exception as e:
            logger.error(f"Work item selection failed for {request.selected_niches}: {e}", exc_info=True)
            work_items = {}

        if not work_items:
            raise ValidationError("No work items could be resolved for the selected niches")

        job = await self.job_store.create_job(request, work_items)
        self.launch(job.job_id)
        return job

    def launch(self, job_id: str, resumed: bool = False, config: RunConfig = None) -> asyncio.Task:
        return self.registry.register(job_id, self.run_job(job_id, resumed=resumed, config=config), resumed=resumed)

    async def run_job(self, job_id: str, resumed: bool = False, config: RunConfig = None) -> None:
        """Drive every work item of a job to a terminal job status"""
        run_id = None
        try:
            job = await self.job_store.get_job(job_id)
            if job.status in JobStatus.TERMINAL:
                logger.info(f"Bulk job {job_id} is already {job.status}, nothing to run")
                return

            config = config or RunConfig.from_job(job)
            job = await self.job_store.mark_processing(job_id, resumed=resumed, ai_model=config.ai_model)
            run_id = job.run_id
            work_items = [WorkItemSpec.from_dict(data) for data in (job.work_items_by_niche or {}).values()]

            logger.info(
                f"{'Resuming' if resumed else 'Starting'} bulk job {job_id} (run {run_id}): "
                f"{len(work_items)} items, model {config.ai_model}"
            )

            inspiration: Dict[str, Any] = {}
            for index, item in enumerate(work_items, start=1):
                outcome, errors = await self._run_item(job_id, item, config)
                if outcome is not None:
                    inspiration[item.product_name] = outcome.artifact.viral_inspiration.to_dict()

                await self.job_store.record_item(
                    job_id,
                    progress_entry(
                        "item_completed",
                        index=index,
                        niche=item.niche,
                        product=item.product_name,
                        artifactId=outcome.artifact.artifact_id if outcome else None,
                        stageErrors=[error.stage.value for error in errors]
                    ),
                    [error.to_log_entry(item.niche) for error in errors],
                    run_id=run_id
                )
                logger.info(f"Bulk job {job_id}: item {index}/{len(work_items)} ({item.niche}) done, {len(errors)} stage errors")

            await self.job_store.mark_completed(job_id, viral_inspiration=inspiration, run_id=run_id)
            logger.info(f"Bulk job {job_id} completed")

        except (StaleRunError, InvalidStatusTransition) as e:
            # Another run owns the job now, or it already ended; leave it alone
            logger.warning(f"Bulk job {job_id} run {run_id} stopped: {e.message}")
        except (JobStoreError, SQLAlchemyError) as e:
            logger.error(f"Bulk job {job_id} failed on job store access: {e}", exc_info=True)
            await self._fail(job_id, f"Job store failure: {e}", run_id)
        except GlowBotException as e:
            logger.error(f"Bulk job {job_id} could not run: {e.message}")
        except Exception as e:
            logger.error(f"Bulk job {job_id} failed: {e!r}", exc_info=True)
            await self._fail(job_id, f"Orchestrator failure: {e!r}", run_id)

    async def _run_item(self, job_id: str, item: WorkItemSpec, config: RunConfig):
        try:
            outcome: ItemOutcome = await self.pipeline.run(job_id, item, config)
            return outcome, outcome.errors
        except Exception as e:
            logger.error(f"Bulk job {job_id}: item {item.niche} ({item.product_name}) failed: {e}", exc_info=True)
            return None, [StageError.from_exception(PipelineStage.ITEM, e)]

    async def _fail(self, job_id: str, reason: str, run_id: Optional[str] = None) -> None:
        try:
            await self.job_store.mark_failed(job_id, reason, run_id=run_id)
        except Exception as e:
            logger.error(f"Could not mark bulk job {job_id} as failed: {e}")

    async def get_job(self, job_id: str) -> BulkContentJob:
        return await self.job_store.get_job(job_id)

    async def list_jobs(self, status: Optional[str] = None, niche: Optional[str] = None,
                        limit: int = 10) -> List[BulkContentJob]:
        return await self.job_store.list_jobs(status=status, niche=niche, limit=limit)


def build_orchestrator(session_factory=SessionLocal, collaborators: ContentCollaborators = None) -> BulkJobOrchestrator:
    """Wire an orchestrator with its own job store and registry"""
    collaborators = collaborators or DefaultContentCollaborators(session_factory)
    return BulkJobOrchestrator(JobStore(session_factory), collaborators, JobRegistry())
