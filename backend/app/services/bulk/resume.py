"""
Resumption of bulk runs interrupted by a restart
"""

import logging
from typing import List

from app.core.config import settings
from app.models.job import JobStatus
from app.services.bulk.orchestrator import BulkJobOrchestrator
from app.services.bulk.types import RunConfig

logger = logging.getLogger(__name__)


class ResumeManager:
    """Re-launches jobs left in ``processing`` that no task in this process owns"""

    def __init__(self, orchestrator: BulkJobOrchestrator, ai_model: str = None):
        self.orchestrator = orchestrator
        self.ai_model = ai_model or settings.DEFAULT_AI_MODEL

    async def resume_interrupted_jobs(self) -> List[str]:
        jobs = await self.orchestrator.job_store.list_by_status(JobStatus.PROCESSING)
        registry = self.orchestrator.registry

        resumed = []
        for job in jobs:
            if registry.is_running(job.job_id):
                continue

            # The per-run model choice is not kept across restarts
            config = RunConfig.from_job(job, ai_model=self.ai_model)
            logger.info(
                f"Resuming bulk job {job.job_id} "
                f"({job.completed_work_items}/{job.total_work_items} items done before interruption)"
            )
            self.orchestrator.launch(job.job_id, resumed=True, config=config)
            resumed.append(job.job_id)

        if resumed:
            logger.info(f"Resumed {len(resumed)} interrupted bulk jobs")
        else:
            logger.info("No interrupted bulk jobs to resume")
        return resumed
