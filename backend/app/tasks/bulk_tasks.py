import asyncio
import logging
from typing import Any, Dict, List

from app.core.celery_app import celery_app
from app.core.logging import setup_logging
from app.services.bulk.orchestrator import build_orchestrator
from app.services.bulk.resume import ResumeManager
from app.services.bulk.scheduler import ScheduledJobService

logger = logging.getLogger(__name__)


def _run(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _run_due_schedules() -> List[Dict[str, Any]]:
    orchestrator = build_orchestrator()
    try:
        return await ScheduledJobService(orchestrator, orchestrator.job_store.session_factory).run_due()
    finally:
        await orchestrator.collaborators.close()


async def _resume_interrupted() -> List[str]:
    orchestrator = build_orchestrator()
    try:
        resumed = await ResumeManager(orchestrator).resume_interrupted_jobs()
        # The worker's event loop closes with the task, so runs are awaited here
        await orchestrator.registry.wait_all()
        return resumed
    finally:
        await orchestrator.collaborators.close()


@celery_app.task(name="run_due_scheduled_bulk_jobs")
def run_due_scheduled_bulk_jobs():
    """
    Beat task: submit a bulk job for every schedule that is due and wait for it
    """
    setup_logging()
    results = _run(_run_due_schedules())
    if results:
        failed = [result for result in results if not result["success"]]
        logger.info(f"Ran {len(results)} scheduled bulk jobs, {len(failed)} failed")
    return {"ran": len(results), "results": results}


@celery_app.task(name="resume_interrupted_bulk_jobs")
def resume_interrupted_bulk_jobs():
    """
    Re-run bulk jobs left in processing by a stopped process
    """
    setup_logging()
    resumed = _run(_resume_interrupted())
    return {"resumed": resumed}
