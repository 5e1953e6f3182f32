from fastapi import Request

from app.services.bulk.orchestrator import BulkJobOrchestrator
from app.services.bulk.scheduler import ScheduledJobService


def get_orchestrator(request: Request) -> BulkJobOrchestrator:
    return request.app.state.orchestrator


def get_scheduled_job_service(request: Request) -> ScheduledJobService:
    orchestrator = request.app.state.orchestrator
    return ScheduledJobService(orchestrator, orchestrator.job_store.session_factory)
