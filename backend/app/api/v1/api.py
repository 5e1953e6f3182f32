from fastapi import APIRouter

from app.api.v1.endpoints import bulk_jobs, scheduled_jobs

api_router = APIRouter()

api_router.include_router(bulk_jobs.router, prefix="/bulk-jobs", tags=["bulk_jobs"])
api_router.include_router(scheduled_jobs.router, prefix="/scheduled-bulk-jobs", tags=["scheduled_bulk_jobs"])
