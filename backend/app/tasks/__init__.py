from .bulk_tasks import run_due_scheduled_bulk_jobs, resume_interrupted_bulk_jobs
