"""
Durable job store for bulk runs

Every mutation of a job is a read-modify-write of its row in a fresh
session, serialized per job by an asyncio.Lock. JSON log columns are
reassigned as new lists so the ORM persists the change. Database failures
surface as JobStoreError.
"""

import asyncio
import logging
import secrets
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import InvalidStatusTransition, JobNotFoundError, JobStoreError, StaleRunError
from app.db.session import SessionLocal
from app.models.content import BulkGeneratedContent
from app.models.job import BulkContentJob, JobStatus
from app.services.bulk.types import BulkJobRequest, WorkItemSpec

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return f"auto_bulk_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def progress_entry(event: str, **details: Any) -> Dict[str, Any]:
    return {"event": event, "time": utcnow().isoformat(), **details}


class JobStore:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = self._locks[job_id] = asyncio.Lock()
        return lock

    @contextmanager
    def _session(self, action: str):
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Job store failed to {action}: {e}")
            raise JobStoreError(f"Job store failed to {action}", original_error=e)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _refresh(self, db, job: BulkContentJob) -> BulkContentJob:
        """Flush and reload server-side defaults so the row stays usable after close"""
        db.flush()
        db.refresh(job)
        return job

    def _load(self, db, job_id: str) -> BulkContentJob:
        job = db.query(BulkContentJob).filter(BulkContentJob.job_id == job_id).first()
        if job is None:
            raise JobNotFoundError(f"Bulk job {job_id} not found")
        return job

    async def create_job(self, request: BulkJobRequest, work_items: Dict[str, WorkItemSpec]) -> BulkContentJob:
        job_id = new_job_id()
        config = request.config
        items = {niche: item.to_dict() for niche, item in work_items.items()}

        with self._session("create job") as db:
            job = BulkContentJob(
                job_id=job_id,
                status=JobStatus.PENDING,
                selected_niches=list(work_items.keys()),
                total_work_items=len(work_items),
                completed_work_items=0,
                work_items_by_niche=items,
                progress_log=[progress_entry(
                    "items_selected",
                    workItems={niche: item["productName"] for niche, item in items.items()}
                )],
                error_log=[],
                platforms=list(config.platforms),
                tones=list(config.tones),
                templates=list(config.templates),
                ai_model=config.ai_model,
                webhook_url=config.webhook_url,
                generate_affiliate_links=config.generate_affiliate_links,
                affiliate_id=config.affiliate_id,
                manual_affiliate_links=dict(config.manual_affiliate_links),
                use_smart_style=config.use_smart_style,
                source=request.source,
                viral_inspiration={}
            )
            db.add(job)
            self._refresh(db, job)

        logger.info(f"Created bulk job {job_id} with {len(work_items)} work items")
        return job

    async def get_job(self, job_id: str) -> BulkContentJob:
        with self._session("load job") as db:
            return self._load(db, job_id)

    async def list_jobs(self, status: Optional[str] = None, niche: Optional[str] = None,
                        limit: int = 10) -> List[BulkContentJob]:
        with self._session("list jobs") as db:
            query = db.query(BulkContentJob)
            if status:
                query = query.filter(BulkContentJob.status == status)
            query = query.order_by(BulkContentJob.created_at.desc(), BulkContentJob.id.desc())

            if not niche:
                return query.limit(limit).all()

            # JSON containment differs per backend, filter niches in Python
            jobs = [job for job in query.all() if niche in (job.selected_niches or [])]
            return jobs[:limit]

    def _check_owner(self, job: BulkContentJob, run_id: Optional[str]) -> None:
        if run_id is not None and job.run_id != run_id:
            raise StaleRunError(job.job_id, run_id)

    async def transition(self, job_id: str, status: str, entry: Dict[str, Any] = None,
                         **fields: Any) -> BulkContentJob:
        """Move a job to a new status, refusing backward moves and terminal exits"""
        async with self._lock_for(job_id):
            with self._session(f"set job status to {status}") as db:
                job = self._load(db, job_id)
                if status not in JobStatus.TRANSITIONS.get(job.status, ()):
                    raise InvalidStatusTransition(job.status, status)

                job.status = status
                for name, value in fields.items():
                    setattr(job, name, value)
                if entry is not None:
                    job.progress_log = list(job.progress_log or []) + [entry]
                job = self._refresh(db, job)

        if status in JobStatus.TERMINAL:
            self._locks.pop(job_id, None)
        return job

    async def mark_processing(self, job_id: str, resumed: bool = False, **fields: Any) -> BulkContentJob:
        """Start a run; the fresh ``run_id`` supersedes any earlier run of the job"""
        event = "resumed" if resumed else "started"
        if resumed:
            fields["completed_work_items"] = 0
        fields.setdefault("started_at", utcnow())
        run_id = secrets.token_hex(8)
        return await self.transition(
            job_id, JobStatus.PROCESSING, progress_entry(event, runId=run_id), run_id=run_id, **fields
        )

    async def mark_completed(self, job_id: str, viral_inspiration: Dict[str, Any] = None,
                             run_id: Optional[str] = None) -> BulkContentJob:
        async with self._lock_for(job_id):
            with self._session("mark job completed") as db:
                job = self._load(db, job_id)
                if JobStatus.COMPLETED not in JobStatus.TRANSITIONS.get(job.status, ()):
                    raise InvalidStatusTransition(job.status, JobStatus.COMPLETED)
                self._check_owner(job, run_id)

                job.status = JobStatus.COMPLETED
                job.completed_at = utcnow()
                job.viral_inspiration = dict(viral_inspiration or {})
                job.progress_log = list(job.progress_log or []) + [progress_entry("completed")]
                job = self._refresh(db, job)

        self._locks.pop(job_id, None)
        return job

    async def mark_failed(self, job_id: str, reason: str, run_id: Optional[str] = None) -> BulkContentJob:
        """Fail a job; a no-op for terminal jobs and for runs that lost ownership"""
        async with self._lock_for(job_id):
            with self._session("mark job failed") as db:
                job = self._load(db, job_id)
                if job.status in JobStatus.TERMINAL:
                    return job
                if run_id is not None and job.run_id != run_id:
                    logger.warning(f"Run {run_id} no longer owns bulk job {job_id}, not failing it")
                    return job
                job.status = JobStatus.FAILED
                job.completed_at = utcnow()
                job.progress_log = list(job.progress_log or []) + [progress_entry("failed", reason=reason)]
                job.error_log = list(job.error_log or []) + [{
                    "item": None,
                    "stage": "orchestrator",
                    "message": reason,
                    "time": utcnow().isoformat()
                }]
                job = self._refresh(db, job)

        self._locks.pop(job_id, None)
        return job

    async def record_item(self, job_id: str, entry: Dict[str, Any],
                          errors: List[Dict[str, Any]] = None,
                          run_id: Optional[str] = None) -> BulkContentJob:
        """Count one finished item, appending its progress entry and stage errors.

        Only a processing job takes items, and with ``run_id`` only while that
        run still owns it.
        """
        async with self._lock_for(job_id):
            with self._session("record item") as db:
                job = self._load(db, job_id)
                if job.status != JobStatus.PROCESSING:
                    raise InvalidStatusTransition(job.status, JobStatus.PROCESSING)
                self._check_owner(job, run_id)

                job.completed_work_items = min((job.completed_work_items or 0) + 1, job.total_work_items)
                job.progress_log = list(job.progress_log or []) + [entry]
                if errors:
                    job.error_log = list(job.error_log or []) + list(errors)
                return self._refresh(db, job)

    async def list_by_status(self, status: str) -> List[BulkContentJob]:
        with self._session(f"list {status} jobs") as db:
            return (
                db.query(BulkContentJob)
                .filter(BulkContentJob.status == status)
                .order_by(BulkContentJob.created_at.asc(), BulkContentJob.id.asc())
                .all()
            )

    async def list_content(self, job_id: str) -> List[BulkGeneratedContent]:
        with self._session("list generated content") as db:
            return (
                db.query(BulkGeneratedContent)
                .filter(BulkGeneratedContent.bulk_job_id == job_id)
                .order_by(BulkGeneratedContent.id.asc())
                .all()
            )

    async def count_content(self, job_ids: List[str]) -> Dict[str, int]:
        if not job_ids:
            return {}
        with self._session("count generated content") as db:
            rows = (
                db.query(BulkGeneratedContent.bulk_job_id, func.count(BulkGeneratedContent.id))
                .filter(BulkGeneratedContent.bulk_job_id.in_(job_ids))
                .group_by(BulkGeneratedContent.bulk_job_id)
                .all()
            )
            return {job_id: count for job_id, count in rows}
