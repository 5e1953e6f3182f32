"""
Daily scheduled bulk runs

A ScheduledBulkJob submits one bulk job per day at its local schedule time.
Due schedules are run by calling the orchestrator directly, and each run's
outcome is folded into the schedule's statistics.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import JobStoreError, ScheduledJobNotFoundError, ValidationError
from app.db.session import SessionLocal
from app.models.job import JobStatus
from app.models.scheduled_job import ScheduledBulkJob
from app.services.bulk.orchestrator import BulkJobOrchestrator
from app.services.bulk.types import BulkJobRequest, RunConfig

logger = logging.getLogger(__name__)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {name}")


def _as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_next_run(schedule_time: str, tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Next occurrence of HH:MM in the given timezone strictly after ``now``, in UTC"""
    zone = _zone(tz_name)
    now = _as_utc(now or datetime.now(timezone.utc))
    hours, minutes = (int(part) for part in schedule_time.split(":"))

    local_now = now.astimezone(zone)
    candidate = local_now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if candidate <= local_now:
        candidate = (candidate + timedelta(days=1)).replace(hour=hours, minute=minutes)
    return candidate.astimezone(timezone.utc)


class ScheduledJobService:
    def __init__(self, orchestrator: BulkJobOrchestrator = None, session_factory=SessionLocal):
        self.orchestrator = orchestrator
        self.session_factory = session_factory

    def create_schedule(self, data) -> ScheduledBulkJob:
        """Store a schedule from a ScheduledBulkJobCreate payload"""
        tz_name = data.timezone or settings.DEFAULT_SCHEDULE_TIMEZONE
        _zone(tz_name)

        db = self.session_factory()
        try:
            schedule = ScheduledBulkJob(
                name=data.name or f"Daily bulk run at {data.scheduleTime}",
                schedule_time=data.scheduleTime,
                timezone=tz_name,
                is_active=True,
                selected_niches=list(data.selectedNiches),
                tones=list(data.tones),
                templates=list(data.templates),
                platforms=list(data.platforms),
                ai_model=data.aiModel,
                webhook_url=data.webhookUrl,
                use_existing_products=data.useExistingProducts,
                generate_affiliate_links=data.generateAffiliateLinks,
                affiliate_id=data.affiliateId,
                next_run_at=compute_next_run(data.scheduleTime, tz_name),
                total_runs=0,
                consecutive_failures=0
            )
            db.add(schedule)
            db.commit()
            db.refresh(schedule)
            logger.info(f"Created scheduled bulk job {schedule.id} at {schedule.schedule_time} {tz_name}")
            return schedule
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_schedules(self, active_only: bool = True) -> List[ScheduledBulkJob]:
        db = self.session_factory()
        try:
            query = db.query(ScheduledBulkJob)
            if active_only:
                query = query.filter(ScheduledBulkJob.is_active.is_(True))
            return query.order_by(ScheduledBulkJob.id.asc()).all()
        finally:
            db.close()

    def deactivate(self, schedule_id: int) -> ScheduledBulkJob:
        db = self.session_factory()
        try:
            schedule = db.query(ScheduledBulkJob).filter(ScheduledBulkJob.id == schedule_id).first()
            if schedule is None:
                raise ScheduledJobNotFoundError(f"Scheduled job {schedule_id} not found")
            schedule.is_active = False
            schedule.next_run_at = None
            db.commit()
            db.refresh(schedule)
            logger.info(f"Deactivated scheduled bulk job {schedule_id}")
            return schedule
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def due_schedules(self, now: Optional[datetime] = None) -> List[ScheduledBulkJob]:
        now = _as_utc(now or datetime.now(timezone.utc))
        return [
            schedule for schedule in self.list_schedules(active_only=True)
            if schedule.next_run_at is not None and _as_utc(schedule.next_run_at) <= now
        ]

    @staticmethod
    def to_request(schedule: ScheduledBulkJob) -> BulkJobRequest:
        return BulkJobRequest(
            selected_niches=list(schedule.selected_niches or []),
            config=RunConfig(
                platforms=list(schedule.platforms or []),
                tones=list(schedule.tones or []) or ["friendly"],
                templates=list(schedule.templates or []) or ["short_video"],
                ai_model=schedule.ai_model or settings.DEFAULT_AI_MODEL,
                webhook_url=schedule.webhook_url,
                generate_affiliate_links=bool(schedule.generate_affiliate_links),
                affiliate_id=schedule.affiliate_id
            ),
            use_existing_products=bool(schedule.use_existing_products),
            source="scheduled_job"
        )

    async def run_schedule(self, schedule: ScheduledBulkJob, now: Optional[datetime] = None) -> Dict:
        """Submit one scheduled run, wait for it, and record the outcome"""
        if self.orchestrator is None:
            raise RuntimeError("Scheduled runs need an orchestrator")

        now = _as_utc(now or datetime.now(timezone.utc))
        job_id = None
        error = None

        try:
            job = await self.orchestrator.start_job(self.to_request(schedule))
            job_id = job.job_id
            await self.orchestrator.registry.wait(job_id)
            final = await self.orchestrator.get_job(job_id)
            if final.status != JobStatus.COMPLETED:
                error = f"Bulk job {job_id} ended {final.status}"
        except (ValidationError, JobStoreError) as e:
            error = e.message
        except Exception as e:
            logger.error(f"Scheduled bulk job {schedule.id} run failed: {e}", exc_info=True)
            error = str(e)

        self._record_run(schedule.id, now, job_id, error)
        return {"scheduledJobId": schedule.id, "jobId": job_id, "success": error is None, "error": error}

    def _record_run(self, schedule_id: int, ran_at: datetime, job_id: Optional[str], error: Optional[str]) -> None:
        db = self.session_factory()
        try:
            schedule = db.query(ScheduledBulkJob).filter(ScheduledBulkJob.id == schedule_id).first()
            if schedule is None:
                return
            schedule.last_run_at = ran_at
            schedule.total_runs = (schedule.total_runs or 0) + 1
            schedule.last_job_id = job_id
            if error:
                schedule.consecutive_failures = (schedule.consecutive_failures or 0) + 1
                schedule.last_error = error
            else:
                schedule.consecutive_failures = 0
                schedule.last_error = None
            if schedule.is_active:
                schedule.next_run_at = compute_next_run(schedule.schedule_time, schedule.timezone, ran_at)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not record run of scheduled bulk job {schedule_id}: {e}")
        finally:
            db.close()

    async def run_due(self, now: Optional[datetime] = None) -> List[Dict]:
        """Run every active schedule whose next run time has passed"""
        results = []
        for schedule in self.due_schedules(now):
            logger.info(f"Running scheduled bulk job {schedule.id} ({schedule.name})")
            results.append(await self.run_schedule(schedule, now))
        return results
