from sqlalchemy import Column, Integer, String, DateTime, JSON, Boolean
from sqlalchemy.sql import func
from app.db.session import Base


class JobStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = (COMPLETED, FAILED)

    # Allowed moves; processing -> processing is the resume re-entry
    TRANSITIONS = {
        PENDING: (PROCESSING, FAILED),
        PROCESSING: (PROCESSING, COMPLETED, FAILED),
        COMPLETED: (),
        FAILED: (),
    }


class BulkContentJob(Base):
    """One bulk submission producing one artifact per requested niche"""
    __tablename__ = "bulk_content_jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String, unique=True, nullable=False, index=True)
    status = Column(String, default=JobStatus.PENDING, nullable=False, index=True)
    run_id = Column(String)  # token of the run that owns a processing job

    # Work items
    selected_niches = Column(JSON, nullable=False)  # ["tech", "beauty"]
    total_work_items = Column(Integer, default=0, nullable=False)
    completed_work_items = Column(Integer, default=0, nullable=False)
    work_items_by_niche = Column(JSON, nullable=False)  # {"tech": {"niche": ..., "productName": ..., "sourceReason": ...}}

    # Append-only logs
    progress_log = Column(JSON, default=list)
    error_log = Column(JSON, default=list)

    # Config snapshot
    platforms = Column(JSON, default=list)
    tones = Column(JSON, default=list)
    templates = Column(JSON, default=list)
    ai_model = Column(String)
    webhook_url = Column(String)
    generate_affiliate_links = Column(Boolean, default=False)
    affiliate_id = Column(String)
    manual_affiliate_links = Column(JSON)  # {"tech": "https://..."}
    use_smart_style = Column(Boolean, default=False)
    source = Column(String, default="manual")  # manual, scheduled_job

    viral_inspiration = Column(JSON)  # {"<product>": {"hook": ..., ...}}

    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def progress_percentage(self) -> int:
        if not self.total_work_items:
            return 0
        return round((self.completed_work_items or 0) / self.total_work_items * 100)
