from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Boolean
from sqlalchemy.sql import func
from app.db.session import Base


class ScheduledBulkJob(Base):
    """Daily schedule that submits a bulk generation job"""
    __tablename__ = "scheduled_bulk_jobs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    schedule_time = Column(String, nullable=False)  # "HH:MM"
    timezone = Column(String, default="America/New_York")
    is_active = Column(Boolean, default=True, index=True)

    # Run configuration
    selected_niches = Column(JSON, nullable=False)
    tones = Column(JSON, nullable=False)
    templates = Column(JSON, nullable=False)
    platforms = Column(JSON, nullable=False)
    ai_model = Column(String, default="claude")
    webhook_url = Column(String)
    use_existing_products = Column(Boolean, default=True)
    generate_affiliate_links = Column(Boolean, default=False)
    affiliate_id = Column(String)

    # Run statistics
    last_run_at = Column(DateTime(timezone=True))
    next_run_at = Column(DateTime(timezone=True), index=True)
    total_runs = Column(Integer, default=0)
    consecutive_failures = Column(Integer, default=0)
    last_error = Column(Text)
    last_job_id = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
