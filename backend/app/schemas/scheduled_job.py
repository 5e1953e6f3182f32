from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

class ScheduledBulkJobCreate(BaseModel):
    scheduleTime: str  # HH:MM, 24h
    timezone: str = "America/New_York"
    name: Optional[str] = None
    selectedNiches: List[str] = Field(..., min_length=1)
    tones: List[str] = Field(..., min_length=1)
    templates: List[str] = Field(..., min_length=1)
    platforms: List[str] = []
    aiModel: str = "claude"
    webhookUrl: Optional[str] = None
    useExistingProducts: bool = True
    generateAffiliateLinks: bool = False
    affiliateId: Optional[str] = None

    @field_validator("scheduleTime")
    @classmethod
    def validate_schedule_time(cls, v: str) -> str:
        try:
            hours, minutes = (int(part) for part in v.split(":"))
        except ValueError:
            raise ValueError("scheduleTime must be HH:MM")
        if not (0 <= hours < 24 and 0 <= minutes < 60):
            raise ValueError("scheduleTime must be HH:MM")
        return f"{hours:02d}:{minutes:02d}"

class ScheduledBulkJob(BaseModel):
    scheduledJobId: int
    name: str
    scheduleTime: str
    timezone: str
    isActive: bool
    selectedNiches: List[str]
    tones: List[str]
    templates: List[str]
    platforms: List[str]
    aiModel: Optional[str] = None
    nextRunAt: Optional[datetime] = None
    lastRunAt: Optional[datetime] = None
    totalRuns: int = 0
    consecutiveFailures: int = 0
    lastError: Optional[str] = None
    lastJobId: Optional[str] = None

class ScheduledBulkJobsResponse(BaseModel):
    jobs: List[ScheduledBulkJob]
    total: int

class ScheduledBulkJobStopResponse(BaseModel):
    scheduledJobId: int
    message: str
