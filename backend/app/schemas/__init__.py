from .job import (
    BulkJobCreate, BulkJobSubmitResponse, BulkJob, BulkJobsResponse,
    BulkJobDetailResponse, BulkContentResponse, GeneratedContent, WorkItem, ResumeResponse
)
from .scheduled_job import (
    ScheduledBulkJobCreate, ScheduledBulkJob, ScheduledBulkJobsResponse, ScheduledBulkJobStopResponse
)
