from app.db.session import Base
from .job import BulkContentJob, JobStatus
from .content import BulkGeneratedContent, ContentHistory, ContentEvaluation
from .product import TrendingProduct
from .scheduled_job import ScheduledBulkJob
