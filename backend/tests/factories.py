import factory
from faker import Faker
from datetime import datetime, timedelta, timezone

from app.models.job import BulkContentJob, JobStatus
from app.models.content import BulkGeneratedContent, ContentHistory
from app.models.product import TrendingProduct
from app.models.scheduled_job import ScheduledBulkJob

fake = Faker()

NICHES = ["beauty", "tech", "fitness", "fashion", "food", "travel", "pets"]


def _utcnow():
    return datetime.now(timezone.utc)


def _work_items(niches):
    return {
        niche: {
            "niche": niche,
            "productName": f"{fake.company()} {fake.word().title()}",
            "sourceReason": "dbFallback",
            "brand": "",
            "mentions": fake.random_int(min=100, max=50000),
            "reason": fake.sentence(nb_words=8),
        }
        for niche in niches
    }


class BulkContentJobFactory(factory.Factory):
    """Factory for creating BulkContentJob instances."""

    class Meta:
        model = BulkContentJob

    job_id = factory.LazyFunction(lambda: f"auto_bulk_{fake.unix_time():.0f}_{fake.hexify('^^^^^^^^')}")
    status = JobStatus.PENDING
    selected_niches = factory.LazyFunction(lambda: ["tech", "beauty"])
    work_items_by_niche = factory.LazyAttribute(lambda obj: _work_items(obj.selected_niches))
    total_work_items = factory.LazyAttribute(lambda obj: len(obj.selected_niches))
    completed_work_items = 0
    progress_log = factory.LazyFunction(list)
    error_log = factory.LazyFunction(list)

    platforms = factory.LazyFunction(lambda: ["tiktok", "instagram"])
    tones = factory.LazyFunction(lambda: ["friendly"])
    templates = factory.LazyFunction(lambda: ["short_video"])
    ai_model = "claude"
    webhook_url = None
    generate_affiliate_links = False
    affiliate_id = None
    manual_affiliate_links = factory.LazyFunction(dict)
    use_smart_style = False
    source = "manual"
    viral_inspiration = factory.LazyFunction(dict)


class ProcessingJobFactory(BulkContentJobFactory):
    """Factory for jobs interrupted mid-run."""
    status = JobStatus.PROCESSING
    selected_niches = factory.LazyFunction(lambda: ["tech", "beauty", "food"])
    completed_work_items = 1
    started_at = factory.LazyFunction(lambda: _utcnow() - timedelta(minutes=5))


class CompletedJobFactory(BulkContentJobFactory):
    """Factory for finished jobs."""
    status = JobStatus.COMPLETED
    completed_work_items = factory.LazyAttribute(lambda obj: len(obj.selected_niches))
    started_at = factory.LazyFunction(lambda: _utcnow() - timedelta(minutes=10))
    completed_at = factory.LazyFunction(_utcnow)


class BulkGeneratedContentFactory(factory.Factory):
    """Factory for creating BulkGeneratedContent instances."""

    class Meta:
        model = BulkGeneratedContent

    bulk_job_id = factory.LazyFunction(lambda: f"auto_bulk_{fake.unix_time():.0f}_{fake.hexify('^^^^^^^^')}")
    product_name = factory.LazyAttribute(lambda obj: f"{fake.company()} {fake.word().title()}")
    niche = factory.LazyFunction(lambda: fake.random_element(NICHES))
    tone = "friendly"
    template = "short_video"
    platforms = factory.LazyFunction(lambda: ["tiktok"])
    main_content = factory.LazyAttribute(lambda obj: fake.paragraph(nb_sentences=4))
    platform_captions = factory.LazyAttribute(lambda obj: {"tiktok": fake.sentence()})
    viral_inspiration = factory.LazyAttribute(lambda obj: {
        "hook": fake.sentence(nb_words=8),
        "format": "Quick demo",
        "caption": fake.sentence(),
        "hashtags": [f"#{obj.niche}", "#fyp"],
        "fallback": False,
    })
    affiliate_link = None
    model_used = "claude"
    generation_time_ms = factory.LazyFunction(lambda: fake.random_int(min=500, max=20000))
    status = "completed"


class ContentHistoryFactory(factory.Factory):
    """Factory for creating ContentHistory instances."""

    class Meta:
        model = ContentHistory

    session_id = factory.LazyFunction(lambda: f"auto_bulk_{fake.unix_time():.0f}_{fake.hexify('^^^^^^^^')}")
    niche = factory.LazyFunction(lambda: fake.random_element(NICHES))
    content_type = "short_video"
    tone = "friendly"
    product_name = factory.LazyAttribute(lambda obj: fake.word().title())
    prompt_text = factory.LazyAttribute(lambda obj: fake.sentence())
    output_text = factory.LazyAttribute(lambda obj: fake.paragraph())
    platforms_selected = factory.LazyFunction(lambda: ["tiktok"])
    generated_output = factory.LazyFunction(dict)
    model_used = "claude"


class TrendingProductFactory(factory.Factory):
    """Factory for creating TrendingProduct instances."""

    class Meta:
        model = TrendingProduct

    title = factory.LazyAttribute(lambda obj: f"{fake.company()} {fake.word().title()}")
    niche = factory.LazyFunction(lambda: fake.random_element(NICHES))
    mentions = factory.LazyFunction(lambda: fake.random_int(min=100, max=50000))
    insight = factory.LazyAttribute(lambda obj: fake.sentence(nb_words=10))
    source = "perplexity"


class ScheduledBulkJobFactory(factory.Factory):
    """Factory for creating ScheduledBulkJob instances."""

    class Meta:
        model = ScheduledBulkJob

    name = factory.LazyAttribute(lambda obj: f"{fake.word().title()} daily run")
    schedule_time = "09:00"
    timezone = "America/New_York"
    is_active = True
    selected_niches = factory.LazyFunction(lambda: ["tech", "fitness"])
    tones = factory.LazyFunction(lambda: ["enthusiastic"])
    templates = factory.LazyFunction(lambda: ["product_review"])
    platforms = factory.LazyFunction(lambda: ["tiktok"])
    ai_model = "claude"
    webhook_url = None
    use_existing_products = True
    generate_affiliate_links = False
    affiliate_id = None
    next_run_at = factory.LazyFunction(lambda: _utcnow() - timedelta(minutes=1))
    total_runs = 0
    consecutive_failures = 0
