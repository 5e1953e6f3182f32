import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidStatusTransition, JobNotFoundError, JobStoreError, StaleRunError
from app.models.job import JobStatus
from app.services.bulk.job_store import JobStore, new_job_id, progress_entry
from app.services.bulk.types import BulkJobRequest, RunConfig, SourceReason, WorkItemSpec
from tests.factories import BulkGeneratedContentFactory, CompletedJobFactory


def _request(niches, **config):
    return BulkJobRequest(selected_niches=list(niches), config=RunConfig(**config))


def _items(niches):
    return {
        niche: WorkItemSpec(niche=niche, product_name=f"{niche.title()} Gadget", source_reason=SourceReason.DB_FALLBACK)
        for niche in niches
    }


@pytest.mark.db
class TestJobCreation:
    """Test creating and loading bulk jobs."""

    async def test_create_job_snapshots_request(self, job_store: JobStore):
        """Test that a new job stores its work items and configuration."""
        request = _request(
            ["tech", "beauty"],
            platforms=["tiktok"],
            tones=["witty"],
            templates=["product_review"],
            ai_model="chatgpt",
            webhook_url="https://hooks.example.com/glowbot"
        )
        job = await job_store.create_job(request, _items(["tech", "beauty"]))

        assert job.job_id.startswith("auto_bulk_")
        assert job.status == JobStatus.PENDING
        assert job.total_work_items == 2
        assert job.completed_work_items == 0
        assert job.selected_niches == ["tech", "beauty"]
        assert job.work_items_by_niche["tech"]["productName"] == "Tech Gadget"
        assert job.work_items_by_niche["beauty"]["sourceReason"] == "dbFallback"
        assert job.platforms == ["tiktok"]
        assert job.ai_model == "chatgpt"
        assert job.error_log == []
        assert job.progress_log[0]["event"] == "items_selected"
        assert job.created_at is not None

    async def test_get_job_not_found(self, job_store: JobStore):
        """Test that an unknown job id raises JobNotFoundError."""
        with pytest.raises(JobNotFoundError):
            await job_store.get_job("auto_bulk_0_missing")

    def test_job_ids_are_unique(self):
        """Test job id generation."""
        ids = {new_job_id() for _ in range(50)}
        assert len(ids) == 50

    def test_progress_entry(self):
        """Test progress log entries carry event, time and details."""
        entry = progress_entry("item_completed", index=1, niche="tech")
        assert entry["event"] == "item_completed"
        assert entry["index"] == 1
        assert entry["niche"] == "tech"
        assert "time" in entry


@pytest.mark.db
class TestStatusTransitions:
    """Test the job status lifecycle."""

    async def test_forward_lifecycle(self, job_store: JobStore):
        """Test pending -> processing -> completed."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))

        job = await job_store.mark_processing(job.job_id)
        assert job.status == JobStatus.PROCESSING
        assert job.started_at is not None

        job = await job_store.mark_completed(job.job_id, viral_inspiration={"Tech Gadget": {"hook": "h"}})
        assert job.status == JobStatus.COMPLETED
        assert job.completed_at is not None
        assert job.viral_inspiration == {"Tech Gadget": {"hook": "h"}}
        assert [entry["event"] for entry in job.progress_log] == ["items_selected", "started", "completed"]

    async def test_completed_is_terminal(self, job_store: JobStore):
        """Test that a completed job cannot move again."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        await job_store.mark_processing(job.job_id)
        await job_store.mark_completed(job.job_id)

        with pytest.raises(InvalidStatusTransition):
            await job_store.mark_processing(job.job_id)
        with pytest.raises(InvalidStatusTransition):
            await job_store.transition(job.job_id, JobStatus.PENDING)

        assert (await job_store.get_job(job.job_id)).status == JobStatus.COMPLETED

    async def test_processing_cannot_go_back_to_pending(self, job_store: JobStore):
        """Test that status never moves backward."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        await job_store.mark_processing(job.job_id)

        with pytest.raises(InvalidStatusTransition) as exc_info:
            await job_store.transition(job.job_id, JobStatus.PENDING)
        assert exc_info.value.status_code == 409

    async def test_mark_failed_records_reason(self, job_store: JobStore):
        """Test failing a running job."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        await job_store.mark_processing(job.job_id)

        job = await job_store.mark_failed(job.job_id, "Job store failure: disk full")

        assert job.status == JobStatus.FAILED
        assert job.completed_at is not None
        assert job.error_log[-1]["stage"] == "orchestrator"
        assert job.error_log[-1]["message"] == "Job store failure: disk full"
        assert job.progress_log[-1]["event"] == "failed"

    async def test_mark_failed_leaves_terminal_jobs_alone(self, job_store: JobStore, db_session):
        """Test that a completed job is not turned into a failed one."""
        done = CompletedJobFactory.create()
        db_session.add(done)
        db_session.commit()

        job = await job_store.mark_failed(done.job_id, "late failure")

        assert job.status == JobStatus.COMPLETED
        assert job.error_log == []

    async def test_resume_resets_completed_count(self, job_store: JobStore):
        """Test that a resumed run starts counting from zero."""
        job = await job_store.create_job(_request(["tech", "beauty"]), _items(["tech", "beauty"]))
        await job_store.mark_processing(job.job_id)
        await job_store.record_item(job.job_id, progress_entry("item_completed", index=1))

        job = await job_store.mark_processing(job.job_id, resumed=True)

        assert job.status == JobStatus.PROCESSING
        assert job.completed_work_items == 0
        assert job.progress_log[-1]["event"] == "resumed"


@pytest.mark.db
class TestRecordItem:
    """Test per-item progress updates."""

    async def test_record_item_appends_logs(self, job_store: JobStore):
        """Test that recording an item counts it and appends its entries."""
        job = await job_store.create_job(_request(["tech", "beauty"]), _items(["tech", "beauty"]))
        await job_store.mark_processing(job.job_id)

        errors = [{"item": "beauty", "stage": "content", "message": "boom", "errorType": "unknown_error", "time": "t"}]
        job = await job_store.record_item(job.job_id, progress_entry("item_completed", index=1), errors)

        assert job.completed_work_items == 1
        assert job.progress_percentage == 50
        assert job.progress_log[-1]["index"] == 1
        assert job.error_log == errors

    async def test_completed_count_never_exceeds_total(self, job_store: JobStore):
        """Test that the completed count is clamped at the total."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        await job_store.mark_processing(job.job_id)

        for index in range(3):
            job = await job_store.record_item(job.job_id, progress_entry("item_completed", index=index))

        assert job.completed_work_items == job.total_work_items == 1
        assert len(job.progress_log) == 5

    async def test_concurrent_updates_are_not_lost(self, job_store: JobStore):
        """Test that concurrent read-modify-writes of one job keep every entry."""
        niches = ["tech", "beauty", "food", "pets", "travel"]
        job = await job_store.create_job(_request(niches), _items(niches))
        await job_store.mark_processing(job.job_id)

        await asyncio.gather(*(
            job_store.record_item(job.job_id, progress_entry("item_completed", index=index))
            for index in range(5)
        ))

        job = await job_store.get_job(job.job_id)
        assert job.completed_work_items == 5
        assert sorted(entry["index"] for entry in job.progress_log if entry["event"] == "item_completed") == [0, 1, 2, 3, 4]

    @pytest.mark.parametrize("finish", ["mark_completed", "mark_failed"])
    async def test_terminal_job_takes_no_more_items(self, job_store: JobStore, finish):
        """Test that a finished job's counts and logs stay frozen."""
        job = await job_store.create_job(_request(["tech", "beauty"]), _items(["tech", "beauty"]))
        await job_store.mark_processing(job.job_id)
        await job_store.record_item(job.job_id, progress_entry("item_completed", index=1))
        if finish == "mark_completed":
            await job_store.mark_completed(job.job_id)
        else:
            await job_store.mark_failed(job.job_id, "Job store failure: disk full")
        before = await job_store.get_job(job.job_id)

        with pytest.raises(InvalidStatusTransition):
            await job_store.record_item(
                job.job_id, progress_entry("item_completed", index=2),
                [{"item": "beauty", "stage": "content", "message": "late"}]
            )

        after = await job_store.get_job(job.job_id)
        assert after.completed_work_items == before.completed_work_items == 1
        assert len(after.progress_log) == len(before.progress_log)
        assert after.error_log == before.error_log

    async def test_pending_job_takes_no_items(self, job_store: JobStore):
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))

        with pytest.raises(InvalidStatusTransition):
            await job_store.record_item(job.job_id, progress_entry("item_completed", index=1))
        assert (await job_store.get_job(job.job_id)).completed_work_items == 0

    async def test_database_failure_raises_job_store_error(self, job_store: JobStore, mocker):
        """Test that database errors surface as JobStoreError."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        mocker.patch.object(job_store, "_load", side_effect=OperationalError("UPDATE", {}, Exception("locked")))

        with pytest.raises(JobStoreError):
            await job_store.record_item(job.job_id, progress_entry("item_completed"))


@pytest.mark.db
class TestRunOwnership:
    """Test that only the newest run of a job may write to it."""

    async def test_each_start_issues_a_new_run_id(self, job_store: JobStore):
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))

        first = await job_store.mark_processing(job.job_id)
        second = await job_store.mark_processing(job.job_id, resumed=True)

        assert first.run_id
        assert second.run_id and second.run_id != first.run_id
        assert second.progress_log[-1]["runId"] == second.run_id

    async def test_superseded_run_cannot_record_items(self, job_store: JobStore):
        job = await job_store.create_job(_request(["tech", "beauty"]), _items(["tech", "beauty"]))
        old_run = (await job_store.mark_processing(job.job_id)).run_id
        new_run = (await job_store.mark_processing(job.job_id, resumed=True)).run_id

        with pytest.raises(StaleRunError) as exc_info:
            await job_store.record_item(job.job_id, progress_entry("item_completed", index=1), run_id=old_run)
        assert exc_info.value.status_code == 409

        job = await job_store.record_item(job.job_id, progress_entry("item_completed", index=1), run_id=new_run)
        assert job.completed_work_items == 1

    async def test_superseded_run_cannot_complete_or_fail(self, job_store: JobStore):
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        old_run = (await job_store.mark_processing(job.job_id)).run_id
        await job_store.mark_processing(job.job_id, resumed=True)

        with pytest.raises(StaleRunError):
            await job_store.mark_completed(job.job_id, run_id=old_run)

        job = await job_store.mark_failed(job.job_id, "Job store failure: disk full", run_id=old_run)
        assert job.status == JobStatus.PROCESSING
        assert job.error_log == []

    async def test_completed_job_refuses_a_second_completion(self, job_store: JobStore):
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        run_id = (await job_store.mark_processing(job.job_id)).run_id
        await job_store.mark_completed(job.job_id, run_id=run_id)

        with pytest.raises(InvalidStatusTransition):
            await job_store.mark_completed(job.job_id, run_id=run_id)


@pytest.mark.db
class TestQueries:
    """Test listing jobs and their content."""

    async def test_list_jobs_filters(self, job_store: JobStore):
        """Test filtering by status and niche."""
        first = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        second = await job_store.create_job(_request(["beauty", "tech"]), _items(["beauty", "tech"]))
        await job_store.mark_processing(second.job_id)

        pending = await job_store.list_jobs(status=JobStatus.PENDING)
        assert [job.job_id for job in pending] == [first.job_id]

        beauty = await job_store.list_jobs(niche="beauty")
        assert [job.job_id for job in beauty] == [second.job_id]

        everything = await job_store.list_jobs(limit=1)
        assert len(everything) == 1

    async def test_list_by_status(self, job_store: JobStore):
        """Test listing processing jobs for resumption."""
        job = await job_store.create_job(_request(["tech"]), _items(["tech"]))
        assert await job_store.list_by_status(JobStatus.PROCESSING) == []

        await job_store.mark_processing(job.job_id)
        processing = await job_store.list_by_status(JobStatus.PROCESSING)
        assert [row.job_id for row in processing] == [job.job_id]

    async def test_content_listing_and_counts(self, job_store: JobStore, db_session):
        """Test generated content lookups per job."""
        job = await job_store.create_job(_request(["tech", "beauty"]), _items(["tech", "beauty"]))
        for niche in ["tech", "beauty"]:
            db_session.add(BulkGeneratedContentFactory.create(bulk_job_id=job.job_id, niche=niche))
        db_session.commit()

        content = await job_store.list_content(job.job_id)
        assert [row.niche for row in content] == ["tech", "beauty"]

        counts = await job_store.count_content([job.job_id, "auto_bulk_0_none"])
        assert counts == {job.job_id: 2}
        assert await job_store.count_content([]) == {}
