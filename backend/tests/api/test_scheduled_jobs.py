import pytest
from httpx import AsyncClient

from app.models.scheduled_job import ScheduledBulkJob

SCHEDULES_URL = "/api/v1/scheduled-bulk-jobs"


def _schedule(**overrides):
    body = {
        "scheduleTime": "07:45",
        "timezone": "Europe/London",
        "name": "Morning tech drop",
        "selectedNiches": ["Tech", "fitness"],
        "tones": ["enthusiastic"],
        "templates": ["product_review"],
        "platforms": ["tiktok"],
        "webhookUrl": "https://hooks.example.com/glowbot",
    }
    body.update(overrides)
    return body


@pytest.mark.api
class TestScheduledBulkJobsEndpoints:
    """Test scheduled bulk job management endpoints."""

    async def test_create_schedule(self, async_client: AsyncClient, db_session):
        response = await async_client.post(SCHEDULES_URL, json=_schedule())

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Morning tech drop"
        assert data["scheduleTime"] == "07:45"
        assert data["timezone"] == "Europe/London"
        assert data["isActive"] is True
        assert data["selectedNiches"] == ["tech", "fitness"]
        assert data["nextRunAt"] is not None
        assert data["totalRuns"] == 0

        schedule = db_session.query(ScheduledBulkJob).filter(ScheduledBulkJob.id == data["scheduledJobId"]).one()
        assert schedule.webhook_url == "https://hooks.example.com/glowbot"

    async def test_invalid_schedule_time(self, async_client: AsyncClient):
        response = await async_client.post(SCHEDULES_URL, json=_schedule(scheduleTime="7pm"))

        assert response.status_code == 422

    async def test_unknown_timezone(self, async_client: AsyncClient):
        response = await async_client.post(SCHEDULES_URL, json=_schedule(timezone="Atlantis/Capital"))

        assert response.status_code == 400
        assert "timezone" in response.json()["detail"]

    async def test_invalid_webhook_url(self, async_client: AsyncClient):
        response = await async_client.post(SCHEDULES_URL, json=_schedule(webhookUrl="ftp://example.com"))

        assert response.status_code == 400

    async def test_list_active_schedules(self, async_client: AsyncClient, sample_schedule):
        response = await async_client.get(SCHEDULES_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["scheduledJobId"] == sample_schedule.id

    async def test_stop_schedule(self, async_client: AsyncClient, sample_schedule):
        response = await async_client.delete(f"{SCHEDULES_URL}/{sample_schedule.id}")

        assert response.status_code == 200
        assert response.json()["scheduledJobId"] == sample_schedule.id
        assert "stopped" in response.json()["message"]

        listed = await async_client.get(SCHEDULES_URL)
        assert listed.json()["total"] == 0

    async def test_stop_unknown_schedule(self, async_client: AsyncClient):
        response = await async_client.delete(f"{SCHEDULES_URL}/999")

        assert response.status_code == 404
