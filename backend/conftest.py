import asyncio
import os
from typing import Dict, List, Optional, Set

# Settings are read at import time; keep tests offline and on sqlite
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RESUME_INTERRUPTED_JOBS_ON_STARTUP"] = "false"
os.environ["DEFAULT_WEBHOOK_URL"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["PERPLEXITY_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.session import get_db
from app.models import Base
from app.services.ai.base import ProviderError
from app.services.bulk.collaborators import DefaultContentCollaborators
from app.services.bulk.job_store import JobStore
from app.services.bulk.orchestrator import BulkJobOrchestrator
from app.services.bulk.registry import JobRegistry
from app.services.bulk.types import (
    EvaluationPair, EvaluationResult, InspirationResult, WorkItemSpec
)
from tests.factories import (
    BulkContentJobFactory, TrendingProductFactory, ScheduledBulkJobFactory
)

# Test database URL
TEST_DATABASE_URL = "sqlite://"

# Create test engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


class FakeCollaborators(DefaultContentCollaborators):
    """Collaborators with scripted external calls and real sqlite persistence.

    ``fail(stage, *niches)`` makes one stage raise for the given niches, or
    for every niche when none are given. Calls are recorded per stage.
    """

    def __init__(self, session_factory, evaluation_enabled: bool = False,
                 webhook_result: bool = True, delay: float = 0):
        super().__init__(session_factory)
        self._evaluation_enabled = evaluation_enabled
        self.webhook_result = webhook_result
        self.delay = delay
        self.failures: Dict[str, Optional[Set[str]]] = {}
        self.calls: Dict[str, List] = {}
        self.webhooks: List[Dict] = []
        self.selection: Optional[Dict[str, WorkItemSpec]] = None

    @property
    def evaluation_enabled(self) -> bool:
        return self._evaluation_enabled

    def fail(self, stage: str, *niches: str) -> None:
        self.failures[stage] = set(niches) or None

    def _check(self, stage: str, niche: str, *args) -> None:
        self.calls.setdefault(stage, []).append((niche,) + args)
        if stage in self.failures:
            niches = self.failures[stage]
            if niches is None or niche in niches:
                raise ProviderError(f"{stage} unavailable for {niche}", "fake")

    async def select_work_items(self, niches, overrides=None, use_existing_products=True):
        if self.selection is not None:
            return dict(self.selection)
        return await super().select_work_items(niches, overrides, use_existing_products)

    async def fetch_inspiration(self, product, niche):
        self._check("inspiration", niche, product)
        return InspirationResult(
            hook=f"Nobody talks about {product} enough",
            format="Quick demo with voiceover",
            caption=f"{product} changed my {niche} routine",
            hashtags=[f"#{niche}", "#fyp"],
        )

    async def generate_content(self, item, tone, template, inspiration, ai_model=None):
        self._check("content", item.niche, item.product_name, tone, template)
        if self.delay:
            await asyncio.sleep(self.delay)
        return f"Generated {template} script for {item.product_name} in a {tone} tone"

    async def generate_platform_captions(self, product, niche, platforms, content, inspiration, ai_model=None):
        self._check("captions", niche, product)
        return {platform: f"{product} on {platform}" for platform in platforms}

    async def persist_artifact(self, artifact):
        self._check("persistence", artifact.niche)
        return await super().persist_artifact(artifact)

    async def persist_history(self, entry):
        self._check("history", entry["niche"])
        return await super().persist_history(entry)

    async def evaluate_content(self, text):
        self._check("evaluation", "", text)
        return EvaluationPair(
            chatgpt=EvaluationResult("chatgpt", 8, 7, 8, 6),
            claude=EvaluationResult("claude", 7, 9, 7, 8),
        )

    async def deliver_webhook(self, platform, payload, url=None):
        self._check("webhook", payload["niche"], platform)
        self.webhooks.append({"platform": platform, "payload": payload, "url": url})
        return self.webhook_result


@pytest.fixture(scope="function")
def session_factory():
    """Create fresh tables for each test and hand out the session factory."""
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def make_collaborators(session_factory):
    """Build scripted collaborators with non-default options."""
    def _make(**kwargs):
        return FakeCollaborators(session_factory, **kwargs)
    return _make


@pytest.fixture
def collaborators(make_collaborators):
    return make_collaborators()


@pytest.fixture
def registry():
    return JobRegistry()


@pytest_asyncio.fixture
async def orchestrator(job_store, collaborators, registry):
    """Orchestrator over the test database and scripted collaborators."""
    orchestrator = BulkJobOrchestrator(job_store, collaborators, registry)
    yield orchestrator
    await registry.wait_all(timeout=5)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """Override the get_db dependency to use test database."""
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(orchestrator, override_get_db):
    """Create an async HTTP client for testing."""
    # ASGITransport does not run the lifespan, install the orchestrator directly
    app.state.orchestrator = orchestrator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.state.orchestrator = None


@pytest.fixture
def sample_job(db_session):
    """Create a pending bulk job for testing."""
    job = BulkContentJobFactory.create()
    db_session.add(job)
    db_session.commit()
    db_session.refresh(job)
    return job


@pytest.fixture
def sample_product(db_session):
    """Create a stored trending product for testing."""
    product = TrendingProductFactory.create(niche="tech", title="Anker Nano Charger")
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def sample_schedule(db_session):
    """Create an active daily schedule for testing."""
    schedule = ScheduledBulkJobFactory.create()
    db_session.add(schedule)
    db_session.commit()
    db_session.refresh(schedule)
    return schedule


# Pytest markers for test categorization
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "celery: mark test as testing Celery tasks")
    config.addinivalue_line("markers", "db: mark test as requiring database")
    config.addinivalue_line("markers", "api: mark test as testing API endpoints")
