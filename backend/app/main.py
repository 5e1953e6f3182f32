from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
import logging
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.exceptions import (
    GlowBotException, glowbot_exception_handler,
    sqlalchemy_exception_handler, general_exception_handler
)
from app.core.rate_limiting import limiter, custom_rate_limit_exceeded_handler
from app.db.init_db import init_db
from app.services.bulk.orchestrator import build_orchestrator
from app.services.bulk.resume import ResumeManager
from app.api.v1.api import api_router

# Set up logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup; tests may install their own orchestrator beforehand
    if getattr(app.state, "orchestrator", None) is None:
        init_db()
        app.state.orchestrator = build_orchestrator()
    orchestrator = app.state.orchestrator

    if settings.RESUME_INTERRUPTED_JOBS_ON_STARTUP:
        try:
            await ResumeManager(orchestrator).resume_interrupted_jobs()
        except Exception as e:
            logger.error(f"Resuming interrupted bulk jobs failed: {e}", exc_info=True)

    yield

    # Shutdown; running jobs stay in processing and are resumed on next start
    active = orchestrator.registry.active_job_ids()
    if active:
        logger.warning(f"Shutting down with {len(active)} bulk jobs still running: {active}")
    await orchestrator.collaborators.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Bulk social content generation with webhook delivery",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Add rate limiter to app
app.state.limiter = limiter

# Exception handlers
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
app.add_exception_handler(GlowBotException, glowbot_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}

@app.get("/health")
async def health_check():
    orchestrator = getattr(app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "runningJobs": len(orchestrator.registry.active_job_ids()) if orchestrator else 0
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
