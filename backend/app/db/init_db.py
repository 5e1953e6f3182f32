import logging

from sqlalchemy.engine import Engine

from app.db.session import engine as default_engine, Base

logger = logging.getLogger(__name__)

def init_db(bind: Engine = None):
    """Initialize database tables"""
    # Import all models to ensure they are registered with SQLAlchemy
    from app.models import (  # noqa: F401
        BulkContentJob, BulkGeneratedContent, ContentHistory,
        ContentEvaluation, TrendingProduct, ScheduledBulkJob
    )

    Base.metadata.create_all(bind=bind or default_engine)
    logger.info("Database tables created successfully")

if __name__ == "__main__":
    from app.core.logging import setup_logging
    setup_logging()
    init_db()
