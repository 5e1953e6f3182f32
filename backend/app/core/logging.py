"""
Logging configuration for the API process and Celery workers
"""

import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ["httpx", "httpcore", "sqlalchemy.engine", "openai", "anthropic"]

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure the root logger once per process"""
    global _configured
    if _configured:
        return

    log_level = (level or settings.LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
