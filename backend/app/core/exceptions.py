from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

class GlowBotException(Exception):
    """Base exception for GlowBot application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class JobNotFoundError(GlowBotException):
    """Raised when a bulk job is not found"""
    def __init__(self, message: str = "Job not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class ScheduledJobNotFoundError(GlowBotException):
    """Raised when a scheduled bulk job is not found"""
    def __init__(self, message: str = "Scheduled job not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class ValidationError(GlowBotException):
    """Raised when validation fails"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class InvalidStatusTransition(GlowBotException):
    """Raised when a job status would move backward or leave a terminal state"""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move job from '{current}' to '{requested}'",
            status.HTTP_409_CONFLICT
        )

class StaleRunError(GlowBotException):
    """Raised when a run writes to a job that a newer run has taken over"""
    def __init__(self, job_id: str, run_id: str):
        self.job_id = job_id
        self.run_id = run_id
        super().__init__(
            f"Run {run_id} no longer owns bulk job {job_id}",
            status.HTTP_409_CONFLICT
        )

class JobStoreError(GlowBotException):
    """Raised when the durable job store cannot be read or written"""
    def __init__(self, message: str = "Job store unavailable", original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)

async def glowbot_exception_handler(request: Request, exc: GlowBotException):
    """Handle custom GlowBot exceptions"""
    logger.error(f"GlowBot exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )

async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database exceptions"""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
