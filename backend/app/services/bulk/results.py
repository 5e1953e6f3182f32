"""
Stage results for the per-item pipeline

Every pipeline stage yields a StageResult: a value, a recorded StageError, or
neither (an empty result). ``or_else`` substitutes a deterministic fallback
for anything that is not a usable value, keeping the error for the job's
error log. ``attempt`` runs one external call under a timeout and turns any
exception into a StageError.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar
import logging

from app.core.config import settings
from app.services.bulk.types import PipelineStage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(str, Enum):
    """Coarse classification of stage failures"""
    TIMEOUT_ERROR = "timeout_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    AUTHENTICATION_ERROR = "authentication_error"
    NETWORK_ERROR = "network_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    VALIDATION_ERROR = "validation_error"
    DATABASE_ERROR = "database_error"
    UNKNOWN_ERROR = "unknown_error"


def classify_error(error: BaseException) -> ErrorType:
    error_str = str(error).lower()
    error_type_name = type(error).__name__.lower()

    if isinstance(error, asyncio.TimeoutError) or "timeout" in error_type_name or "timed out" in error_str:
        return ErrorType.TIMEOUT_ERROR
    elif "rate limit" in error_str or "429" in error_str or "ratelimit" in error_type_name:
        return ErrorType.RATE_LIMIT_ERROR
    elif "unauthorized" in error_str or "401" in error_str or "api key" in error_str:
        return ErrorType.AUTHENTICATION_ERROR
    elif "sqlalchemy" in type(error).__module__:
        return ErrorType.DATABASE_ERROR
    elif "connect" in error_str or "network" in error_str or "connecterror" in error_type_name:
        return ErrorType.NETWORK_ERROR
    elif "service unavailable" in error_str or "503" in error_str:
        return ErrorType.SERVICE_UNAVAILABLE
    elif "validation" in error_str or "invalid" in error_str:
        return ErrorType.VALIDATION_ERROR
    return ErrorType.UNKNOWN_ERROR


@dataclass
class StageError:
    """The recorded failure of one pipeline stage"""
    stage: PipelineStage
    message: str
    error_type: ErrorType = ErrorType.UNKNOWN_ERROR
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(cls, stage: PipelineStage, error: BaseException) -> "StageError":
        if isinstance(error, asyncio.TimeoutError):
            message = f"{stage.value} timed out"
        else:
            message = str(error) or type(error).__name__
        return cls(stage=stage, message=message, error_type=classify_error(error))

    def to_log_entry(self, item: str) -> Dict[str, Any]:
        return {
            "item": item,
            "stage": self.stage.value,
            "message": self.message,
            "errorType": self.error_type.value,
            "time": self.timestamp.isoformat(),
        }


@dataclass
class StageResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[StageError] = None
    fallback_used: bool = False

    @classmethod
    def ok(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def err(cls, error: StageError) -> "StageResult[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None and self.value is not None

    def ensure(self, predicate: Callable[[T], bool]) -> "StageResult[T]":
        """Drop a value that fails the predicate, leaving an empty result"""
        if self.is_ok and not predicate(self.value):
            return StageResult(error=None)
        return self

    def or_else(self, fallback: Callable[[], T]) -> "StageResult[T]":
        if self.is_ok:
            return self
        return StageResult(value=fallback(), error=self.error, fallback_used=True)


async def attempt(
    stage: PipelineStage,
    call: Callable[..., Awaitable[T]],
    *args,
    timeout: Optional[float] = None,
    **kwargs
) -> StageResult[T]:
    """Await one external call, bounded by a timeout, capturing any failure"""
    try:
        value = await asyncio.wait_for(
            call(*args, **kwargs),
            timeout=timeout or settings.EXTERNAL_CALL_TIMEOUT
        )
        return StageResult.ok(value)
    except Exception as e:
        error = StageError.from_exception(stage, e)
        logger.warning(f"Stage {stage.value} failed ({error.error_type.value}): {error.message}")
        return StageResult.err(error)
