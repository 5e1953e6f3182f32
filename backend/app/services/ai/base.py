"""
Base AI Service Classes

Provider abstraction shared by content generation, caption fan-out and
content evaluation. Providers raise the AIServiceError family; callers in the
bulk pipeline turn those into recorded stage errors.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import logging

import tiktoken
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from app.core.config import settings

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    """Supported AI providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# Model aliases accepted in bulk requests ("aiModel") mapped to providers
MODEL_ALIASES = {
    "chatgpt": AIProvider.OPENAI,
    "gpt": AIProvider.OPENAI,
    "openai": AIProvider.OPENAI,
    "claude": AIProvider.ANTHROPIC,
    "anthropic": AIProvider.ANTHROPIC,
}


def resolve_provider(ai_model: Optional[str]) -> AIProvider:
    """Map a request-level model name to a provider"""
    name = (ai_model or settings.DEFAULT_AI_MODEL).lower()
    if name in MODEL_ALIASES:
        return MODEL_ALIASES[name]
    if name.startswith("gpt") or name.startswith("o1"):
        return AIProvider.OPENAI
    if name.startswith("claude"):
        return AIProvider.ANTHROPIC
    return AIProvider(settings.DEFAULT_MODEL_PROVIDER)


@dataclass
class AIUsageMetrics:
    """Token usage and latency of one provider call"""
    provider: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class AIResponse:
    """Standardized AI response format"""
    content: str
    usage: AIUsageMetrics
    metadata: Dict[str, Any]
    success: bool = True
    error: Optional[str] = None


class AIServiceError(Exception):
    """Base exception for AI service errors"""
    def __init__(self, message: str, provider: str = "", model: str = "", original_error: Exception = None):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        super().__init__(self.message)


class RateLimitError(AIServiceError):
    """Rate limit exceeded error"""
    pass


class TokenLimitError(AIServiceError):
    """Token limit exceeded error"""
    pass


class ProviderError(AIServiceError):
    """Provider-specific error"""
    pass


class TokenCounter:
    """Counts prompt tokens with tiktoken, estimating when no encoding is known"""

    def __init__(self):
        self._encoders = {}

    def count_tokens(self, text: str, model: str = "gpt-4o") -> int:
        try:
            encoding_name = "o200k_base" if model.startswith("gpt-4o") else "cl100k_base"
            if encoding_name not in self._encoders:
                self._encoders[encoding_name] = tiktoken.get_encoding(encoding_name)
            return len(self._encoders[encoding_name].encode(text))
        except Exception as e:
            logger.warning(f"Failed to count tokens for model {model}: {e}")
            # Rough estimation, 4 chars per token
            return len(text) // 4


class BaseAIService(ABC):
    """Abstract base class for text generation providers"""

    def __init__(self, provider: AIProvider, model: str):
        self.provider = provider
        self.model = model
        self.token_counter = TokenCounter()

    @abstractmethod
    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        """Make the actual API request to the AI provider"""
        pass

    def validate_input(self, text: str, max_tokens: Optional[int] = None) -> None:
        if not text or not text.strip():
            raise AIServiceError("Input text cannot be empty", self.provider, self.model)

        token_count = self.token_counter.count_tokens(text, self.model)
        max_allowed = max_tokens or settings.MAX_TOKENS_PER_REQUEST

        if token_count > max_allowed:
            raise TokenLimitError(
                f"Input token count ({token_count}) exceeds maximum ({max_allowed})",
                provider=self.provider,
                model=self.model
            )

    @retry(
        stop=stop_after_attempt(settings.AI_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((RateLimitError, ProviderError)),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True
    )
    async def _request_with_retry(self, prompt: str, **kwargs) -> AIResponse:
        return await self._make_request(prompt=prompt, **kwargs)

    async def generate(self, prompt: str, **kwargs) -> AIResponse:
        """Generate content, retrying rate-limit and provider errors.

        Never raises for provider failures: the returned response carries
        ``success=False`` and the error message instead.
        """
        start_time = time.time()

        try:
            self.validate_input(prompt)
            response = await self._request_with_retry(prompt, **kwargs)
            response.usage.latency_ms = int((time.time() - start_time) * 1000)
            logger.debug(
                f"{self.provider} {self.model}: {response.usage.tokens_input} in, "
                f"{response.usage.tokens_output} out, {response.usage.latency_ms} ms"
            )
            return response

        except AIServiceError as e:
            error_msg = f"AI generation failed: {e.message}"
            logger.warning(error_msg)

            return AIResponse(
                content="",
                usage=AIUsageMetrics(
                    provider=self.provider,
                    model=self.model,
                    latency_ms=int((time.time() - start_time) * 1000)
                ),
                metadata={},
                success=False,
                error=error_msg
            )

    async def generate_text(self, prompt: str, **kwargs) -> str:
        """Generate and return the text, raising AIServiceError on failure"""
        response = await self.generate(prompt, **kwargs)
        if not response.success:
            raise AIServiceError(response.error or "AI generation failed", self.provider, self.model)
        return (response.content or "").strip()


def extract_json(text: str) -> Any:
    """Parse the first JSON object or array embedded in a model reply"""
    if not text:
        raise AIServiceError("Empty model reply")

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", cleaned)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    match = re.search(r"(\{[\s\S]*\}|\[[\s\S]*\])", cleaned)
    if not match:
        raise AIServiceError("No JSON found in model reply")
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Malformed JSON in model reply: {e}")
