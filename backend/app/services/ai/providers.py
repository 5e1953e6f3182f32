"""
AI Provider Implementations

OpenAI and Anthropic text services behind the BaseAIService interface.
"""

from typing import Optional

import openai
import anthropic
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic

from app.core.config import settings
from app.services.ai.base import (
    BaseAIService,
    AIProvider,
    AIResponse,
    AIUsageMetrics,
    AIServiceError,
    RateLimitError,
    ProviderError,
    resolve_provider
)

import logging

logger = logging.getLogger(__name__)


class OpenAIService(BaseAIService):
    """OpenAI chat completion service"""

    def __init__(self, model: str = None):
        model = model or settings.DEFAULT_TEXT_MODEL
        super().__init__(AIProvider.OPENAI, model)

        if not settings.OPENAI_API_KEY:
            raise AIServiceError("OpenAI API key not configured", "openai", model)

        self.client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.AI_REQUEST_TIMEOUT
        )

    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        try:
            max_tokens = kwargs.pop('max_tokens', 1000)
            temperature = kwargs.pop('temperature', 0.7)
            system_prompt = kwargs.pop('system_prompt', '')

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs
            )

            usage = response.usage
            return AIResponse(
                content=response.choices[0].message.content or "",
                usage=AIUsageMetrics(
                    provider=self.provider,
                    model=self.model,
                    tokens_input=usage.prompt_tokens if usage else 0,
                    tokens_output=usage.completion_tokens if usage else 0
                ),
                metadata={
                    "finish_reason": response.choices[0].finish_reason,
                    "model": response.model
                }
            )

        except openai.RateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit exceeded: {e}", "openai", self.model)
        except openai.APIError as e:
            raise ProviderError(f"OpenAI API error: {e}", "openai", self.model, e)
        except Exception as e:
            raise AIServiceError(f"Unexpected OpenAI error: {e}", "openai", self.model, e)


class AnthropicService(BaseAIService):
    """Anthropic Claude messages service"""

    def __init__(self, model: str = None):
        model = model or settings.DEFAULT_ANTHROPIC_MODEL
        super().__init__(AIProvider.ANTHROPIC, model)

        if not settings.ANTHROPIC_API_KEY:
            raise AIServiceError("Anthropic API key not configured", "anthropic", model)

        self.client = AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.AI_REQUEST_TIMEOUT
        )

    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        try:
            max_tokens = kwargs.get('max_tokens', 1000)
            temperature = kwargs.get('temperature', 0.7)
            system_prompt = kwargs.get('system_prompt', '')

            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}]
            )

            content = "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )

            return AIResponse(
                content=content,
                usage=AIUsageMetrics(
                    provider=self.provider,
                    model=self.model,
                    tokens_input=response.usage.input_tokens,
                    tokens_output=response.usage.output_tokens
                ),
                metadata={
                    "stop_reason": response.stop_reason,
                    "model": response.model
                }
            )

        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Anthropic rate limit exceeded: {e}", "anthropic", self.model)
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}", "anthropic", self.model, e)
        except Exception as e:
            raise AIServiceError(f"Unexpected Anthropic error: {e}", "anthropic", self.model, e)


class AIServiceFactory:
    """Factory for creating AI service instances"""

    @staticmethod
    def create_text_service(provider: str = None, model: str = None) -> BaseAIService:
        provider = provider or settings.DEFAULT_MODEL_PROVIDER

        if provider == AIProvider.OPENAI:
            return OpenAIService(model)
        elif provider == AIProvider.ANTHROPIC:
            return AnthropicService(model)
        else:
            raise AIServiceError(f"Unsupported provider: {provider}")

    @staticmethod
    def for_model(ai_model: Optional[str]) -> BaseAIService:
        """Create the service behind a request-level model name ("claude", "chatgpt", "gpt-4o")"""
        provider = resolve_provider(ai_model)
        name = (ai_model or "").lower()
        # Aliases select the provider's default model, full names are passed through
        model = ai_model if name.startswith(("gpt-", "claude-", "o1")) else None
        return AIServiceFactory.create_text_service(provider, model)
