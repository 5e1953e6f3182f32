"""
Dual-model content evaluation

Scores a piece of content for virality, clarity, persuasiveness and
creativity with ChatGPT and Claude independently. Either evaluator may be
unavailable or fail; the other still reports.
"""

import asyncio
from typing import Any, Dict, Optional
import logging

from app.services.ai.base import AIServiceError, BaseAIService, extract_json
from app.services.ai.prompts import PromptType, get_prompt
from app.services.ai.providers import AIServiceFactory
from app.services.bulk.types import EvaluationPair, EvaluationResult

logger = logging.getLogger(__name__)

EVALUATORS = {
    "chatgpt": "openai",
    "claude": "anthropic",
}


def _score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise AIServiceError(f"Invalid evaluation score: {value!r}")
    return max(1.0, min(10.0, score))


def parse_evaluation(evaluator: str, data: Dict[str, Any]) -> EvaluationResult:
    """Build an EvaluationResult from the evaluator's JSON reply"""
    needs_revision = data.get("needsRevision", False)
    if isinstance(needs_revision, str):
        needs_revision = needs_revision.strip().lower() == "true"

    return EvaluationResult(
        evaluator=evaluator,
        virality_score=_score(data.get("viralityScore")),
        clarity_score=_score(data.get("clarityScore")),
        persuasiveness_score=_score(data.get("persuasivenessScore")),
        creativity_score=_score(data.get("creativityScore")),
        virality_justification=str(data.get("viralityJustification") or ""),
        clarity_justification=str(data.get("clarityJustification") or ""),
        persuasiveness_justification=str(data.get("persuasivenessJustification") or ""),
        creativity_justification=str(data.get("creativityJustification") or ""),
        needs_revision=bool(needs_revision),
        improvement_suggestions=str(data.get("improvementSuggestions") or ""),
    )


class ContentEvaluationService:
    """Runs the ChatGPT and Claude evaluators concurrently"""

    def __init__(self, services: Optional[Dict[str, BaseAIService]] = None):
        if services is None:
            services = {}
            for evaluator, provider in EVALUATORS.items():
                try:
                    services[evaluator] = AIServiceFactory.create_text_service(provider)
                except AIServiceError as e:
                    logger.info(f"Evaluator {evaluator} unavailable: {e.message}")
        self.services = services

    @property
    def is_configured(self) -> bool:
        return bool(self.services)

    async def evaluate_with(self, evaluator: str, content: str) -> EvaluationResult:
        service = self.services.get(evaluator)
        if service is None:
            raise AIServiceError(f"Evaluator {evaluator} not configured")

        template = get_prompt(PromptType.CONTENT_EVALUATION)
        kwargs = {
            "max_tokens": template.max_tokens,
            "temperature": template.temperature,
            "system_prompt": template.system_prompt,
        }
        if evaluator == "chatgpt":
            kwargs["response_format"] = {"type": "json_object"}

        reply = await service.generate_text(template.format(content=content), **kwargs)
        data = extract_json(reply)
        if not isinstance(data, dict):
            raise AIServiceError(f"Evaluator {evaluator} returned no JSON object")
        return parse_evaluation(evaluator, data)

    async def evaluate(self, content: str) -> EvaluationPair:
        """Evaluate with both models; raises only when neither produced scores"""
        evaluators = list(EVALUATORS)
        outcomes = await asyncio.gather(
            *(self.evaluate_with(name, content) for name in evaluators),
            return_exceptions=True
        )

        pair = EvaluationPair()
        failures = []
        for name, outcome in zip(evaluators, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Evaluation with {name} failed: {outcome}")
                failures.append(f"{name}: {outcome}")
                continue
            setattr(pair, name, outcome)

        if not pair.results():
            raise AIServiceError("All evaluators failed (" + "; ".join(failures) + ")")
        return pair
