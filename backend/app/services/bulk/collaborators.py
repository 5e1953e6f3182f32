"""
External collaborators of the bulk pipeline

ContentCollaborators is the seam between the orchestration core and
everything it calls out to: product selection, trend research, LLM content
generation, persistence, evaluation and webhooks. DefaultContentCollaborators
wires the production services; tests substitute their own implementation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from app.core.config import settings
from app.db.session import SessionLocal
from app.models.content import BulkGeneratedContent, ContentEvaluation, ContentHistory
from app.services.ai.base import AIServiceError
from app.services.ai.evaluation import ContentEvaluationService
from app.services.ai.prompts import PromptType, get_prompt
from app.services.ai.providers import AIServiceFactory
from app.services.ai.trend_research import TrendResearchService
from app.services.bulk.selector import WorkItemSelector
from app.services.bulk.types import EvaluationPair, GeneratedArtifact, InspirationResult, WorkItemSpec
from app.services.webhook_dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


class ContentCollaborators(ABC):
    """Operations the bulk pipeline needs from the outside world"""

    @property
    def evaluation_enabled(self) -> bool:
        return False

    @abstractmethod
    async def select_work_items(
        self,
        niches: List[str],
        overrides: Optional[Dict[str, str]] = None,
        use_existing_products: bool = True
    ) -> Dict[str, WorkItemSpec]:
        ...

    @abstractmethod
    async def fetch_inspiration(self, product: str, niche: str) -> Optional[InspirationResult]:
        ...

    @abstractmethod
    async def generate_content(
        self,
        item: WorkItemSpec,
        tone: str,
        template: str,
        inspiration: InspirationResult,
        ai_model: Optional[str] = None
    ) -> str:
        ...

    @abstractmethod
    async def generate_platform_captions(
        self,
        product: str,
        niche: str,
        platforms: List[str],
        content: str,
        inspiration: InspirationResult,
        ai_model: Optional[str] = None
    ) -> Dict[str, str]:
        ...

    @abstractmethod
    async def persist_artifact(self, artifact: GeneratedArtifact) -> int:
        ...

    @abstractmethod
    async def persist_history(self, entry: Dict) -> int:
        ...

    async def evaluate_content(self, text: str) -> EvaluationPair:
        raise AIServiceError("No evaluators configured")

    async def persist_evaluation(self, artifact: GeneratedArtifact) -> None:
        return None

    @abstractmethod
    async def deliver_webhook(self, platform: str, payload: Dict, url: Optional[str] = None) -> bool:
        ...

    async def close(self) -> None:
        return None


class DefaultContentCollaborators(ContentCollaborators):
    """Production collaborators: Perplexity, OpenAI/Anthropic, SQLAlchemy, webhooks"""

    def __init__(
        self,
        session_factory=SessionLocal,
        research_service: TrendResearchService = None,
        evaluation_service: ContentEvaluationService = None,
        webhook_dispatcher: WebhookDispatcher = None,
        selector: WorkItemSelector = None
    ):
        self.session_factory = session_factory
        self.research_service = research_service or TrendResearchService()
        self.evaluation_service = evaluation_service or ContentEvaluationService()
        self.webhook_dispatcher = webhook_dispatcher or WebhookDispatcher()
        self.selector = selector or WorkItemSelector(session_factory, self.research_service)

    @property
    def evaluation_enabled(self) -> bool:
        return self.evaluation_service.is_configured

    async def close(self) -> None:
        await self.research_service.close()
        await self.webhook_dispatcher.close()

    async def select_work_items(self, niches, overrides=None, use_existing_products=True):
        return await self.selector.select(niches, overrides, use_existing_products)

    async def fetch_inspiration(self, product: str, niche: str) -> Optional[InspirationResult]:
        return await self.research_service.fetch_viral_inspiration(product, niche)

    async def generate_content(self, item, tone, template, inspiration, ai_model=None) -> str:
        service = AIServiceFactory.for_model(ai_model)
        prompt = get_prompt(PromptType.CONTENT_GENERATION)
        reason_line = f"Why it is trending: {item.reason}\n" if item.reason else ""

        return await service.generate_text(
            prompt.format(
                template=template.replace("_", " "),
                product=item.product_name,
                niche=item.niche,
                tone=tone,
                reason_line=reason_line,
                hook=inspiration.hook,
                format=inspiration.format,
                caption=inspiration.caption,
                hashtags=" ".join(inspiration.hashtags)
            ),
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
            system_prompt=prompt.system_prompt
        )

    async def generate_platform_captions(self, product, niche, platforms, content, inspiration,
                                         ai_model=None) -> Dict[str, str]:
        service = AIServiceFactory.for_model(ai_model)
        prompt = get_prompt(PromptType.PLATFORM_CAPTION)

        async def caption_for(platform: str) -> str:
            return await service.generate_text(
                prompt.format(
                    platform=platform,
                    product=product,
                    niche=niche,
                    content=content[:2000],
                    hook=inspiration.hook,
                    hashtags=" ".join(inspiration.hashtags)
                ),
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
                system_prompt=prompt.system_prompt
            )

        outcomes = await asyncio.gather(*(caption_for(p) for p in platforms), return_exceptions=True)

        captions = {}
        for platform, outcome in zip(platforms, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Caption generation failed for {platform} ({product}): {outcome}")
                continue
            captions[platform] = outcome
        return captions

    async def persist_artifact(self, artifact: GeneratedArtifact) -> int:
        db = self.session_factory()
        try:
            row = BulkGeneratedContent(
                bulk_job_id=artifact.job_id,
                product_name=artifact.product_name,
                niche=artifact.niche,
                tone=artifact.tone,
                template=artifact.template,
                platforms=list(artifact.platforms),
                main_content=artifact.main_content,
                platform_captions=dict(artifact.platform_captions),
                viral_inspiration=artifact.viral_inspiration.to_dict(),
                affiliate_link=artifact.affiliate_link,
                model_used=artifact.model_used,
                generation_time_ms=artifact.generation_time_ms,
                status="completed"
            )
            db.add(row)
            db.commit()
            return row.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def persist_history(self, entry: Dict) -> int:
        entry = dict(entry)
        artifact_id = entry.pop("artifact_id", None)

        db = self.session_factory()
        try:
            history = ContentHistory(**entry)
            db.add(history)
            db.flush()
            if artifact_id is not None:
                db.query(BulkGeneratedContent).filter(
                    BulkGeneratedContent.id == artifact_id
                ).update({"content_history_id": history.id})
            db.commit()
            return history.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def evaluate_content(self, text: str) -> EvaluationPair:
        return await self.evaluation_service.evaluate(text)

    async def persist_evaluation(self, artifact: GeneratedArtifact) -> None:
        if artifact.evaluation is None:
            return

        db = self.session_factory()
        try:
            if artifact.content_history_id is not None:
                for result in artifact.evaluation.results():
                    db.add(ContentEvaluation(
                        content_history_id=artifact.content_history_id,
                        evaluator_model=result.evaluator,
                        virality_score=result.virality_score,
                        clarity_score=result.clarity_score,
                        persuasiveness_score=result.persuasiveness_score,
                        creativity_score=result.creativity_score,
                        virality_justification=result.virality_justification,
                        clarity_justification=result.clarity_justification,
                        persuasiveness_justification=result.persuasiveness_justification,
                        creativity_justification=result.creativity_justification,
                        needs_revision=result.needs_revision,
                        improvement_suggestions=result.improvement_suggestions,
                        overall_score=result.overall_score
                    ))
            if artifact.artifact_id is not None:
                db.query(BulkGeneratedContent).filter(
                    BulkGeneratedContent.id == artifact.artifact_id
                ).update({"evaluation_scores": artifact.evaluation.to_dict()})
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def deliver_webhook(self, platform: str, payload: Dict, url: Optional[str] = None) -> bool:
        target = url or settings.DEFAULT_WEBHOOK_URL
        if not target:
            raise ValueError("No webhook URL configured")
        return await self.webhook_dispatcher.deliver(target, payload)
