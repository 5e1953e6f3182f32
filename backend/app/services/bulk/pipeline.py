"""
Per-item pipeline

Runs one work item through inspiration, content, captions, persistence,
evaluation and webhook stages. Each stage is total: an external failure or
an empty answer is replaced by a deterministic fallback, and exceptions are
returned as StageErrors for the job's error log. A later stage always runs,
on fallback inputs if need be.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.core.config import settings
from app.services.bulk.collaborators import ContentCollaborators
from app.services.bulk.fallbacks import (
    affiliate_link_for,
    fallback_caption,
    fallback_content,
    fallback_inspiration
)
from app.services.bulk.results import StageError, StageResult, attempt
from app.services.bulk.types import (
    GeneratedArtifact,
    InspirationResult,
    PipelineStage,
    RunConfig,
    WorkItemSpec
)
from app.services.webhook_dispatcher import build_platform_payload

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    """What one work item produced, plus the stages that fell back on errors"""
    artifact: GeneratedArtifact
    errors: List[StageError] = field(default_factory=list)


class ItemPipeline:
    def __init__(
        self,
        collaborators: ContentCollaborators,
        timeout: float = None,
        webhook_timeout: float = None,
        enable_evaluation: bool = None
    ):
        self.collaborators = collaborators
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self.webhook_timeout = webhook_timeout or settings.WEBHOOK_TIMEOUT
        self.enable_evaluation = (
            settings.ENABLE_CONTENT_EVALUATION if enable_evaluation is None else enable_evaluation
        )

    def _collect(self, result: StageResult, errors: List[StageError]) -> StageResult:
        if result.error is not None:
            errors.append(result.error)
        return result

    async def run(self, job_id: str, item: WorkItemSpec, config: RunConfig) -> ItemOutcome:
        errors: List[StageError] = []
        started = time.monotonic()

        inspiration = await self.fetch_inspiration(item, errors)
        content = await self.generate_content(item, config, inspiration, errors)
        affiliate_link = affiliate_link_for(item.product_name, item.niche, config)
        captions = await self.generate_captions(item, config, content, inspiration, affiliate_link, errors)

        artifact = GeneratedArtifact(
            job_id=job_id,
            niche=item.niche,
            product_name=item.product_name,
            tone=config.tone,
            template=config.template,
            platforms=list(config.platforms),
            main_content=content,
            platform_captions=captions,
            viral_inspiration=inspiration,
            affiliate_link=affiliate_link,
            model_used=config.ai_model,
            generation_time_ms=int((time.monotonic() - started) * 1000)
        )

        await self.persist(artifact, errors)
        await self.evaluate(artifact, errors)
        await self.dispatch_webhooks(job_id, artifact, config, errors)

        return ItemOutcome(artifact=artifact, errors=errors)

    async def fetch_inspiration(self, item: WorkItemSpec, errors: List[StageError]) -> InspirationResult:
        result = await attempt(
            PipelineStage.INSPIRATION,
            self.collaborators.fetch_inspiration,
            item.product_name,
            item.niche,
            timeout=self.timeout
        )
        result = self._collect(
            result.ensure(lambda found: isinstance(found, InspirationResult) and found.is_complete()),
            errors
        )
        if not result.is_ok:
            logger.warning(f"Using fallback inspiration for {item.product_name} ({item.niche})")
        return result.or_else(lambda: fallback_inspiration(item.product_name, item.niche)).value

    async def generate_content(self, item: WorkItemSpec, config: RunConfig,
                               inspiration: InspirationResult, errors: List[StageError]) -> str:
        result = await attempt(
            PipelineStage.CONTENT,
            self.collaborators.generate_content,
            item,
            config.tone,
            config.template,
            inspiration,
            ai_model=config.ai_model,
            timeout=self.timeout
        )
        result = self._collect(result.ensure(lambda text: bool(text and text.strip())), errors)
        if not result.is_ok:
            logger.warning(f"Using fallback content for {item.product_name} ({item.niche})")
        return result.or_else(
            lambda: fallback_content(item.product_name, item.niche, config.tone, config.template, inspiration)
        ).value

    async def generate_captions(self, item: WorkItemSpec, config: RunConfig, content: str,
                                inspiration: InspirationResult, affiliate_link: Optional[str],
                                errors: List[StageError]) -> Dict[str, str]:
        if not config.platforms:
            return {}

        result = await attempt(
            PipelineStage.CAPTIONS,
            self.collaborators.generate_platform_captions,
            item.product_name,
            item.niche,
            list(config.platforms),
            content,
            inspiration,
            ai_model=config.ai_model,
            timeout=self.timeout
        )
        generated = self._collect(result, errors).or_else(dict).value or {}

        captions = {}
        for platform in config.platforms:
            caption = generated.get(platform)
            if isinstance(caption, str) and caption.strip():
                if affiliate_link and affiliate_link not in caption:
                    caption = f"{caption.strip()}\n\n{affiliate_link}"
                captions[platform] = caption
            else:
                logger.warning(f"Using fallback {platform} caption for {item.product_name}")
                captions[platform] = fallback_caption(
                    platform, item.product_name, item.niche, inspiration, affiliate_link
                )
        return captions

    async def persist(self, artifact: GeneratedArtifact, errors: List[StageError]) -> None:
        result = self._collect(
            await attempt(
                PipelineStage.PERSISTENCE,
                self.collaborators.persist_artifact,
                artifact,
                timeout=self.timeout
            ),
            errors
        )
        artifact.artifact_id = result.value

        result = self._collect(
            await attempt(
                PipelineStage.HISTORY,
                self.collaborators.persist_history,
                artifact.history_entry(),
                timeout=self.timeout
            ),
            errors
        )
        artifact.content_history_id = result.value

    async def evaluate(self, artifact: GeneratedArtifact, errors: List[StageError]) -> None:
        if not (self.enable_evaluation and self.collaborators.evaluation_enabled):
            return

        result = self._collect(
            await attempt(
                PipelineStage.EVALUATION,
                self.collaborators.evaluate_content,
                artifact.evaluation_text(),
                timeout=self.timeout
            ),
            errors
        )
        if not result.is_ok:
            return

        artifact.evaluation = result.value
        if artifact.artifact_id is None and artifact.content_history_id is None:
            return
        self._collect(
            await attempt(
                PipelineStage.EVALUATION,
                self.collaborators.persist_evaluation,
                artifact,
                timeout=self.timeout
            ),
            errors
        )

    async def dispatch_webhooks(self, job_id: str, artifact: GeneratedArtifact,
                                config: RunConfig, errors: List[StageError]) -> None:
        url = config.webhook_url or settings.DEFAULT_WEBHOOK_URL
        if not config.platforms or not url:
            return

        for platform in config.platforms:
            payload = build_platform_payload(job_id, artifact, platform, config)
            result = await attempt(
                PipelineStage.WEBHOOK,
                self.collaborators.deliver_webhook,
                platform,
                payload,
                url=url,
                timeout=self.webhook_timeout
            )
            if result.error is not None:
                errors.append(result.error)
            elif result.value is not True:
                errors.append(StageError(
                    stage=PipelineStage.WEBHOOK,
                    message=f"Webhook delivery for {platform} was not accepted"
                ))
