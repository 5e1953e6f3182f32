"""
Value types shared by the bulk generation services
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceReason(str, Enum):
    """Where the product of a work item came from"""
    PREVIEWED = "previewed"
    FRESH_FETCH = "freshFetch"
    DB_FALLBACK = "dbFallback"
    STATIC_FALLBACK = "staticFallback"


class PipelineStage(str, Enum):
    """Stages of the per-item pipeline, as recorded in a job's error log"""
    INSPIRATION = "inspiration"
    CONTENT = "content"
    CAPTIONS = "captions"
    PERSISTENCE = "persistence"
    HISTORY = "history"
    EVALUATION = "evaluation"
    WEBHOOK = "webhook"
    ITEM = "item"


@dataclass
class WorkItemSpec:
    """One (niche, product) pair to generate content for"""
    niche: str
    product_name: str
    source_reason: SourceReason
    brand: str = ""
    mentions: Optional[int] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "niche": self.niche,
            "productName": self.product_name,
            "sourceReason": SourceReason(self.source_reason).value,
            "brand": self.brand,
            "mentions": self.mentions,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkItemSpec":
        return cls(
            niche=data["niche"],
            product_name=data["productName"],
            source_reason=SourceReason(data.get("sourceReason", SourceReason.STATIC_FALLBACK)),
            brand=data.get("brand") or "",
            mentions=data.get("mentions"),
            reason=data.get("reason") or "",
        )


@dataclass
class InspirationResult:
    """Viral video research for one product"""
    hook: str
    format: str
    caption: str
    hashtags: List[str] = field(default_factory=list)
    fallback: bool = False

    def is_complete(self) -> bool:
        return bool(self.hook and self.format and self.caption and self.hashtags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hook": self.hook,
            "format": self.format,
            "caption": self.caption,
            "hashtags": list(self.hashtags),
            "fallback": self.fallback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InspirationResult":
        hashtags = data.get("hashtags") or []
        if isinstance(hashtags, str):
            hashtags = hashtags.split()
        return cls(
            hook=str(data.get("hook") or "").strip(),
            format=str(data.get("format") or "").strip(),
            caption=str(data.get("caption") or "").strip(),
            hashtags=[str(tag).strip() for tag in hashtags if str(tag).strip()],
            fallback=bool(data.get("fallback", False)),
        )


# Weights of the four evaluation scores in the overall score
SCORE_WEIGHTS = {
    "virality": 0.3,
    "clarity": 0.2,
    "persuasiveness": 0.3,
    "creativity": 0.2,
}


@dataclass
class EvaluationResult:
    """One evaluator's scores (1-10) for a piece of content"""
    evaluator: str
    virality_score: float
    clarity_score: float
    persuasiveness_score: float
    creativity_score: float
    virality_justification: str = ""
    clarity_justification: str = ""
    persuasiveness_justification: str = ""
    creativity_justification: str = ""
    needs_revision: bool = False
    improvement_suggestions: str = ""

    @property
    def overall_score(self) -> float:
        total = (
            self.virality_score * SCORE_WEIGHTS["virality"]
            + self.clarity_score * SCORE_WEIGHTS["clarity"]
            + self.persuasiveness_score * SCORE_WEIGHTS["persuasiveness"]
            + self.creativity_score * SCORE_WEIGHTS["creativity"]
        )
        return round(total, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluator": self.evaluator,
            "viralityScore": self.virality_score,
            "clarityScore": self.clarity_score,
            "persuasivenessScore": self.persuasiveness_score,
            "creativityScore": self.creativity_score,
            "overallScore": self.overall_score,
            "needsRevision": self.needs_revision,
            "improvementSuggestions": self.improvement_suggestions,
        }


@dataclass
class EvaluationPair:
    """Scores of the two independent evaluators; either may be missing"""
    chatgpt: Optional[EvaluationResult] = None
    claude: Optional[EvaluationResult] = None

    def results(self) -> List[EvaluationResult]:
        return [result for result in (self.chatgpt, self.claude) if result is not None]

    @property
    def average_score(self) -> Optional[float]:
        scores = [result.overall_score for result in self.results()]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chatgpt": self.chatgpt.to_dict() if self.chatgpt else None,
            "claude": self.claude.to_dict() if self.claude else None,
            "averageScore": self.average_score,
        }


@dataclass
class RunConfig:
    """Generation settings of one bulk run, snapshotted on the job row"""
    platforms: List[str] = field(default_factory=list)
    tones: List[str] = field(default_factory=lambda: ["friendly"])
    templates: List[str] = field(default_factory=lambda: ["short_video"])
    ai_model: str = "claude"
    webhook_url: Optional[str] = None
    generate_affiliate_links: bool = False
    affiliate_id: Optional[str] = None
    manual_affiliate_links: Dict[str, str] = field(default_factory=dict)
    use_smart_style: bool = False

    @property
    def tone(self) -> str:
        return self.tones[0] if self.tones else "friendly"

    @property
    def template(self) -> str:
        return self.templates[0] if self.templates else "short_video"

    @classmethod
    def from_job(cls, job, ai_model: Optional[str] = None) -> "RunConfig":
        """Rebuild the run configuration from a persisted BulkContentJob"""
        return cls(
            platforms=list(job.platforms or []),
            tones=list(job.tones or []) or ["friendly"],
            templates=list(job.templates or []) or ["short_video"],
            ai_model=ai_model or job.ai_model or "claude",
            webhook_url=job.webhook_url,
            generate_affiliate_links=bool(job.generate_affiliate_links),
            affiliate_id=job.affiliate_id,
            manual_affiliate_links=dict(job.manual_affiliate_links or {}),
            use_smart_style=bool(job.use_smart_style),
        )


@dataclass
class BulkJobRequest:
    """A validated bulk submission, from the API or a schedule"""
    selected_niches: List[str]
    config: RunConfig
    use_existing_products: bool = True
    product_overrides: Dict[str, str] = field(default_factory=dict)
    source: str = "manual"

    @classmethod
    def from_schema(cls, data, source: str = "manual") -> "BulkJobRequest":
        """Build from a BulkJobCreate payload"""
        return cls(
            selected_niches=list(data.selectedNiches),
            config=RunConfig(
                platforms=list(data.platforms),
                tones=list(data.tones),
                templates=list(data.templates),
                ai_model=data.aiModel,
                webhook_url=data.webhookUrl,
                generate_affiliate_links=data.generateAffiliateLinks,
                affiliate_id=data.affiliateId,
                manual_affiliate_links=dict(data.manualAffiliateLinks or {}),
                use_smart_style=data.useSmartStyle,
            ),
            use_existing_products=data.useExistingProducts,
            product_overrides=dict(data.productOverrides or {}),
            source=source,
        )


@dataclass
class GeneratedArtifact:
    """Everything produced for one work item"""
    job_id: str
    niche: str
    product_name: str
    tone: str
    template: str
    platforms: List[str]
    main_content: str
    platform_captions: Dict[str, str]
    viral_inspiration: InspirationResult
    affiliate_link: Optional[str]
    model_used: str
    generation_time_ms: int = 0
    evaluation: Optional[EvaluationPair] = None
    artifact_id: Optional[int] = None
    content_history_id: Optional[int] = None

    def history_entry(self) -> Dict[str, Any]:
        """The content-history record for this artifact"""
        return {
            "artifact_id": self.artifact_id,
            "session_id": self.job_id,
            "niche": self.niche,
            "content_type": self.template,
            "tone": self.tone,
            "product_name": self.product_name,
            "prompt_text": f"Bulk generation: {self.template} for {self.product_name} ({self.niche})",
            "output_text": self.main_content,
            "platforms_selected": list(self.platforms),
            "generated_output": {
                "content": self.main_content,
                "captions": dict(self.platform_captions),
                "hook": self.viral_inspiration.hook,
                "hashtags": list(self.viral_inspiration.hashtags),
                "affiliateLink": self.affiliate_link,
            },
            "affiliate_link": self.affiliate_link,
            "viral_inspo": self.viral_inspiration.to_dict(),
            "model_used": self.model_used,
        }

    def evaluation_text(self) -> str:
        """Content as handed to the evaluators, with niche and type context lines"""
        return f"{self.main_content}\n\nNiche: {self.niche}\nContent Type: {self.template}"
