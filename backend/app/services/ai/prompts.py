"""
AI Prompt Templates

Prompt templates used by the bulk generation pipeline: trend research,
viral inspiration research, main content, platform captions and content
evaluation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class PromptType(str, Enum):
    """Types of prompts"""
    TRENDING_PRODUCTS = "trending_products"
    VIRAL_INSPIRATION = "viral_inspiration"
    CONTENT_GENERATION = "content_generation"
    PLATFORM_CAPTION = "platform_caption"
    CONTENT_EVALUATION = "content_evaluation"


@dataclass
class PromptTemplate:
    """Prompt template with its generation parameters"""
    name: str
    template: str
    variables: List[str]
    max_tokens: int = 1000
    temperature: float = 0.7
    system_prompt: str = ""

    def format(self, **kwargs) -> str:
        missing = [var for var in self.variables if var not in kwargs]
        if missing:
            raise ValueError(f"Missing required variable: {missing[0]}")
        return self.template.format(**kwargs)


PROMPTS: Dict[PromptType, PromptTemplate] = {
    PromptType.TRENDING_PRODUCTS: PromptTemplate(
        name="trending_products",
        template=(
            "List the {limit} most talked-about {niche} products on TikTok and Instagram "
            "right now. Respond with a JSON array only, each element shaped as "
            '{{"product": "<name>", "brand": "<brand>", "mentions": <estimated mentions>, '
            '"reason": "<why it is trending>"}}.'
        ),
        variables=["niche", "limit"],
        max_tokens=800,
        temperature=0.2,
        system_prompt="You are a social commerce trend researcher. Answer with valid JSON only."
    ),
    PromptType.VIRAL_INSPIRATION: PromptTemplate(
        name="viral_inspiration",
        template=(
            "Find recent viral TikTok or Instagram videos about \"{product}\" in the {niche} niche. "
            "Summarize what made them work as a JSON object only: "
            '{{"hook": "<opening line>", "format": "<video format>", '
            '"caption": "<example caption>", "hashtags": ["#tag", ...]}}.'
        ),
        variables=["product", "niche"],
        max_tokens=600,
        temperature=0.2,
        system_prompt="You research viral social media content. Answer with valid JSON only."
    ),
    PromptType.CONTENT_GENERATION: PromptTemplate(
        name="content_generation",
        template=(
            "Write a {template} for the product \"{product}\" in the {niche} niche.\n"
            "Tone: {tone}.\n"
            "{reason_line}"
            "Viral inspiration to build on:\n"
            "- Hook: {hook}\n"
            "- Format: {format}\n"
            "- Example caption: {caption}\n"
            "- Hashtags: {hashtags}\n\n"
            "Return only the content, no preamble."
        ),
        variables=["template", "product", "niche", "tone", "reason_line", "hook", "format", "caption", "hashtags"],
        max_tokens=1200,
        temperature=0.8,
        system_prompt="You are an expert social media copywriter for product marketing."
    ),
    PromptType.PLATFORM_CAPTION: PromptTemplate(
        name="platform_caption",
        template=(
            "Write a {platform} caption for \"{product}\" ({niche}).\n"
            "Base it on this content:\n{content}\n\n"
            "Open with a hook inspired by: {hook}\n"
            "Use a {platform} style call to action and include relevant hashtags such as {hashtags}.\n"
            "Return only the caption."
        ),
        variables=["platform", "product", "niche", "content", "hook", "hashtags"],
        max_tokens=400,
        temperature=0.8,
        system_prompt="You write platform-native social media captions."
    ),
    PromptType.CONTENT_EVALUATION: PromptTemplate(
        name="content_evaluation",
        template=(
            "You are an expert content evaluator for social media marketing. "
            "Evaluate the following content on a scale of 1-10 for each metric.\n\n"
            "CONTENT TO EVALUATE:\n{content}\n\n"
            "1. VIRALITY: how likely the content is to be shared.\n"
            "2. CLARITY: how clear and easy to understand it is.\n"
            "3. PERSUASIVENESS: how compelling it is for driving action.\n"
            "4. CREATIVITY: how original the approach is.\n\n"
            "Respond with JSON only:\n"
            '{{"viralityScore": <1-10>, "clarityScore": <1-10>, "persuasivenessScore": <1-10>, '
            '"creativityScore": <1-10>, "viralityJustification": "<text>", '
            '"clarityJustification": "<text>", "persuasivenessJustification": "<text>", '
            '"creativityJustification": "<text>", "needsRevision": <true/false>, '
            '"improvementSuggestions": "<numbered list of 3-5 improvements>"}}'
        ),
        variables=["content"],
        max_tokens=1500,
        temperature=0.3,
        system_prompt="You are an expert content evaluator. Always respond with valid JSON."
    ),
}


def get_prompt(prompt_type: PromptType) -> PromptTemplate:
    return PROMPTS[prompt_type]
