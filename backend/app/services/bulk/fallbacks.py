"""
Deterministic fallbacks for the per-item pipeline

Pure functions of product, niche and inspiration. They never fail, so a work
item always ends with usable content even when every external call failed.
"""

import re
from typing import Dict, List, Optional
from urllib.parse import quote_plus

from app.core.config import settings
from app.services.bulk.types import InspirationResult, RunConfig, SourceReason, WorkItemSpec

PLATFORM_CTAS = {
    "tiktok": "🛒 Tap the link in my bio to grab yours!",
    "instagram": "🛍️ Link in bio to shop!",
    "youtube": "🔗 Full details and links in the description.",
    "twitter": "🛒 Grab it here 👇",
    "facebook": "👉 Shop now using the link below!",
}
DEFAULT_CTA = "Shop now and see why everyone is talking about it!"

AFFILIATE_DISCLOSURE = "As an Amazon Associate I earn from qualifying purchases."


def niche_hashtag(niche: str) -> str:
    return "#" + re.sub(r"[^0-9a-zA-Z]", "", niche.lower())


def fallback_product(niche: str) -> WorkItemSpec:
    """Synthetic product used when no source can name one"""
    return WorkItemSpec(
        niche=niche,
        product_name=f"Trending {niche.title()} Product",
        source_reason=SourceReason.STATIC_FALLBACK,
        reason=f"Popular pick in the {niche} niche",
    )


def fallback_inspiration(product: str, niche: str) -> InspirationResult:
    return InspirationResult(
        hook=f"Check out this amazing {product} that's taking {niche} by storm!",
        format="Product showcase with before/after or demo shots",
        caption=f"🔥 {product} is trending for a reason! Perfect for {niche} lovers.",
        hashtags=[niche_hashtag(niche), "#trending", "#viral", "#musthave"],
        fallback=True,
    )


def fallback_content(product: str, niche: str, tone: str, template: str,
                     inspiration: InspirationResult) -> str:
    return (
        f"{inspiration.hook}\n\n"
        f"{product} is one of the most talked-about {niche} products right now. "
        f"It is easy to use, fits into any {niche} routine and the results speak for themselves.\n\n"
        f"Script ({template}, {tone} tone):\n"
        f"1. Hook: {inspiration.hook}\n"
        f"2. Show {product} in action ({inspiration.format.lower()}).\n"
        f"3. Share the one result that surprised you most.\n"
        f"4. Call to action: grab {product} before it sells out.\n\n"
        f"{' '.join(inspiration.hashtags)}"
    )


def fallback_caption(platform: str, product: str, niche: str,
                     inspiration: InspirationResult, affiliate_link: Optional[str] = None) -> str:
    cta = PLATFORM_CTAS.get(platform.lower(), DEFAULT_CTA)
    parts = [
        inspiration.hook,
        f"{product} is a must-have for anyone into {niche}.",
        cta,
    ]
    if affiliate_link:
        parts.append(affiliate_link)
        parts.append(AFFILIATE_DISCLOSURE)
    parts.append(" ".join(inspiration.hashtags))
    return "\n\n".join(part for part in parts if part)


def fallback_captions(platforms: List[str], product: str, niche: str,
                      inspiration: InspirationResult, affiliate_link: Optional[str] = None) -> Dict[str, str]:
    return {
        platform: fallback_caption(platform, product, niche, inspiration, affiliate_link)
        for platform in platforms
    }


def amazon_affiliate_link(product: str, affiliate_id: str) -> str:
    return f"https://www.amazon.com/s?k={quote_plus(product)}&tag={affiliate_id}"


def affiliate_link_for(product: str, niche: str, config: RunConfig) -> Optional[str]:
    """Manual link for the niche if given, else an Amazon search link; None when disabled"""
    if not config.generate_affiliate_links:
        return None
    manual = (config.manual_affiliate_links or {}).get(niche)
    if manual:
        return manual
    return amazon_affiliate_link(product, config.affiliate_id or settings.DEFAULT_AFFILIATE_ID)
