"""
Webhook dispatcher

Builds one payload per platform for a generated artifact and POSTs it to the
downstream automation webhook (Make.com style). Delivery reports success as a
boolean; transport failures and non-2xx answers are logged and reported as
False.
"""

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.http_client import HTTPClientConfig, UnifiedHTTPClient, encode_json
from app.services.bulk.types import GeneratedArtifact, RunConfig

logger = logging.getLogger(__name__)

EVENT_CONTENT_GENERATED = "content_generated"
SIGNATURE_HEADER = "X-GlowBot-Signature"


def sign_payload(payload: Dict[str, Any], secret: str) -> str:
    body = encode_json(payload)
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _scores(prefix: str, result) -> Dict[str, Any]:
    if result is None:
        return {}
    return {
        f"{prefix}Virality": result.virality_score,
        f"{prefix}Clarity": result.clarity_score,
        f"{prefix}Persuasiveness": result.persuasiveness_score,
        f"{prefix}Creativity": result.creativity_score,
        f"{prefix}Overall": result.overall_score,
    }


def build_platform_payload(
    job_id: str,
    artifact: GeneratedArtifact,
    platform: str,
    config: RunConfig,
    event_type: str = EVENT_CONTENT_GENERATED
) -> Dict[str, Any]:
    """Logical webhook fields for one platform of one artifact"""
    inspiration = artifact.viral_inspiration
    payload = {
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "jobId": job_id,
        "contentId": artifact.artifact_id,
        "niche": artifact.niche,
        "product": artifact.product_name,
        "tone": artifact.tone,
        "template": artifact.template,
        "platform": platform,
        "platforms": list(artifact.platforms),
        "model": artifact.model_used,
        "script": artifact.main_content,
        "caption": artifact.platform_captions.get(platform, ""),
        "affiliateLink": artifact.affiliate_link or "",
        "affiliateId": config.affiliate_id or settings.DEFAULT_AFFILIATE_ID,
        "postType": f"{artifact.niche}_{artifact.template}",
        "topRatedStyleUsed": config.use_smart_style,
        "viralHook": inspiration.hook,
        "viralFormat": inspiration.format,
        "viralCaption": inspiration.caption,
        "viralHashtags": " ".join(inspiration.hashtags),
        "viralInspirationFound": not inspiration.fallback,
    }

    if artifact.evaluation is not None:
        payload.update(_scores("chatgpt", artifact.evaluation.chatgpt))
        payload.update(_scores("claude", artifact.evaluation.claude))
        payload["averageScore"] = artifact.evaluation.average_score

    return payload


class WebhookDispatcher:
    """Delivers webhook payloads over HTTP"""

    def __init__(
        self,
        timeout: float = None,
        secret: str = None,
        client: Optional[UnifiedHTTPClient] = None
    ):
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT
        self.secret = secret if secret is not None else settings.WEBHOOK_HMAC_SECRET
        self.client = client or UnifiedHTTPClient(
            HTTPClientConfig(timeout=self.timeout, user_agent=settings.WEBHOOK_USER_AGENT)
        )

    async def close(self) -> None:
        await self.client.close()

    async def deliver(self, url: str, payload: Dict[str, Any]) -> bool:
        headers = {}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_payload(payload, self.secret)

        label = f"{payload.get('product')} ({payload.get('platform')})"
        try:
            response = await self.client.post_json(url, payload, headers=headers)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Webhook error for {label}: {e}")
            return False

        if 200 <= response.status_code < 300:
            logger.info(f"Webhook delivered for {label}")
            return True

        logger.error(f"Webhook failed for {label} with status {response.status_code}: {response.text[:200]}")
        return False
