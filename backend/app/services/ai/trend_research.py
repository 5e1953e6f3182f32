"""
Trend and viral inspiration research via the Perplexity chat completions API
"""

from typing import Any, Dict, List, Optional
import logging

import httpx

from app.core.config import settings
from app.services.ai.base import AIServiceError, ProviderError, RateLimitError, extract_json
from app.services.ai.prompts import PromptType, get_prompt
from app.services.bulk.types import InspirationResult

logger = logging.getLogger(__name__)


class TrendResearchService:
    """Looks up trending products and viral video patterns for a niche"""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key if api_key is not None else settings.PERPLEXITY_API_KEY
        self.model = model or settings.PERPLEXITY_MODEL
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._client = client
        self._owns_client = client is None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"}
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _chat(self, prompt_type: PromptType, extra: Dict[str, Any] = None, **variables) -> str:
        if not self.is_configured:
            raise AIServiceError("Perplexity API key not configured", "perplexity", self.model)

        template = get_prompt(prompt_type)
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": template.system_prompt},
                {"role": "user", "content": template.format(**variables)},
            ],
            "temperature": template.temperature,
            "max_tokens": template.max_tokens,
        }
        body.update(extra or {})

        client = await self._get_client()
        response = await client.post(
            settings.PERPLEXITY_API_URL,
            json=body,
            headers={"Authorization": f"Bearer {self.api_key}"}
        )

        if response.status_code == 429:
            raise RateLimitError("Perplexity rate limit exceeded", "perplexity", self.model)
        if response.status_code >= 400:
            raise ProviderError(
                f"Perplexity API error {response.status_code}: {response.text[:200]}",
                "perplexity",
                self.model
            )

        data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError("No content in Perplexity response", "perplexity", self.model)

    async def fetch_trending_products(self, niche: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Trending products for a niche as dicts with product, brand, mentions, reason"""
        content = await self._chat(PromptType.TRENDING_PRODUCTS, niche=niche, limit=limit)
        parsed = extract_json(content)

        if isinstance(parsed, dict):
            parsed = parsed.get("products") or []
        if not isinstance(parsed, list):
            raise AIServiceError("Unexpected trending products format", "perplexity", self.model)

        products = []
        for entry in parsed:
            if not isinstance(entry, dict) or not str(entry.get("product") or "").strip():
                continue
            try:
                mentions = int(entry.get("mentions") or 0)
            except (TypeError, ValueError):
                mentions = 0
            products.append({
                "product": str(entry["product"]).strip(),
                "brand": str(entry.get("brand") or "").strip(),
                "mentions": mentions,
                "reason": str(entry.get("reason") or "").strip(),
            })

        logger.info(f"Fetched {len(products)} trending products for niche {niche}")
        return products[:limit]

    async def fetch_viral_inspiration(self, product: str, niche: str) -> Optional[InspirationResult]:
        """Hook, format, caption and hashtags of recent viral videos about the product"""
        content = await self._chat(
            PromptType.VIRAL_INSPIRATION,
            extra={"search_recency_filter": "month"},
            product=product,
            niche=niche
        )
        parsed = extract_json(content)
        if not isinstance(parsed, dict):
            return None
        return InspirationResult.from_dict(parsed)
