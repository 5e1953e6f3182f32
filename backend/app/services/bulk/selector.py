"""
Work-item selection

Resolves exactly one product per requested niche, trying in order: the
caller's previewed override, a fresh trend lookup, the newest stored trending
product, and finally a synthetic product. Selection never fails for a niche.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.db.session import SessionLocal
from app.models.product import TrendingProduct
from app.services.bulk.fallbacks import fallback_product
from app.services.bulk.types import SourceReason, WorkItemSpec

logger = logging.getLogger(__name__)


class WorkItemSelector:
    def __init__(self, session_factory=SessionLocal, research_service=None, timeout: float = None):
        self.session_factory = session_factory
        self.research_service = research_service
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT

    async def select(
        self,
        niches: List[str],
        overrides: Optional[Dict[str, str]] = None,
        use_existing_products: bool = True
    ) -> Dict[str, WorkItemSpec]:
        """Map each distinct niche, in request order, to its work item"""
        overrides = overrides or {}
        items: Dict[str, WorkItemSpec] = {}

        for niche in niches:
            if niche in items:
                continue

            override = (overrides.get(niche) or "").strip()
            if override:
                items[niche] = WorkItemSpec(
                    niche=niche,
                    product_name=override,
                    source_reason=SourceReason.PREVIEWED,
                    reason="Selected in preview"
                )
                continue

            item = None
            if not use_existing_products:
                item = await self._fresh_fetch(niche)
            if item is None:
                item = self._stored_product(niche)
            if item is None:
                item = fallback_product(niche)

            logger.info(f"Selected '{item.product_name}' for niche {niche} ({item.source_reason.value})")
            items[niche] = item

        return items

    async def _fresh_fetch(self, niche: str) -> Optional[WorkItemSpec]:
        if self.research_service is None or not getattr(self.research_service, "is_configured", True):
            return None

        try:
            products = await asyncio.wait_for(
                self.research_service.fetch_trending_products(niche),
                timeout=self.timeout
            )
        except Exception as e:
            logger.warning(f"Fresh product fetch failed for niche {niche}: {e}")
            return None

        if not products:
            logger.warning(f"Fresh product fetch returned nothing for niche {niche}")
            return None

        self._store_products(niche, products)
        top = max(products, key=lambda product: product.get("mentions") or 0)
        return WorkItemSpec(
            niche=niche,
            product_name=top["product"],
            source_reason=SourceReason.FRESH_FETCH,
            brand=top.get("brand") or "",
            mentions=top.get("mentions"),
            reason=top.get("reason") or ""
        )

    def _stored_product(self, niche: str) -> Optional[WorkItemSpec]:
        db = self.session_factory()
        try:
            product = (
                db.query(TrendingProduct)
                .filter(TrendingProduct.niche == niche)
                .order_by(TrendingProduct.created_at.desc(), TrendingProduct.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            logger.warning(f"Stored product lookup failed for niche {niche}: {e}")
            return None
        finally:
            db.close()

        if product is None:
            return None
        return WorkItemSpec(
            niche=niche,
            product_name=product.title,
            source_reason=SourceReason.DB_FALLBACK,
            mentions=product.mentions,
            reason=product.insight or ""
        )

    def _store_products(self, niche: str, products: List[dict]) -> None:
        """Keep fetched products as fallbacks for later runs"""
        db = self.session_factory()
        try:
            for product in products:
                db.add(TrendingProduct(
                    title=product["product"],
                    niche=niche,
                    mentions=product.get("mentions") or 0,
                    insight=product.get("reason") or None,
                    source="perplexity"
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not store fetched products for niche {niche}: {e}")
        finally:
            db.close()
