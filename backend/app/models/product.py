"""
Trending product catalog used when selecting bulk work items.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func
from app.db.session import Base


class TrendingProduct(Base):
    """A product observed trending in one niche"""
    __tablename__ = "trending_products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    niche = Column(String, nullable=False, index=True)
    mentions = Column(Integer, default=0)
    insight = Column(Text)  # why it is trending
    source = Column(String, default="perplexity")  # perplexity, manual, seed
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_trending_niche_created', 'niche', 'created_at'),
    )
