from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Float, JSON, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.session import Base

class BulkGeneratedContent(Base):
    __tablename__ = "bulk_generated_content"

    id = Column(Integer, primary_key=True, index=True)
    bulk_job_id = Column(String, ForeignKey("bulk_content_jobs.job_id"), nullable=False, index=True)
    product_name = Column(String, nullable=False)
    niche = Column(String, nullable=False, index=True)
    tone = Column(String)
    template = Column(String)
    platforms = Column(JSON)  # ["tiktok", "instagram"]

    main_content = Column(Text, nullable=False)
    platform_captions = Column(JSON)  # {"tiktok": "...", "instagram": "..."}
    viral_inspiration = Column(JSON)
    affiliate_link = Column(String)
    evaluation_scores = Column(JSON)  # {"chatgpt": {...} | None, "claude": {...} | None}
    content_history_id = Column(Integer, ForeignKey("content_history.id"), nullable=True)

    model_used = Column(String)
    generation_time_ms = Column(Integer)
    status = Column(String, default="completed")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ContentHistory(Base):
    __tablename__ = "content_history"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, index=True)
    niche = Column(String, index=True)
    content_type = Column(String)  # template used
    tone = Column(String)
    product_name = Column(String)
    prompt_text = Column(Text)
    output_text = Column(Text)
    platforms_selected = Column(JSON)
    generated_output = Column(JSON)
    affiliate_link = Column(String)
    viral_inspo = Column(JSON)
    model_used = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    evaluations = relationship("ContentEvaluation", back_populates="content_history")

class ContentEvaluation(Base):
    __tablename__ = "content_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    content_history_id = Column(Integer, ForeignKey("content_history.id"), nullable=False, index=True)
    evaluator_model = Column(String, nullable=False)  # chatgpt, claude

    virality_score = Column(Float)
    clarity_score = Column(Float)
    persuasiveness_score = Column(Float)
    creativity_score = Column(Float)
    virality_justification = Column(Text)
    clarity_justification = Column(Text)
    persuasiveness_justification = Column(Text)
    creativity_justification = Column(Text)
    needs_revision = Column(Boolean, default=False)
    improvement_suggestions = Column(Text)
    overall_score = Column(Float)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    content_history = relationship("ContentHistory", back_populates="evaluations")
