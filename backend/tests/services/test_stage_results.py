import asyncio

import pytest

from app.services.bulk.fallbacks import (
    AFFILIATE_DISCLOSURE,
    affiliate_link_for,
    fallback_caption,
    fallback_captions,
    fallback_content,
    fallback_inspiration,
    fallback_product,
    niche_hashtag
)
from app.services.bulk.results import ErrorType, StageError, StageResult, attempt, classify_error
from app.services.bulk.types import PipelineStage, RunConfig, SourceReason


@pytest.mark.unit
class TestStageResult:
    """Test the stage result combinators."""

    def test_ok_keeps_value(self):
        result = StageResult.ok("script").or_else(lambda: "fallback")
        assert result.is_ok
        assert result.value == "script"
        assert result.fallback_used is False

    def test_error_falls_back_and_keeps_error(self):
        error = StageError(stage=PipelineStage.CONTENT, message="provider down")
        result = StageResult.err(error).or_else(lambda: "fallback")

        assert result.value == "fallback"
        assert result.error is error
        assert result.fallback_used is True

    def test_ensure_turns_unusable_value_into_empty_result(self):
        """Test that an empty answer falls back without recording an error."""
        result = StageResult.ok("   ").ensure(lambda text: bool(text.strip()))
        assert not result.is_ok
        assert result.error is None

        result = result.or_else(lambda: "fallback")
        assert result.value == "fallback"
        assert result.error is None

    def test_none_value_is_not_ok(self):
        assert StageResult.ok(None).is_ok is False


@pytest.mark.unit
class TestAttempt:
    """Test running external calls under a timeout."""

    async def test_attempt_success(self):
        async def call(product, niche=None):
            return f"{product}/{niche}"

        result = await attempt(PipelineStage.CONTENT, call, "Serum", niche="beauty", timeout=1)
        assert result.value == "Serum/beauty"

    async def test_attempt_captures_exception(self):
        async def call():
            raise RuntimeError("connection reset by peer")

        result = await attempt(PipelineStage.INSPIRATION, call, timeout=1)

        assert result.value is None
        assert result.error.stage == PipelineStage.INSPIRATION
        assert result.error.message == "connection reset by peer"

    async def test_attempt_times_out(self):
        async def call():
            await asyncio.sleep(5)

        result = await attempt(PipelineStage.WEBHOOK, call, timeout=0.05)

        assert result.error.error_type == ErrorType.TIMEOUT_ERROR
        assert result.error.message == "webhook timed out"

    def test_log_entry(self):
        error = StageError(stage=PipelineStage.CAPTIONS, message="bad", error_type=ErrorType.RATE_LIMIT_ERROR)
        entry = error.to_log_entry("tech")

        assert entry["item"] == "tech"
        assert entry["stage"] == "captions"
        assert entry["message"] == "bad"
        assert entry["errorType"] == "rate_limit_error"
        assert "time" in entry

    @pytest.mark.parametrize("error,expected", [
        (asyncio.TimeoutError(), ErrorType.TIMEOUT_ERROR),
        (Exception("429 Too Many Requests"), ErrorType.RATE_LIMIT_ERROR),
        (Exception("Invalid API key"), ErrorType.AUTHENTICATION_ERROR),
        (Exception("Service Unavailable (503)"), ErrorType.SERVICE_UNAVAILABLE),
        (Exception("something odd"), ErrorType.UNKNOWN_ERROR),
    ])
    def test_classify_error(self, error, expected):
        assert classify_error(error) == expected


@pytest.mark.unit
class TestFallbacks:
    """Test deterministic fallbacks."""

    def test_fallback_product(self):
        item = fallback_product("skincare")
        assert item.product_name == "Trending Skincare Product"
        assert item.source_reason == SourceReason.STATIC_FALLBACK
        assert item.niche == "skincare"

    def test_fallback_inspiration_is_complete(self):
        inspiration = fallback_inspiration("LED Mask", "beauty")
        assert inspiration.is_complete()
        assert inspiration.fallback is True
        assert "LED Mask" in inspiration.hook
        assert "#beauty" in inspiration.hashtags

    def test_fallback_content_mentions_product_and_niche(self):
        inspiration = fallback_inspiration("LED Mask", "beauty")
        content = fallback_content("LED Mask", "beauty", "friendly", "short_video", inspiration)

        assert content.strip()
        assert "LED Mask" in content
        assert "beauty" in content
        assert "friendly" in content

    def test_fallback_captions_cover_every_platform(self):
        inspiration = fallback_inspiration("Air Fryer", "food")
        captions = fallback_captions(["tiktok", "instagram", "pinterest"], "Air Fryer", "food", inspiration)

        assert set(captions) == {"tiktok", "instagram", "pinterest"}
        assert all(caption.strip() for caption in captions.values())
        assert "link in my bio" in captions["tiktok"]

    def test_fallback_caption_with_affiliate_link(self):
        inspiration = fallback_inspiration("Air Fryer", "food")
        caption = fallback_caption("youtube", "Air Fryer", "food", inspiration, "https://amzn.to/x")

        assert "https://amzn.to/x" in caption
        assert AFFILIATE_DISCLOSURE in caption

    def test_niche_hashtag(self):
        assert niche_hashtag("Home Decor") == "#homedecor"

    def test_affiliate_links(self):
        assert affiliate_link_for("Air Fryer", "food", RunConfig()) is None

        config = RunConfig(generate_affiliate_links=True, affiliate_id="glow-20")
        assert affiliate_link_for("Air Fryer", "food", config) == "https://www.amazon.com/s?k=Air+Fryer&tag=glow-20"

        config.manual_affiliate_links = {"food": "https://example.com/fryer"}
        assert affiliate_link_for("Air Fryer", "food", config) == "https://example.com/fryer"
