"""
AI Services Package

LLM providers (OpenAI, Anthropic), Perplexity trend research and
dual-model content evaluation used by the bulk generation pipeline.
"""
