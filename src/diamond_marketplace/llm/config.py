"""Configuration for LLM providers.

Settings are read from environment variables so the marketplace's prediction
and suggestion features can be switched between Gemini and OpenAI without
code changes.
"""

from typing import Literal

from pydantic import BaseModel

from ..config import EnvField

LLM_PROVIDER = Literal["gemini", "openai"]


class BaseLLMConfig(BaseModel):
    """Base configuration for LLM providers."""

    provider: LLM_PROVIDER = EnvField("LLM_PROVIDER", default="gemini")
    model: str | None = EnvField("LLM_MODEL", default=None)
    temperature: float | None = EnvField("LLM_TEMPERATURE", default=None)
    max_tokens: int = EnvField("LLM_MAX_TOKENS", default=1000)
    max_concurrency: int = EnvField("LLM_MAX_CONCURRENCY", default=8)
