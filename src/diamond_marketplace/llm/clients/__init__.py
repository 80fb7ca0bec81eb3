"""Concrete LLM provider clients."""

from .gemini import GeminiClient, GeminiConfig
from .openai import OpenAIClient, OpenAIConfig

__all__ = ["GeminiClient", "GeminiConfig", "OpenAIClient", "OpenAIConfig"]
