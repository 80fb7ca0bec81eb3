"""Structured-output LLM clients behind the marketplace's prediction and suggestion features."""

from .base import ProviderClient, StructuredOutputError, Usage
from .config import LLM_PROVIDER, BaseLLMConfig
from .functional import clear_client_caches, generate

__all__ = [
    "LLM_PROVIDER",
    "BaseLLMConfig",
    "ProviderClient",
    "StructuredOutputError",
    "Usage",
    "clear_client_caches",
    "generate",
]
