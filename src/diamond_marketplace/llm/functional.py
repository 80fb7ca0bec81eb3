"""Provider-agnostic entry point for structured LLM answers."""

import os
from hashlib import sha256
from typing import Annotated

from pydantic import Field, TypeAdapter

from .base import ProviderClient, TResponseModel, Usage
from .clients.gemini import GeminiClient, GeminiConfig
from .clients.openai import OpenAIClient, OpenAIConfig
from .config import LLM_PROVIDER

ConcreteLLMConfigs = Annotated[
    GeminiConfig | OpenAIConfig,
    Field(discriminator="provider"),
]
ConcreteConfigAdapter: TypeAdapter[ConcreteLLMConfigs] = TypeAdapter(ConcreteLLMConfigs)

# One client per provider credential, shared by every prompt
_clients: dict[str, ProviderClient] = {}


def load_config(
    *,
    provider: LLM_PROVIDER | None = None,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> GeminiConfig | OpenAIConfig:
    """Build the provider config; unset arguments come from ``LLM_*`` variables."""
    overrides = {
        "provider": provider or os.getenv("LLM_PROVIDER", "gemini"),
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    return ConcreteConfigAdapter.validate_python(
        {k: v for k, v in overrides.items() if v is not None}
    )


def client_for(config: GeminiConfig | OpenAIConfig) -> ProviderClient:
    """Return the cached client for the config's provider and credentials."""
    key = "|".join(
        (
            config.provider,
            sha256(config.api_key.encode()).hexdigest(),
            getattr(config, "base_url", None) or "",
        )
    )
    if key not in _clients:
        match config.provider:
            case "gemini":
                _clients[key] = GeminiClient(config)
            case "openai":
                _clients[key] = OpenAIClient(config)
            case _:
                raise ValueError(f"Unsupported provider: {config.provider}")
    return _clients[key]


async def generate(
    prompt: str,
    response_format: type[TResponseModel],
    *,
    provider: LLM_PROVIDER | None = None,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> tuple[TResponseModel, Usage]:
    """Answer ``prompt`` with the configured provider.

    Raises:
        pydantic.ValidationError: if the provider config is invalid, e.g. no API key.
        StructuredOutputError: if the provider never produced a valid answer.

    """
    config = load_config(
        provider=provider, model=model, temperature=temperature, max_tokens=max_tokens
    )
    return await client_for(config).complete(
        prompt,
        response_format,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def clear_client_caches() -> None:
    """Forget every cached client."""
    _clients.clear()
