"""Gemini client using response schemas."""

import re
from typing import Literal

import google.genai as genai
import google.genai.types

from ..base import ProviderClient, TResponseModel, Usage
from ..config import BaseLLMConfig, EnvField

_CODE_FENCE = re.compile(r"```(?:json)?")


class GeminiConfig(BaseLLMConfig):
    """Configuration for Gemini provider."""

    provider: Literal["gemini"] = EnvField("LLM_PROVIDER", default="gemini")  # pyright: ignore[reportIncompatibleVariableOverride]
    model: str | None = EnvField("LLM_MODEL", default="gemini-2.5-flash")
    api_key: str = EnvField("GEMINI_API_KEY", "API_KEY", exclude=True)


class GeminiClient(ProviderClient[GeminiConfig]):
    """Asks Gemini for JSON constrained by the response model's schema."""

    def __init__(self, config: GeminiConfig | None = None):
        """Initialize the client, reading the config from the environment if omitted."""
        config = GeminiConfig() if config is None else GeminiConfig.model_validate(config)
        if not config.api_key:
            raise ValueError(
                "Gemini API key not found. Set GEMINI_API_KEY or API_KEY."
            )
        super().__init__(config)
        self.client = genai.Client(api_key=config.api_key)

    async def _attempt(
        self,
        turns: list[str],
        response_format: type[TResponseModel],
        *,
        model: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> tuple[TResponseModel, Usage]:
        """Ask once; Gemini may hand back a parsed object or only text."""
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=[
                google.genai.types.Content(
                    role="user", parts=[google.genai.types.Part(text=turn)]
                )
                for turn in turns
            ],
            config=google.genai.types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=response_format,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )

        tokens = 0
        if response.usage_metadata and response.usage_metadata.total_token_count:
            tokens = response.usage_metadata.total_token_count
        usage = Usage(token_count=tokens, provider="gemini", model=model)

        if response.parsed is not None:
            return response_format.model_validate(response.parsed), usage
        if response.text:
            text = _CODE_FENCE.sub("", response.text).strip()
            return response_format.model_validate_json(text), usage
        raise ValueError("Gemini returned no content")
