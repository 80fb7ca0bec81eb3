"""OpenAI client using parsed chat completions."""

from typing import Any, Literal

from openai import AsyncOpenAI

from ..base import ProviderClient, TResponseModel, Usage
from ..config import BaseLLMConfig, EnvField


class OpenAIConfig(BaseLLMConfig):
    """Configuration for OpenAI provider."""

    provider: Literal["openai"] = EnvField("LLM_PROVIDER", default="openai")  # pyright: ignore[reportIncompatibleVariableOverride]
    model: str | None = EnvField("LLM_MODEL", default="gpt-4o-mini")
    api_key: str = EnvField("OPENAI_API_KEY", exclude=True)
    base_url: str | None = EnvField("OPENAI_BASE_URL", default=None)


class OpenAIClient(ProviderClient[OpenAIConfig]):
    """Asks OpenAI for a reply parsed straight into the response model."""

    def __init__(self, config: OpenAIConfig | None = None):
        """Initialize the client, reading the config from the environment if omitted."""
        config = OpenAIConfig() if config is None else OpenAIConfig.model_validate(config)
        if not config.api_key:
            raise ValueError("OpenAI API key not found. Set OPENAI_API_KEY.")
        super().__init__(config)
        self.client = AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def _attempt(
        self,
        turns: list[str],
        response_format: type[TResponseModel],
        *,
        model: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> tuple[TResponseModel, Usage]:
        """Ask once; a refusal or an unparsed reply counts as a failed attempt."""
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens

        response = await self.client.chat.completions.parse(
            model=model,
            messages=[{"role": "user", "content": turn} for turn in turns],
            response_format=response_format,
            **options,
        )

        message = response.choices[0].message
        if message.parsed is None:
            raise ValueError(message.refusal or "OpenAI returned no parsed content")
        usage = Usage(
            token_count=response.usage.total_tokens if response.usage else 0,
            provider="openai",
            model=model,
        )
        return message.parsed, usage
