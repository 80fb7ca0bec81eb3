"""Unit tests for the OpenAI client with a mocked SDK."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from diamond_marketplace.delivery import EtaPrediction
from diamond_marketplace.llm import StructuredOutputError
from diamond_marketplace.llm.clients.openai import OpenAIClient, OpenAIConfig


def _parsed_response(parsed=None, refusal=None, tokens=100):
    message = MagicMock()
    message.parsed = parsed
    message.refusal = refusal

    choice = MagicMock()
    choice.message = message

    completion = MagicMock()
    completion.choices = [choice]
    completion.usage = MagicMock()
    completion.usage.total_tokens = tokens
    return completion


class TestOpenAIClient:
    """Test suite for OpenAIClient.complete()."""

    @pytest.fixture
    def config(self) -> OpenAIConfig:
        """Test configuration with mocked API key."""
        return OpenAIConfig(
            provider="openai",
            api_key="test-api-key",
            model="gpt-4o-mini",
            temperature=0.1,
            max_tokens=200,
        )

    @pytest.fixture
    def mock_client(self, config: OpenAIConfig):
        """Create an OpenAI client with mocked internal client."""
        with patch("diamond_marketplace.llm.clients.openai.AsyncOpenAI"):
            client = OpenAIClient(config)
            client.client = MagicMock()
            yield client

    @pytest.mark.asyncio
    async def test_parse_success(self, mock_client: OpenAIClient):
        """A parsed message is returned with usage."""
        prediction = EtaPrediction(
            estimated_minutes=11, reasoning="Light traffic.", confidence_score=85
        )
        mock_client.client.chat.completions.parse = AsyncMock(
            return_value=_parsed_response(parsed=prediction, tokens=64)
        )

        result, usage = await mock_client.complete(
            "Predict the ETA", EtaPrediction, temperature=0.3
        )

        assert result == prediction
        assert usage.provider == "openai"
        assert usage.token_count == 64
        kwargs = mock_client.client.chat.completions.parse.call_args.kwargs
        assert kwargs["response_format"] is EtaPrediction
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert "max_tokens" not in kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Predict the ETA"}]

    @pytest.mark.asyncio
    async def test_refusal_is_fed_back(self, mock_client: OpenAIClient):
        """A refusal becomes a follow-up turn and the call is retried."""
        prediction = EtaPrediction(
            estimated_minutes=20, reasoning="Rain.", confidence_score=60
        )
        mock_client.client.chat.completions.parse = AsyncMock(
            side_effect=[
                _parsed_response(refusal="I cannot estimate that."),
                _parsed_response(parsed=prediction),
            ]
        )

        result, _ = await mock_client.complete("Predict the ETA", EtaPrediction)

        assert result.estimated_minutes == 20
        retry = mock_client.client.chat.completions.parse.call_args_list[1]
        assert len(retry.kwargs["messages"]) == 2
        assert "I cannot estimate that." in retry.kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise(self, mock_client: OpenAIClient):
        """Three failures raise StructuredOutputError."""
        mock_client.client.chat.completions.parse = AsyncMock(
            side_effect=Exception("rate limited")
        )

        with pytest.raises(StructuredOutputError) as exc_info:
            await mock_client.complete("Predict the ETA", EtaPrediction)

        assert "rate limited" in str(exc_info.value)
        assert exc_info.value.provider == "openai"
        assert mock_client.client.chat.completions.parse.call_count == 3

    def test_missing_api_key(self):
        """A client cannot be built without an API key."""
        with pytest.raises(ValueError):
            OpenAIClient(OpenAIConfig(provider="openai", api_key=""))
