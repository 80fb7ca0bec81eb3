"""Structured-output LLM clients.

Every marketplace request to a language model is a single rendered prompt
plus the pydantic model the answer must fill in: an ETA prediction, a list of
food suggestions, and so on. Providers only implement one attempt; retries
with error feedback live here.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from .config import BaseLLMConfig

logger = logging.getLogger(__name__)

TConfig = TypeVar("TConfig", bound=BaseLLMConfig)
TResponseModel = TypeVar("TResponseModel", bound=BaseModel)

MAX_ATTEMPTS = 3
SCHEMA_REMINDER = "Please reply with JSON that matches the required schema."


class Usage(BaseModel):
    """Token usage of one answered prompt."""

    token_count: int
    provider: str
    model: str


class StructuredOutputError(RuntimeError):
    """Raised when no attempt produced a response matching the schema."""

    def __init__(self, provider: str, schema: str, failures: list[str]):
        """Initialize with the per-attempt failure messages."""
        self.provider = provider
        self.schema = schema
        self.failures = failures
        super().__init__(
            f"{provider} gave no valid {schema} after {len(failures)} attempts: "
            + " -> ".join(failures)
        )


class ProviderClient(ABC, Generic[TConfig]):  # noqa: UP046
    """Answers prompts with validated pydantic models.

    A failed attempt, whether the API call raised or the reply did not
    validate, is reported back to the model as a follow-up user turn before
    the next attempt.
    """

    def __init__(self, config: TConfig):
        """Create a client for ``config``."""
        self.config = config
        self.provider = config.provider
        self.model = config.model
        self._semaphore = asyncio.Semaphore(config.max_concurrency)

    @abstractmethod
    async def _attempt(
        self,
        turns: list[str],
        response_format: type[TResponseModel],
        *,
        model: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> tuple[TResponseModel, Usage]:
        """Send the user turns once and validate the reply.

        Raises:
            Exception: on any API or validation failure; the message is fed back.

        """

    async def complete(
        self,
        prompt: str,
        response_format: type[TResponseModel],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> tuple[TResponseModel, Usage]:
        """Answer ``prompt`` with an instance of ``response_format``.

        Args:
            prompt: The rendered user prompt
            response_format: Pydantic model the reply must validate against
            model: Model name, the configured one by default
            temperature: Sampling temperature
            max_tokens: Output token limit

        Raises:
            StructuredOutputError: if every attempt failed.

        """
        model = model or self.model
        if not model:
            raise ValueError(f"No model configured for provider {self.provider}")

        turns = [prompt]
        failures: list[str] = []
        async with self._semaphore:
            started = time.monotonic()
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    result = await self._attempt(
                        turns,
                        response_format,
                        model=model,
                        temperature=temperature,
                        max_tokens=max_tokens,
                    )
                except Exception as e:
                    failures.append(f"attempt {attempt}: {e}")
                    turns.append(f"{e}\n{SCHEMA_REMINDER}")
                    continue

                elapsed_ms = (time.monotonic() - started) * 1000
                logger.debug(
                    f"{response_format.__name__} from {self.provider}/{model} "
                    f"in {elapsed_ms:.0f} ms, {result[1].token_count} tokens, attempt {attempt}"
                )
                return result

        logger.debug(
            f"{response_format.__name__} from {self.provider}/{model} failed: {failures}"
        )
        raise StructuredOutputError(self.provider, response_format.__name__, failures)
