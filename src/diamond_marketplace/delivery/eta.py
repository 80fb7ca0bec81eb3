"""ETA estimation for the tracked delivery.

Every cycle combines the simulated courier telemetry, a traffic descriptor
and the restaurant's historical delivery time, and asks a prediction
collaborator for an arrival estimate. The collaborator is advisory only: any
failure is answered with a fixed fallback estimate and the pipeline keeps
running.
"""

import asyncio
import json
import logging
import math
import random
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import Any

from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator

from ..errors import PredictionUnavailableError
from ..llm import LLM_PROVIDER, generate
from ..shared.models import EtaEstimate, Position

logger = logging.getLogger(__name__)

FALLBACK_MINUTES = 15
FALLBACK_REASONING = "Standard calculation applied."
FALLBACK_CONFIDENCE = 40

_CODE_FENCE = re.compile(r"```(?:json)?")


def fallback_estimate() -> EtaEstimate:
    """The fixed estimate used whenever the collaborator is unavailable."""
    return EtaEstimate(
        estimated_minutes=FALLBACK_MINUTES,
        reasoning=FALLBACK_REASONING,
        confidence_score=FALLBACK_CONFIDENCE,
        is_fallback=True,
    )


class EtaRequest(BaseModel):
    """Inputs handed to the prediction collaborator."""

    driver_position: Position
    destination_position: Position
    traffic_descriptor: str
    historical_average_minutes: float

    @computed_field  # type: ignore[misc]
    @property
    def distance(self) -> float:
        """Euclidean distance between courier and destination."""
        return self.driver_position.distance_to(self.destination_position)


class EtaPrediction(BaseModel):
    """Structured response expected from the prediction collaborator."""

    estimated_minutes: int = Field(ge=0, description="Minutes until arrival")
    reasoning: str = Field(
        min_length=1, description="Brief reasoning about the environmental impact"
    )
    confidence_score: float = Field(
        ge=0,
        le=100,
        description="0-100, how closely current data matches historical norms",
    )

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def _round_minutes(cls, value: Any) -> Any:
        if isinstance(value, float) and math.isfinite(value):
            return round(value)
        return value


class EtaPredictor(ABC):
    """Prediction collaborator interface."""

    @abstractmethod
    async def predict(self, request: EtaRequest) -> EtaPrediction | dict[str, Any] | str:
        """Return a prediction, as a model, a dict or a JSON string."""
        pass


def parse_prediction(raw: Any) -> EtaPrediction:
    """Validate a collaborator response.

    Raises:
        PredictionUnavailableError: if the payload is malformed, not JSON, or misses fields.

    """
    try:
        if isinstance(raw, EtaPrediction):
            return raw
        if isinstance(raw, BaseModel):
            return EtaPrediction.model_validate(raw.model_dump())
        if isinstance(raw, str | bytes):
            text = raw.decode() if isinstance(raw, bytes) else raw
            text = _CODE_FENCE.sub("", text).strip()
            if not text:
                raise PredictionUnavailableError("Prediction response was empty")
            return EtaPrediction.model_validate_json(text)
        return EtaPrediction.model_validate(raw)
    except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PredictionUnavailableError(f"Malformed prediction: {e}") from e


class LLMEtaPredictor(EtaPredictor):
    """Asks an LLM for a structured arrival estimate."""

    PROMPT_TEMPLATE = (
        "Predict estimated arrival time (ETA) for a luxury food delivery.\n\n"
        "TELEMETRY DATA:\n"
        "- Distance Vector: {distance:.2f} units.\n"
        "- Real-time Traffic: {traffic}.\n"
        "- Historical Average for this route: {historical:g} minutes.\n\n"
        "Provide a realistic ETA in minutes, a brief reasoning of the environmental "
        "impact, and a confidence score (0-100) based on how closely current data "
        "matches historical norms."
    )

    def __init__(
        self,
        *,
        provider: LLM_PROVIDER | None = None,
        model: str | None = None,
        temperature: float | None = None,
    ):
        """Initialize with optional provider overrides; unset values come from the environment."""
        self.provider = provider
        self.model = model
        self.temperature = temperature

    def build_prompt(self, request: EtaRequest) -> str:
        """Render the prompt for a request."""
        return self.PROMPT_TEMPLATE.format(
            distance=request.distance,
            traffic=request.traffic_descriptor,
            historical=request.historical_average_minutes,
        )

    async def predict(self, request: EtaRequest) -> EtaPrediction:
        """Call the configured LLM provider."""
        prediction, _usage = await generate(
            self.build_prompt(request),
            EtaPrediction,
            provider=self.provider,
            model=self.model,
            temperature=self.temperature,
        )
        return prediction


TRAFFIC_FACTORS: dict[str, float] = {
    "light": 0.85,
    "moderate": 1.0,
    "heavy": 1.35,
    "gridlock": 1.8,
}


class HeuristicEtaPredictor(EtaPredictor):
    """Deterministic local estimate scaled from the historical average.

    The historical duration is assumed to cover ``reference_distance`` units;
    the estimate scales with the remaining distance and a traffic factor.
    """

    def __init__(self, reference_distance: float = 110.0):
        """Initialize with the path length the historical average covers."""
        self.reference_distance = reference_distance

    async def predict(self, request: EtaRequest) -> EtaPrediction:
        """Compute the estimate locally."""
        factor = TRAFFIC_FACTORS.get(request.traffic_descriptor.strip().lower(), 1.1)
        share = min(request.distance / self.reference_distance, 1.0)
        minutes = max(1, round(request.historical_average_minutes * share * factor))
        confidence = max(10.0, 90.0 - abs(factor - 1.0) * 100)
        return EtaPrediction(
            estimated_minutes=minutes,
            reasoning=(
                f"{request.distance:.1f} units remaining in {request.traffic_descriptor.lower()} "
                f"traffic against a {request.historical_average_minutes:g} minute historical average."
            ),
            confidence_score=round(confidence, 1),
        )


class TrafficFeed(ABC):
    """Source of the current traffic descriptor."""

    @abstractmethod
    def current(self) -> str:
        """Return a short traffic descriptor such as ``"Moderate"``."""
        pass


class FixedTrafficFeed(TrafficFeed):
    """Always reports the same traffic descriptor."""

    def __init__(self, descriptor: str = "Moderate"):
        """Initialize with the descriptor to report."""
        self.descriptor = descriptor

    def current(self) -> str:
        """Return the fixed descriptor."""
        return self.descriptor


class SimulatedTrafficFeed(TrafficFeed):
    """Draws a descriptor at random on every read."""

    def __init__(
        self,
        descriptors: Sequence[str] = ("Light", "Moderate", "Heavy"),
        rng: random.Random | None = None,
    ):
        """Initialize with the descriptors to choose from."""
        self.descriptors = tuple(descriptors)
        self._rng = rng or random.Random()

    def current(self) -> str:
        """Return a randomly chosen descriptor."""
        return self._rng.choice(self.descriptors)


TelemetrySource = Callable[[], tuple[Position, Position]]


class EtaPipeline:
    """Periodically refreshes the arrival estimate of the tracked order."""

    def __init__(
        self,
        predictor: EtaPredictor,
        telemetry: TelemetrySource,
        *,
        traffic: TrafficFeed | None = None,
        historical_minutes: float = 25.0,
        interval: float = 15.0,
    ):
        """Initialize the pipeline.

        Args:
            predictor: Prediction collaborator
            telemetry: Returns ``(courier_position, destination)`` on demand
            traffic: Traffic descriptor source
            historical_minutes: Historical average delivery minutes of the restaurant
            interval: Seconds between estimates

        """
        self._predictor = predictor
        self._telemetry = telemetry
        self._traffic = traffic or FixedTrafficFeed()
        self.historical_minutes = historical_minutes
        self.interval = interval
        self.order_id: str | None = None
        self.latest: EtaEstimate | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the estimation timer is active."""
        return self._task is not None and not self._task.done()

    async def estimate(self) -> EtaEstimate:
        """Compute one estimate; never raises on collaborator failure."""
        driver_position, destination = self._telemetry()
        request = EtaRequest(
            driver_position=driver_position,
            destination_position=destination,
            traffic_descriptor=self._traffic.current(),
            historical_average_minutes=self.historical_minutes,
        )

        try:
            prediction = await self._predict(request)
        except PredictionUnavailableError as e:
            logger.warning(f"ETA prediction unavailable, using fallback: {e}")
            estimate = fallback_estimate()
        else:
            estimate = EtaEstimate(
                estimated_minutes=prediction.estimated_minutes,
                reasoning=prediction.reasoning,
                confidence_score=prediction.confidence_score,
            )

        self.latest = estimate
        return estimate

    async def _predict(self, request: EtaRequest) -> EtaPrediction:
        try:
            raw = await self._predictor.predict(request)
        except PredictionUnavailableError:
            raise
        except Exception as e:
            raise PredictionUnavailableError(
                f"Prediction collaborator failed: {e}"
            ) from e
        return parse_prediction(raw)

    def start(self, order_id: str | None = None) -> None:
        """Start the estimation timer; the first estimate is computed immediately."""
        if order_id is not None:
            self.order_id = order_id
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"eta-{self.order_id}"
        )

    async def stop(self) -> None:
        """Cancel the estimation timer and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def clear(self) -> None:
        """Forget the last estimate."""
        self.latest = None

    async def _run(self) -> None:
        while True:
            estimate = await self.estimate()
            logger.info(
                f"ETA for order {self.order_id}: {estimate.estimated_minutes} min "
                f"(confidence {estimate.confidence_score:g})"
            )
            await asyncio.sleep(self.interval)

    async def __aenter__(self) -> "EtaPipeline":
        """Start estimating."""
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Stop estimating."""
        await self.stop()
