"""Tests for the ETA estimation pipeline and its predictors."""

import asyncio
import random
from unittest.mock import AsyncMock, patch

import pytest

from diamond_marketplace.delivery import (
    EtaPipeline,
    EtaPrediction,
    EtaPredictor,
    EtaRequest,
    FixedTrafficFeed,
    HeuristicEtaPredictor,
    LLMEtaPredictor,
    SimulatedTrafficFeed,
    fallback_estimate,
)
from diamond_marketplace.delivery.eta import parse_prediction
from diamond_marketplace.errors import PredictionUnavailableError
from diamond_marketplace.llm import StructuredOutputError, Usage
from diamond_marketplace.shared.models import Position

COURIER = Position(x=15, y=85)
DESTINATION = Position(x=80, y=15)


def _telemetry():
    return COURIER, DESTINATION


class RaisingPredictor(EtaPredictor):
    """Predictor that always fails."""

    async def predict(self, request):
        """Raise a transport-style error."""
        raise ConnectionError("prediction service down")


def _request(traffic: str = "Moderate") -> EtaRequest:
    return EtaRequest(
        driver_position=COURIER,
        destination_position=DESTINATION,
        traffic_descriptor=traffic,
        historical_average_minutes=25,
    )


class TestParsePrediction:
    """Tests for validating collaborator payloads."""

    def test_valid_dict(self):
        """A well-formed dict is accepted."""
        prediction = parse_prediction(
            {"estimated_minutes": 18, "reasoning": "Rush hour.", "confidence_score": 70}
        )
        assert prediction.estimated_minutes == 18

    def test_fenced_json_string(self):
        """JSON wrapped in markdown code fences is accepted."""
        raw = '```json\n{"estimated_minutes": 9.6, "reasoning": "Clear.", "confidence_score": 91}\n```'
        prediction = parse_prediction(raw)
        assert prediction.estimated_minutes == 10
        assert prediction.confidence_score == 91

    @pytest.mark.parametrize(
        "raw",
        [
            "the courier is close",
            "",
            '{"estimated_minutes": 12}',
            {"estimated_minutes": 12, "reasoning": "ok", "confidence_score": 140},
            {"estimated_minutes": -3, "reasoning": "ok", "confidence_score": 50},
            {"estimated_minutes": 12, "reasoning": "", "confidence_score": 50},
            None,
        ],
    )
    def test_malformed_payloads(self, raw):
        """Anything off-schema becomes PredictionUnavailableError."""
        with pytest.raises(PredictionUnavailableError):
            parse_prediction(raw)


class TestEtaPipeline:
    """Tests for EtaPipeline."""

    @pytest.mark.asyncio
    async def test_throwing_collaborator_yields_fallback(self):
        """A failing collaborator is answered with the fixed fallback."""
        pipeline = EtaPipeline(RaisingPredictor(), _telemetry)

        estimate = await pipeline.estimate()

        assert estimate.estimated_minutes == 15
        assert estimate.confidence_score == 40
        assert estimate.reasoning
        assert estimate.is_fallback
        assert pipeline.latest == estimate

    @pytest.mark.asyncio
    async def test_malformed_response_yields_fallback(self, static_predictor):
        """Non-JSON payloads are treated like failures."""
        static_predictor.payload = "definitely not json"
        pipeline = EtaPipeline(static_predictor, _telemetry)
        assert await pipeline.estimate() == fallback_estimate()

    @pytest.mark.asyncio
    async def test_valid_prediction_is_used(self, static_predictor):
        """A valid prediction becomes the latest estimate."""
        pipeline = EtaPipeline(
            static_predictor,
            _telemetry,
            traffic=FixedTrafficFeed("Heavy"),
            historical_minutes=30,
        )
        estimate = await pipeline.estimate()

        assert estimate.estimated_minutes == 12
        assert not estimate.is_fallback
        request = static_predictor.requests[0]
        assert request.traffic_descriptor == "Heavy"
        assert request.historical_average_minutes == 30
        assert request.distance == pytest.approx(COURIER.distance_to(DESTINATION))

    @pytest.mark.asyncio
    async def test_first_estimate_runs_on_start(self, static_predictor):
        """Starting computes an estimate immediately, then on the interval."""
        pipeline = EtaPipeline(static_predictor, _telemetry, interval=10)
        async with pipeline:
            await asyncio.sleep(0.02)
            assert pipeline.latest is not None
            assert len(static_predictor.requests) == 1
        assert not pipeline.is_running

    @pytest.mark.asyncio
    async def test_keeps_running_through_failures(self):
        """Repeated failures never stop the timer."""
        predictor = RaisingPredictor()
        pipeline = EtaPipeline(predictor, _telemetry, interval=0.01)
        pipeline.start("DIAMOND-TEST01")
        await asyncio.sleep(0.05)
        assert pipeline.is_running
        assert pipeline.order_id == "DIAMOND-TEST01"
        assert pipeline.latest.is_fallback
        await pipeline.stop()

    @pytest.mark.asyncio
    async def test_clear_forgets_latest(self, static_predictor):
        """clear() drops the last estimate."""
        pipeline = EtaPipeline(static_predictor, _telemetry)
        await pipeline.estimate()
        pipeline.clear()
        assert pipeline.latest is None


class TestHeuristicEtaPredictor:
    """Tests for the local heuristic predictor."""

    @pytest.mark.asyncio
    async def test_scales_with_traffic(self):
        """Heavier traffic never produces a shorter estimate."""
        predictor = HeuristicEtaPredictor()
        light = await predictor.predict(_request("Light"))
        heavy = await predictor.predict(_request("Heavy"))
        assert heavy.estimated_minutes >= light.estimated_minutes
        assert heavy.confidence_score < light.confidence_score

    @pytest.mark.asyncio
    async def test_arrived_courier_gets_minimum(self):
        """Zero distance still yields at least one minute."""
        request = _request().model_copy(update={"driver_position": DESTINATION})
        prediction = await HeuristicEtaPredictor().predict(request)
        assert prediction.estimated_minutes == 1
        assert prediction.reasoning


class TestLLMEtaPredictor:
    """Tests for the LLM-backed predictor with a mocked provider."""

    def test_prompt_contains_telemetry(self):
        """The prompt carries distance, traffic and historical average."""
        prompt = LLMEtaPredictor().build_prompt(_request("Heavy"))
        assert "Heavy" in prompt
        assert "25 minutes" in prompt
        assert f"{COURIER.distance_to(DESTINATION):.2f}" in prompt

    @pytest.mark.asyncio
    async def test_predict_uses_structured_output(self):
        """predict() asks generate() for an EtaPrediction."""
        prediction = EtaPrediction(
            estimated_minutes=22, reasoning="Stadium traffic.", confidence_score=55
        )
        usage = Usage(token_count=42, provider="gemini", model="gemini-2.5-flash")
        with patch(
            "diamond_marketplace.delivery.eta.generate",
            new=AsyncMock(return_value=(prediction, usage)),
        ) as mock_generate:
            result = await LLMEtaPredictor(provider="gemini").predict(_request())

        assert result == prediction
        assert mock_generate.call_args.args[1] is EtaPrediction
        assert mock_generate.call_args.kwargs["provider"] == "gemini"

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self):
        """Errors from the LLM layer end in the fallback estimate."""
        with patch(
            "diamond_marketplace.delivery.eta.generate",
            new=AsyncMock(
                side_effect=StructuredOutputError("gemini", "EtaPrediction", ["attempt 1: 503"])
            ),
        ):
            pipeline = EtaPipeline(LLMEtaPredictor(), _telemetry)
            estimate = await pipeline.estimate()
        assert estimate.is_fallback


class TestTrafficFeeds:
    """Tests for traffic descriptor sources."""

    def test_simulated_feed_is_seedable(self):
        """A seeded feed draws from the given descriptors."""
        feed = SimulatedTrafficFeed(("Light", "Heavy"), rng=random.Random(3))
        draws = {feed.current() for _ in range(20)}
        assert draws <= {"Light", "Heavy"}
