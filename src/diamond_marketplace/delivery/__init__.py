"""Live delivery tracking: courier telemetry and ETA estimation."""

from .eta import (
    EtaPipeline,
    EtaPrediction,
    EtaPredictor,
    EtaRequest,
    FixedTrafficFeed,
    HeuristicEtaPredictor,
    LLMEtaPredictor,
    SimulatedTrafficFeed,
    TrafficFeed,
    fallback_estimate,
)
from .telemetry import DEFAULT_WAYPOINTS, DeliveryTelemetrySimulator
from .tracker import DeliveryTracker, select_tracked_order

__all__ = [
    "DEFAULT_WAYPOINTS",
    "DeliveryTelemetrySimulator",
    "DeliveryTracker",
    "EtaPipeline",
    "EtaPrediction",
    "EtaPredictor",
    "EtaRequest",
    "FixedTrafficFeed",
    "HeuristicEtaPredictor",
    "LLMEtaPredictor",
    "SimulatedTrafficFeed",
    "TrafficFeed",
    "fallback_estimate",
    "select_tracked_order",
]
