"""Shoptrace simulated backend.

Configurable latency profiles, per-endpoint failure injection and an
offline switch for otherwise trivial async storefront calls.
"""

from .backend import SimulatedBackend
from .engine import ExecutionResult, OutcomeDetail, SimulatedOutcome, SimulationEngine
from .settings import SimulationSettings, SimulationSnapshot
from .types import Endpoint, ExperimentVariant, LatencyProfile

__all__ = [
    "Endpoint",
    "ExecutionResult",
    "ExperimentVariant",
    "LatencyProfile",
    "OutcomeDetail",
    "SimulatedBackend",
    "SimulatedOutcome",
    "SimulationEngine",
    "SimulationSettings",
    "SimulationSnapshot",
]
