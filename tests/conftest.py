"""Shared pytest fixtures for all tests."""

import asyncio
import random
from typing import Generator

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from shoptrace.simulation import (
    LatencyProfile,
    SimulatedBackend,
    SimulationEngine,
    SimulationSettings,
)
from shoptrace.telemetry import InMemoryTraceCollector, SpanTracer, TelemetryConfig
from shoptrace.telemetry.client import reset_client
from shoptrace.workflows import ShopApp


class SpanCapture:
    """Helper to capture mirrored OpenTelemetry spans."""

    def __init__(self):
        self.exporter = InMemorySpanExporter()
        self.provider = TracerProvider()
        self.provider.add_span_processor(SimpleSpanProcessor(self.exporter))
        trace.set_tracer_provider(self.provider)

    def get_spans(self):
        """Get all captured spans."""
        return self.exporter.get_finished_spans()

    def get_span(self, name: str):
        """Get the single captured span with the given name."""
        matches = [span for span in self.get_spans() if span.name == name]
        assert len(matches) == 1, f"expected one {name} span, got {len(matches)}"
        return matches[0]

    def clear(self):
        """Clear captured spans."""
        self.exporter.clear()


class StubRandom(random.Random):
    """Random source whose ``random()`` always returns ``value``.

    ``uniform(a, b)`` then lands at ``a + (b - a) * value``, and every
    intrinsic-rate check compares against ``value``.
    """

    def __init__(self, value: float = 0.5):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture(scope="session")
def span_capture() -> SpanCapture:
    """Fixture to capture spans - created once for entire test session."""
    return SpanCapture()


@pytest.fixture(autouse=True)
def clear_spans_between_tests(span_capture: SpanCapture):
    """Clear captured spans before each test."""
    span_capture.clear()
    yield


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove configuration variables that would leak into defaults."""
    import os

    for name in list(os.environ):
        if name.startswith(("SHOPTRACE_", "OTEL_")):
            monkeypatch.delenv(name)
    yield
    reset_client()


# ============================================================================
# Telemetry fixtures
# ============================================================================


@pytest.fixture
def collector() -> InMemoryTraceCollector:
    return InMemoryTraceCollector()


@pytest.fixture
def tracer(
    collector: InMemoryTraceCollector, span_capture: SpanCapture
) -> SpanTracer:
    """Strict tracer exporting to the in-memory collector."""
    return SpanTracer(
        collector, strict=True, otel_tracer=span_capture.provider.get_tracer("tests")
    )


@pytest.fixture
def lenient_tracer(
    collector: InMemoryTraceCollector, span_capture: SpanCapture
) -> SpanTracer:
    """Tracer that logs instrumentation defects instead of raising."""
    return SpanTracer(
        collector, strict=False, otel_tracer=span_capture.provider.get_tracer("tests")
    )


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    return TelemetryConfig(environment="staging", release="2.4.1", build="318")


# ============================================================================
# Simulation fixtures
# ============================================================================


@pytest.fixture
def settings() -> SimulationSettings:
    return SimulationSettings(latency_profile=LatencyProfile.FAST)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rng() -> StubRandom:
    """Random source that never trips an intrinsic failure or backorder."""
    return StubRandom(0.5)


@pytest.fixture
def backend(
    settings: SimulationSettings, rng: StubRandom, sleep: SleepRecorder
) -> SimulatedBackend:
    return SimulatedBackend(
        settings, engine=SimulationEngine(settings, rng=rng), rng=rng, sleep=sleep
    )


@pytest.fixture
def app(
    settings: SimulationSettings,
    tracer: SpanTracer,
    telemetry_config: TelemetryConfig,
    rng: StubRandom,
    sleep: SleepRecorder,
) -> ShopApp:
    return ShopApp.create(
        settings=settings,
        tracer=tracer,
        config=telemetry_config,
        rng=rng,
        sleep=sleep,
    )
