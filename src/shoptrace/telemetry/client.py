"""OpenTelemetry client for shoptrace telemetry.

This module wires the OpenTelemetry TracerProvider (resource attributes,
console or OTLP export) to a :class:`~shoptrace.telemetry.tracer.SpanTracer`
and owns their lifecycle.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)

from .. import __version__
from .config import TelemetryConfig
from .export import LoggingTraceCollector
from .tracer import INSTRUMENTING_MODULE_NAME, SpanTracer

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

    from .export import TraceCollector

logger = logging.getLogger(__name__)

DEFAULT_SDK_NAME = "shoptrace"
DEFAULT_SDK_LANGUAGE = "python"

_client: TelemetryClient | None = None
_client_lock = threading.Lock()


class TelemetryClient:
    """Telemetry client with shoptrace-specific configuration.

    Handles TracerProvider setup, resource attributes, span processors,
    the span tracer and lifecycle management (shutdown/flush).
    """

    def __init__(
        self,
        config: TelemetryConfig,
        collector: TraceCollector | None = None,
    ) -> None:
        """Initialize telemetry client with configuration.

        Args:
            config: Client configuration
            collector: Receiver of completed span trees (defaults to logging)
        """
        self._config = config
        self._collector = collector or LoggingTraceCollector(level=logging.DEBUG)
        self._provider: TracerProvider | None = None
        self._owns_provider = False
        self._otel_tracer: Tracer | None = None
        self._is_shutdown = False

        # Initialize if any exporter is configured (either OTLP or console)
        if config.endpoint or config.enable_console_export:
            self._initialize()

        self._tracer = SpanTracer(
            self._collector,
            strict=bool(config.strict_instrumentation),
            otel_tracer=self._otel_tracer,
        )

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    def _initialize(self) -> None:
        """Initialize OpenTelemetry TracerProvider and processors."""
        existing_provider = trace.get_tracer_provider()

        if isinstance(existing_provider, TracerProvider):
            logger.info(
                "Reusing existing global TracerProvider (e.g., from test fixture)"
            )
            self._provider = existing_provider
        else:
            resource_attrs = {
                "service.name": self._config.service_name,
                "service.version": self._config.release,
                "deployment.environment": self._config.environment,
                "telemetry.sdk.name": DEFAULT_SDK_NAME,
                "telemetry.sdk.language": DEFAULT_SDK_LANGUAGE,
            }

            if self._config.resource_attributes:
                resource_attrs.update(self._config.resource_attributes)

            self._provider = TracerProvider(resource=Resource.create(resource_attrs))
            self._owns_provider = True
            processor = BatchSpanProcessor(self._create_exporter())
            self._provider.add_span_processor(processor)

            trace.set_tracer_provider(self._provider)
            logger.info(
                "Created new TracerProvider: endpoint=%s, console_export=%s",
                self._config.endpoint,
                self._config.enable_console_export,
            )

        self._otel_tracer = self._provider.get_tracer(
            INSTRUMENTING_MODULE_NAME, __version__
        )
        self._is_shutdown = False

    def _create_exporter(self) -> SpanExporter:
        """Create span exporter based on configuration.

        Returns:
            Configured span exporter
        """
        if self._config.endpoint is None or self._config.enable_console_export:
            logger.info("Using ConsoleSpanExporter for development")
            return ConsoleSpanExporter()

        logger.info("Using OTLPSpanExporter: endpoint=%s", self._config.endpoint)
        return OTLPSpanExporter(endpoint=self._config.endpoint)

    def get_tracer(self) -> SpanTracer:
        """Get the span tracer.

        Raises:
            RuntimeError: If the client was shut down
        """
        if self._is_shutdown:
            raise RuntimeError("Telemetry client was shut down")
        return self._tracer

    def get_tracer_provider(self) -> TracerProvider:
        """Get OpenTelemetry TracerProvider.

        Raises:
            RuntimeError: If no OpenTelemetry export is configured
        """
        if self._provider is None:
            raise RuntimeError("Telemetry client has no TracerProvider")
        return self._provider

    def shutdown(self) -> bool:
        """Shutdown telemetry and flush remaining spans.

        Returns:
            True if shutdown successful
        """
        self._is_shutdown = True
        if self._provider is None:
            return True

        logger.info("Shutting down telemetry client")
        if self._owns_provider:
            self._provider.shutdown()
        else:
            # A reused global provider belongs to whoever installed it
            self._provider.force_flush()
        self._provider = None
        return True

    def flush(self, timeout_seconds: float = 5.0) -> bool:
        """Flush pending OpenTelemetry spans to the exporter.

        Args:
            timeout_seconds: Timeout for flush

        Returns:
            True if flush successful
        """
        if self._provider is None:
            return True

        logger.debug("Flushing telemetry spans (timeout=%.1fs)", timeout_seconds)
        return self._provider.force_flush(timeout_millis=int(timeout_seconds * 1000))

    def is_shutdown(self) -> bool:
        return self._is_shutdown


def get_client() -> TelemetryClient:
    """Get singleton telemetry client instance.

    Raises:
        RuntimeError: If client not initialized via init_client()
    """
    if _client is None:
        raise RuntimeError(
            "Telemetry client not initialized. Call init_client() first."
        )
    return _client


def init_client(
    config: TelemetryConfig | None = None,
    collector: TraceCollector | None = None,
) -> TelemetryClient:
    """Initialize global telemetry client with configuration (thread-safe).

    Idempotent: calling it multiple times returns the same client instance
    until it is shut down. Use reset_client() in tests to clear state.

    Args:
        config: Client configuration (defaults resolve from the environment)
        collector: Receiver of completed span trees

    Returns:
        Initialized telemetry client
    """
    global _client

    if _client is not None and not _client.is_shutdown():
        return _client

    with _client_lock:
        if _client is not None and not _client.is_shutdown():
            return _client

        _client = TelemetryClient(config or TelemetryConfig(), collector)
        return _client


def reset_client() -> None:
    """Reset global client instance (for testing only, thread-safe)."""
    global _client
    with _client_lock:
        if _client is not None:
            _client.shutdown()
        _client = None
