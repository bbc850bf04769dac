"""Telemetry configuration module."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

Environment = Literal["dev", "staging", "prod"]

_ENVIRONMENTS = ("dev", "staging", "prod")
_VERSION_PATTERN = re.compile(r"^\d+(\.\d+){0,2}$")


@dataclass(frozen=True)
class TelemetryConfig:
    """Configuration for the shoptrace telemetry client.

    Standard OpenTelemetry environment variables are honored:
    - OTEL_EXPORTER_OTLP_ENDPOINT
    - OTEL_SERVICE_NAME
    - OTEL_TRACES_EXPORTER (set to "console" for console export)

    Shoptrace-specific overrides:
    - SHOPTRACE_ENVIRONMENT (dev, staging or prod)
    - SHOPTRACE_RELEASE
    - SHOPTRACE_STRICT_INSTRUMENTATION (true/false)

    Args:
        endpoint: OTLP endpoint URL (None = no OpenTelemetry export)
        service_name: Service identifier for resource attributes
        enable_console_export: Enable console exporter (for debugging)
        environment: Deployment environment stamped on transactions
        release: App release version stamped on transactions
        build: App build number stamped on transactions
        strict_instrumentation: Raise on span tree misuse instead of logging.
            Defaults to ``environment != "prod"``.
        resource_attributes: Additional resource attributes
    """

    endpoint: str | None = None
    service_name: str = "shoptrace"
    enable_console_export: bool = False
    environment: Environment = "dev"
    release: str = "1.0.0"
    build: str = "1"
    strict_instrumentation: bool | None = None
    resource_attributes: dict[str, str] | None = None

    def __post_init__(self) -> None:
        """Resolve configuration from environment variables."""
        if env_endpoint := os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
            object.__setattr__(self, "endpoint", env_endpoint)

        if env_service := os.getenv("OTEL_SERVICE_NAME"):
            object.__setattr__(self, "service_name", env_service)

        if env_exporter := os.getenv("OTEL_TRACES_EXPORTER"):
            object.__setattr__(
                self, "enable_console_export", "console" in env_exporter.lower()
            )

        if env_environment := os.getenv("SHOPTRACE_ENVIRONMENT"):
            object.__setattr__(self, "environment", env_environment.lower())

        if env_release := os.getenv("SHOPTRACE_RELEASE"):
            object.__setattr__(self, "release", env_release)

        if env_strict := os.getenv("SHOPTRACE_STRICT_INSTRUMENTATION"):
            object.__setattr__(
                self, "strict_instrumentation", env_strict.lower() == "true"
            )

        if self.strict_instrumentation is None:
            object.__setattr__(
                self, "strict_instrumentation", self.environment != "prod"
            )

        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.endpoint and not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(
                f"endpoint must start with http:// or https://, got {self.endpoint}"
            )
        if self.environment not in _ENVIRONMENTS:
            raise ValueError(
                f"environment must be one of {_ENVIRONMENTS}, got {self.environment}"
            )
        if not _VERSION_PATTERN.match(self.release):
            raise ValueError(f"release must be a dotted version, got {self.release}")
        if not self.build.isdigit():
            raise ValueError(f"build must be numeric, got {self.build}")
