"""Cross-cutting trace context stamped on spans.

Provides the :class:`TraceContextPropagator`, which attaches deployment,
device, network, session and experiment attributes to a span. Every value
is validated against a closed enumeration or pattern when the context is
built, so a stamped span never carries free text.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .attributes import Attr

if TYPE_CHECKING:
    from ..simulation.settings import SimulationSettings
    from .config import TelemetryConfig
    from .span import AttributeValue, Span

logger = logging.getLogger(__name__)

DeviceClass = Literal["low", "mid", "high"]
NetworkType = Literal["wifi", "cellular", "ethernet", "offline", "unknown"]


class DeviceContext(BaseModel):
    """Already-classified device and network information."""

    model_config = ConfigDict(frozen=True)

    country: str = Field(default="US", pattern=r"^[A-Z]{2}$")
    device_class: DeviceClass = "mid"
    network_type: NetworkType = "wifi"


class TraceContextPropagator:
    """Stamps common context attributes on spans.

    Args:
        config: Supplies environment, release and build
        settings: Supplies the active experiment variant
        device: Classified device context (defaults to a mid-tier device on wifi)
        session_id: Session identifier (defaults to a fresh UUID4)
    """

    def __init__(
        self,
        config: TelemetryConfig,
        settings: SimulationSettings,
        device: DeviceContext | None = None,
        session_id: uuid.UUID | None = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self._device = device or DeviceContext()
        self._session_id = session_id or uuid.uuid4()

    @property
    def session_id(self) -> uuid.UUID:
        return self._session_id

    @property
    def device(self) -> DeviceContext:
        return self._device

    def update_device(self, **changes: Any) -> DeviceContext:
        """Replace device fields, validating the new values.

        Raises:
            pydantic.ValidationError: If a value is outside its enumeration
        """
        self._device = DeviceContext.model_validate(
            {**self._device.model_dump(), **changes}
        )
        logger.info("Device context updated: %s", self._device)
        return self._device

    def context_attributes(self) -> dict[str, AttributeValue]:
        """Return the attributes ``stamp`` would attach right now."""
        return {
            Attr.Context.ENVIRONMENT: self._config.environment,
            Attr.Context.RELEASE: self._config.release,
            Attr.Context.BUILD: self._config.build,
            Attr.Context.COUNTRY: self._device.country,
            Attr.Context.DEVICE_CLASS: self._device.device_class,
            Attr.Context.NETWORK_TYPE: self._device.network_type,
            Attr.Context.SESSION_ID: str(self._session_id),
            Attr.Context.AB_VARIANT: self._settings.snapshot().experiment_variant.value,
        }

    def stamp(self, span: Span) -> Span:
        """Attach the common context attributes to ``span``.

        Idempotent: stamping twice leaves the same keys with the same values.

        Returns:
            The stamped span
        """
        return span.set_attributes(self.context_attributes())


__all__ = ["DeviceContext", "TraceContextPropagator"]
