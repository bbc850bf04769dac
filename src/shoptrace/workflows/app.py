"""Storefront application wiring: services, navigation and startup."""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum

from ..simulation.backend import SimulatedBackend, Sleep
from ..simulation.engine import SimulationEngine
from ..simulation.settings import SimulationSettings
from ..telemetry.attributes import Attr, SpanOp
from ..telemetry.config import TelemetryConfig
from ..telemetry.context import DeviceContext, NetworkType, TraceContextPropagator
from ..telemetry.export import LoggingTraceCollector
from ..telemetry.tracer import SpanTracer
from .cart import CartService
from .catalog import CatalogService
from .checkout import CheckoutService
from .order import OrderService
from .payment import PaymentService
from .state import ShopState

logger = logging.getLogger(__name__)


class Route(str, Enum):
    """Closed set of navigable screens."""

    HOME = "home"
    SEARCH = "search"
    PRODUCT_DETAIL = "product_detail"
    CART = "cart"
    CHECKOUT = "checkout"
    PAYMENT = "payment"
    ORDER_CONFIRMATION = "order_confirmation"
    DEBUG_SETTINGS = "debug_settings"


class ShopApp:
    """One shopper session: state, simulated backend, tracer and services."""

    def __init__(
        self,
        state: ShopState,
        backend: SimulatedBackend,
        tracer: SpanTracer,
        propagator: TraceContextPropagator,
    ) -> None:
        self.state = state
        self.backend = backend
        self.tracer = tracer
        self.propagator = propagator

        services = (state, backend, tracer, propagator)
        self.catalog = CatalogService(*services)
        self.cart = CartService(*services)
        self.checkout = CheckoutService(*services)
        self.payment = PaymentService(*services)
        self.orders = OrderService(*services)

    @property
    def settings(self) -> SimulationSettings:
        return self.backend.settings

    @classmethod
    def create(
        cls,
        settings: SimulationSettings | None = None,
        tracer: SpanTracer | None = None,
        config: TelemetryConfig | None = None,
        device: DeviceContext | None = None,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> ShopApp:
        """Build a fully wired app.

        Args:
            settings: Simulation settings (defaults to ``SHOPTRACE_*`` env vars)
            tracer: Span tracer (defaults to one logging exported trees)
            config: Telemetry configuration (defaults resolve from the env)
            device: Classified device context
            rng: Shared random source for the engine and mock data
            sleep: Awaitable used to wait out simulated delays
        """
        settings = settings or SimulationSettings.from_env()
        config = config or TelemetryConfig()
        tracer = tracer or SpanTracer(
            LoggingTraceCollector(), strict=bool(config.strict_instrumentation)
        )
        backend = SimulatedBackend(
            settings,
            engine=SimulationEngine(settings, rng=rng),
            rng=rng,
            sleep=sleep,
        )
        propagator = TraceContextPropagator(config, settings, device=device)
        return cls(ShopState(), backend, tracer, propagator)

    def startup(self) -> None:
        """Record a cold app start."""
        txn = self.tracer.start_transaction("app.startup", SpanOp.APP)
        self.propagator.stamp(txn)
        self.tracer.record_success(txn, {Attr.App.STARTUP_TYPE: "cold"})

    def navigate_to(self, route: Route) -> None:
        """Record a route change and update the current route."""
        route = Route(route)
        txn = self.tracer.start_transaction("route.change", SpanOp.NAVIGATION)
        self.propagator.stamp(txn)
        self.tracer.record_success(
            txn, {Attr.Route.FROM: self.state.current_route, Attr.Route.TO: route.value}
        )
        logger.debug(
            "Route changed: %s -> %s", self.state.current_route, route.value
        )
        self.state.current_route = route.value

    def set_network_type(self, network_type: NetworkType) -> None:
        self.propagator.update_device(network_type=network_type)
