"""Simulated execution engine.

Decides, for one call to a logical endpoint, how long the call should appear
to take and whether it succeeds. The engine never waits and never raises:
suspending for the returned delay is the caller's job (see
:class:`~shoptrace.simulation.backend.SimulatedBackend`).

Decision rules, in order:

1. Offline: fail immediately with ``network`` and zero delay.
2. Draw the delay uniformly from the active latency profile.
3. Endpoint forced to fail in the injection table: fail with the endpoint's
   category (``payment`` picks one of provider, fraud, insufficient_funds).
4. Intrinsic behavior: ``payment_3ds`` fails 10% of the time; ``inventory``
   reports a backorder 10% of the time; ``payment`` requires a 3-D Secure
   action 30% of the time. The last two are still successes.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, NamedTuple

from ..errors import OutcomeCategory, ServiceError, error_for
from .types import Endpoint

if TYPE_CHECKING:
    from .settings import SimulationSettings, SimulationSnapshot

logger = logging.getLogger(__name__)

FORCED_FAILURE_CATEGORIES: Mapping[Endpoint, tuple[OutcomeCategory, ...]] = {
    Endpoint.SEARCH: (OutcomeCategory.NETWORK,),
    Endpoint.PRODUCT_DETAIL: (OutcomeCategory.NOT_FOUND,),
    Endpoint.RECOMMENDATIONS: (OutcomeCategory.PROVIDER,),
    Endpoint.CART: (OutcomeCategory.PROVIDER,),
    Endpoint.ADDRESS_VALIDATION: (OutcomeCategory.VALIDATION,),
    Endpoint.SHIPPING_QUOTE: (OutcomeCategory.PROVIDER,),
    Endpoint.TAX: (OutcomeCategory.PROVIDER,),
    Endpoint.PAYMENT: (
        OutcomeCategory.PROVIDER,
        OutcomeCategory.FRAUD,
        OutcomeCategory.INSUFFICIENT_FUNDS,
    ),
    Endpoint.PAYMENT_3DS: (OutcomeCategory.PROVIDER,),
    Endpoint.ORDER: (OutcomeCategory.PROVIDER,),
    Endpoint.INVENTORY: (OutcomeCategory.PROVIDER,),
    Endpoint.NOTIFICATION: (OutcomeCategory.PROVIDER,),
}

CHALLENGE_FAILURE_RATE = 0.1
BACKORDER_RATE = 0.1
REQUIRES_ACTION_RATE = 0.3


class OutcomeDetail:
    """Sub-outcomes attached to successful calls."""

    RESERVED = "reserved"
    BACKORDER = "backorder"
    SUCCEEDED = "succeeded"
    REQUIRES_ACTION = "requires_action"


@dataclass(frozen=True)
class SimulatedOutcome:
    """Result of one simulated call: success, or a failure with a category."""

    category: OutcomeCategory | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.category is None

    def to_error(self) -> ServiceError:
        """Build the typed error for a failed outcome."""
        if self.category is None:
            raise ValueError("a successful outcome has no error")
        return error_for(self.category)

    @classmethod
    def success(cls, detail: str | None = None) -> SimulatedOutcome:
        return cls(detail=detail)

    @classmethod
    def failure(cls, category: OutcomeCategory) -> SimulatedOutcome:
        return cls(category=category)


class ExecutionResult(NamedTuple):
    """Delay to wait, in seconds, and the outcome to report afterwards."""

    delay: float
    outcome: SimulatedOutcome


class SimulationEngine:
    """Pure decision step for simulated backend calls.

    Args:
        settings: Configuration store; read once per call through a snapshot
        rng: Random source (inject a seeded generator for deterministic runs)
    """

    def __init__(
        self,
        settings: SimulationSettings,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._rng = rng or random.Random()

    @property
    def settings(self) -> SimulationSettings:
        return self._settings

    def execute(
        self,
        endpoint: Endpoint,
        snapshot: SimulationSnapshot | None = None,
    ) -> ExecutionResult:
        """Decide the delay and outcome of one call.

        Args:
            endpoint: Logical endpoint being called
            snapshot: Settings to use; defaults to the current snapshot

        Returns:
            (delay, outcome) pair
        """
        snapshot = snapshot or self._settings.snapshot()
        endpoint = Endpoint(endpoint)

        if snapshot.offline:
            offline = SimulatedOutcome.failure(OutcomeCategory.NETWORK)
            return ExecutionResult(0.0, offline)

        low, high = snapshot.latency_profile.range
        delay = self._rng.uniform(low, high)

        if snapshot.should_fail(endpoint):
            categories = FORCED_FAILURE_CATEGORIES[endpoint]
            category = (
                categories[0] if len(categories) == 1 else self._rng.choice(categories)
            )
            logger.debug("Injected failure for %s: %s", endpoint.value, category.value)
            return ExecutionResult(delay, SimulatedOutcome.failure(category))

        return ExecutionResult(delay, self._intrinsic_outcome(endpoint))

    def _intrinsic_outcome(self, endpoint: Endpoint) -> SimulatedOutcome:
        if endpoint is Endpoint.PAYMENT_3DS:
            if self._rng.random() < CHALLENGE_FAILURE_RATE:
                return SimulatedOutcome.failure(OutcomeCategory.PROVIDER)
            return SimulatedOutcome.success()
        if endpoint is Endpoint.INVENTORY:
            if self._rng.random() < BACKORDER_RATE:
                return SimulatedOutcome.success(OutcomeDetail.BACKORDER)
            return SimulatedOutcome.success(OutcomeDetail.RESERVED)
        if endpoint is Endpoint.PAYMENT:
            if self._rng.random() < REQUIRES_ACTION_RATE:
                return SimulatedOutcome.success(OutcomeDetail.REQUIRES_ACTION)
            return SimulatedOutcome.success(OutcomeDetail.SUCCEEDED)
        return SimulatedOutcome.success()


__all__ = [
    "ExecutionResult",
    "OutcomeDetail",
    "SimulatedOutcome",
    "SimulationEngine",
]
