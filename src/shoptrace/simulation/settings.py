"""Simulation settings store.

The single owned configuration surface for the simulated backend: active
latency profile, failure injection table, offline flag and experiment
variant. Writes are serialized by a lock and publish a new immutable
:class:`SimulationSnapshot`; readers take the current snapshot without
locking, so a call that starts with one snapshot keeps it for its whole
duration.

Environment variables seed the store when it is built with
:meth:`SimulationSettings.from_env`::

    $ export SHOPTRACE_LATENCY_PROFILE=slow
    $ export SHOPTRACE_OFFLINE=false
    $ export SHOPTRACE_AB_VARIANT=B
    $ export SHOPTRACE_FAIL_PAYMENT=true
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, replace
from typing import Mapping

from .types import Endpoint, ExperimentVariant, LatencyProfile

logger = logging.getLogger(__name__)

ENV_PREFIX = "SHOPTRACE_"


def _parse_env_bool(raw: str) -> bool:
    """Interpret an environment variable as a boolean flag."""
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SimulationSnapshot:
    """Immutable view of the simulation settings at one instant."""

    latency_profile: LatencyProfile = LatencyProfile.NORMAL
    failing_endpoints: frozenset[Endpoint] = field(default_factory=frozenset)
    offline: bool = False
    experiment_variant: ExperimentVariant = ExperimentVariant.A

    def should_fail(self, endpoint: Endpoint) -> bool:
        return endpoint in self.failing_endpoints


class SimulationSettings:
    """Thread-safe store for simulation configuration.

    Args:
        latency_profile: Initial latency profile
        failures: Initial failure injection table
        offline: Initial offline flag
        experiment_variant: Initial experiment variant
    """

    def __init__(
        self,
        latency_profile: LatencyProfile = LatencyProfile.NORMAL,
        failures: Mapping[Endpoint, bool] | None = None,
        offline: bool = False,
        experiment_variant: ExperimentVariant = ExperimentVariant.A,
    ) -> None:
        self._lock = threading.Lock()
        self._snapshot = SimulationSnapshot(
            latency_profile=LatencyProfile(latency_profile),
            failing_endpoints=frozenset(
                Endpoint(e) for e, fail in (failures or {}).items() if fail
            ),
            offline=offline,
            experiment_variant=ExperimentVariant(experiment_variant),
        )

    @classmethod
    def from_env(cls) -> SimulationSettings:
        """Build settings from ``SHOPTRACE_*`` environment variables.

        Raises:
            ValueError: If a variable holds a value outside its enumeration
        """
        failures = {
            endpoint: _parse_env_bool(raw)
            for endpoint in Endpoint
            if (raw := os.environ.get(f"{ENV_PREFIX}FAIL_{endpoint.name}")) is not None
        }
        return cls(
            latency_profile=LatencyProfile(
                os.environ.get(f"{ENV_PREFIX}LATENCY_PROFILE", "normal").lower()
            ),
            failures=failures,
            offline=_parse_env_bool(os.environ.get(f"{ENV_PREFIX}OFFLINE", "false")),
            experiment_variant=ExperimentVariant(
                os.environ.get(f"{ENV_PREFIX}AB_VARIANT", "A").upper()
            ),
        )

    def snapshot(self) -> SimulationSnapshot:
        """Return the current immutable settings."""
        return self._snapshot

    @property
    def latency_profile(self) -> LatencyProfile:
        return self._snapshot.latency_profile

    @property
    def offline(self) -> bool:
        return self._snapshot.offline

    @property
    def experiment_variant(self) -> ExperimentVariant:
        return self._snapshot.experiment_variant

    def failure_table(self) -> dict[Endpoint, bool]:
        """Return the failure injection table for every endpoint."""
        failing = self._snapshot.failing_endpoints
        return {endpoint: endpoint in failing for endpoint in Endpoint}

    def set_latency_profile(self, profile: LatencyProfile) -> None:
        self._update(latency_profile=LatencyProfile(profile))

    def set_offline(self, offline: bool) -> None:
        self._update(offline=offline)

    def set_experiment_variant(self, variant: ExperimentVariant) -> None:
        self._update(experiment_variant=ExperimentVariant(variant))

    def set_failure(self, endpoint: Endpoint, fail: bool) -> None:
        """Toggle forced failure for one endpoint."""
        self.configure_failures({endpoint: fail})

    def configure_failures(self, failures: Mapping[Endpoint, bool]) -> None:
        """Merge entries into the failure injection table.

        Args:
            failures: Mapping of endpoints to their force-fail flag. Endpoints
                not mentioned keep their current flag.
        """
        with self._lock:
            failing = set(self._snapshot.failing_endpoints)
            for endpoint, fail in failures.items():
                if fail:
                    failing.add(Endpoint(endpoint))
                else:
                    failing.discard(Endpoint(endpoint))
            self._publish(failing_endpoints=frozenset(failing))

    def reset(self) -> None:
        """Restore defaults: normal latency, no failures, online, variant A."""
        with self._lock:
            self._snapshot = SimulationSnapshot()
        logger.info("Simulation settings reset")

    def _update(self, **changes: object) -> None:
        with self._lock:
            self._publish(**changes)

    def _publish(self, **changes: object) -> None:
        self._snapshot = replace(self._snapshot, **changes)  # type: ignore[arg-type]
        logger.info("Simulation settings updated: %s", changes)
