"""Shared plumbing for instrumented workflow services."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..simulation.backend import SimulatedBackend
    from ..telemetry.context import TraceContextPropagator
    from ..telemetry.span import Span
    from ..telemetry.tracer import SpanTracer
    from .state import ShopState


class WorkflowService:
    """Base class giving services the backend, tracer and context stamping.

    Args:
        state: Session state read and updated by the workflows
        backend: Simulated backend the workflows call
        tracer: Span tracer recording the workflows
        propagator: Stamps common context on every transaction
    """

    def __init__(
        self,
        state: ShopState,
        backend: SimulatedBackend,
        tracer: SpanTracer,
        propagator: TraceContextPropagator,
    ) -> None:
        self._state = state
        self._backend = backend
        self._tracer = tracer
        self._propagator = propagator

    def _transaction(self, name: str, operation: str) -> Span:
        """Open a transaction stamped with the common context."""
        txn = self._tracer.start_transaction(name, operation)
        self._propagator.stamp(txn)
        return txn

    def _child(self, parent: Span, name: str, operation: str) -> Span:
        return self._tracer.start_child(parent, name, operation)
