"""Span tree lifecycle: creation, nesting, outcome recording and export.

Parent spans are passed explicitly; nothing is read from ambient context.
Each span is mirrored onto an OpenTelemetry span so any configured
OpenTelemetry exporter receives the same telemetry, while the completed tree
is handed to a :class:`~shoptrace.telemetry.export.TraceCollector` as soon
as its transaction closes.

Misuse of the tree (closing twice, closing a parent with open children,
opening a child under a closed parent, writing unbucketed values) is an
instrumentation defect: in strict mode it raises
:class:`~shoptrace.errors.InstrumentationError`, otherwise it is logged and
the offending call becomes a no-op.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Mapping

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Status, StatusCode

from ..errors import InstrumentationError, OutcomeCategory, categorize
from .attributes import Attr, ResultValue
from .export import export_span
from .span import (
    AttributeValue,
    Span,
    SpanStatus,
    SpanTree,
    attribute_problems,
    is_valid_name,
)

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

    from .export import TraceCollector

logger = logging.getLogger(__name__)

INSTRUMENTING_MODULE_NAME = "shoptrace.telemetry"
OPERATION_ATTRIBUTE = "span.operation"


class SpanTracer:
    """Creates spans, records their outcomes and exports finished trees.

    Args:
        collector: Receiver of completed trees (None = trees are dropped)
        strict: Raise InstrumentationError on defects instead of logging
        otel_tracer: OpenTelemetry tracer used for mirroring (defaults to the
            global tracer provider's tracer)
        clock: Wall clock in nanoseconds
    """

    def __init__(
        self,
        collector: TraceCollector | None = None,
        *,
        strict: bool = True,
        otel_tracer: Tracer | None = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self._collector = collector
        self._strict = strict
        self._otel_tracer = otel_tracer
        self._clock = clock

    @property
    def strict(self) -> bool:
        return self._strict

    def start_transaction(self, name: str, operation: str) -> Span:
        """Create an open root span starting now."""
        if not is_valid_name(name):
            self._defect("span name %r is not a dotted identifier", name)
        tree = SpanTree()
        span = self._open(name, operation, parent=None, tree=tree)
        tree.root = span
        logger.debug("Transaction started: %s (op=%s)", name, operation)
        return span

    def start_child(self, parent: Span, name: str, operation: str) -> Span:
        """Create an open child span under an open parent.

        Returns a non-recording span if the parent cannot accept children and
        the tracer is not strict.
        """
        if not parent.is_recording:
            return self._non_recording(name, operation)
        if parent.tree.discarded:
            self._defect(
                "span tree of %s was discarded; cannot open %s", parent.name, name
            )
            return self._non_recording(name, operation)
        if parent.tree.cancelled:
            self._defect(
                "span tree of %s was cancelled; cannot open %s", parent.name, name
            )
            return self._non_recording(name, operation)
        if not parent.is_open:
            self._defect(
                "parent %s is already closed; cannot open %s", parent.name, name
            )
            return self._non_recording(name, operation)
        if not is_valid_name(name):
            self._defect("span name %r is not a dotted identifier", name)
        span = self._open(name, operation, parent=parent, tree=parent.tree)
        parent.children.append(span)
        logger.debug("Span started: %s (parent=%s)", name, parent.name)
        return span

    def set_attributes(
        self, span: Span, attributes: Mapping[str, AttributeValue]
    ) -> None:
        """Merge bucketed attributes into an open span."""
        if not self._check_mutable(span, "set attributes on"):
            return
        self._store(span, self._accepted(span, attributes))

    def record_success(
        self, span: Span, attributes: Mapping[str, AttributeValue] | None = None
    ) -> None:
        """Close a span with status ``ok``."""
        if not self._check_mutable(span, "close"):
            return
        accepted = self._accepted(span, attributes or {})
        accepted[Attr.Common.RESULT] = ResultValue.SUCCESS
        self._finish(span, SpanStatus.OK, accepted)

    def record_failure(
        self,
        span: Span,
        error: BaseException | None,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> OutcomeCategory:
        """Close a span with status ``error`` and a normalized failure category.

        Args:
            span: The span to close
            error: The raised error, resolved through the outcome taxonomy
            attributes: Additional bucketed attributes

        Returns:
            The category recorded on the span
        """
        category = categorize(error)
        if not self._check_mutable(span, "close"):
            return category
        accepted = self._accepted(span, attributes or {})
        accepted[Attr.Common.RESULT] = ResultValue.FAIL
        accepted[Attr.Common.FAILURE_CATEGORY] = category.value
        self._finish(span, SpanStatus.ERROR, accepted, description=category.value)
        return category

    def record_cancellation(self, span: Span) -> None:
        """Close a span, and any open descendants, with status ``cancelled``.

        The whole tree is marked cancelled: no further children may be opened
        on it.
        """
        if not self._check_mutable(span, "cancel"):
            return
        span.tree.cancelled = True
        for child in span.children:
            if child.is_open:
                self.record_cancellation(child)
        self._finish(
            span, SpanStatus.CANCELLED, {Attr.Common.RESULT: ResultValue.CANCEL}
        )

    def discard(self, span: Span) -> None:
        """Drop the tree of a span after an instrumentation defect.

        No outcome is recorded and nothing reaches the collector. The
        OpenTelemetry mirrors of the open spans are ended with status
        ``UNSET``.
        """
        tree = span.tree
        if not span.is_recording or tree.discarded or tree.exported:
            return
        tree.discarded = True
        root = tree.root or span
        now = self._clock()
        for open_span in root.walk():
            if open_span.is_open:
                open_span.otel_span.end(end_time=max(now, open_span.start_time_ns))
        logger.warning("Span tree %s discarded after instrumentation defect", root.name)

    def _open(
        self, name: str, operation: str, parent: Span | None, tree: SpanTree
    ) -> Span:
        start = self._clock()
        # An empty Context makes the mirrored root a root regardless of
        # whatever span is current in the caller.
        otel_context = (
            trace.set_span_in_context(parent.otel_span)
            if parent is not None
            else Context()
        )
        otel_span = self._get_otel_tracer().start_span(
            name,
            context=otel_context,
            start_time=start,
            attributes={OPERATION_ATTRIBUTE: operation},
        )
        return Span(
            self,
            name,
            operation,
            parent=parent,
            tree=tree,
            otel_span=otel_span,
            start_time_ns=start,
        )

    def _non_recording(self, name: str, operation: str) -> Span:
        return Span(
            self,
            name,
            operation,
            parent=None,
            tree=SpanTree(),
            otel_span=trace.INVALID_SPAN,
            start_time_ns=self._clock(),
            recording=False,
        )

    def _check_mutable(self, span: Span, action: str) -> bool:
        if not span.is_recording:
            return False
        if span.tree.exported:
            self._defect(
                "cannot %s %s: its tree was already exported", action, span.name
            )
            return False
        if span.tree.discarded:
            self._defect("cannot %s %s: its tree was discarded", action, span.name)
            return False
        if not span.is_open:
            self._defect(
                "cannot %s %s: already closed with status %s",
                action,
                span.name,
                span.status.value,
            )
            return False
        return True

    def _accepted(
        self, span: Span, attributes: Mapping[str, AttributeValue]
    ) -> dict[str, AttributeValue]:
        problems = attribute_problems(attributes)
        if not problems:
            return dict(attributes)
        self._defect("invalid attributes on %s: %s", span.name, "; ".join(problems))
        return {
            key: value
            for key, value in attributes.items()
            if not attribute_problems({key: value})
        }

    def _store(self, span: Span, attributes: Mapping[str, AttributeValue]) -> None:
        span._attributes.update(attributes)
        if attributes:
            span.otel_span.set_attributes(dict(attributes))

    def _finish(
        self,
        span: Span,
        status: SpanStatus,
        attributes: Mapping[str, AttributeValue],
        description: str | None = None,
    ) -> None:
        open_children = [child.name for child in span.children if child.is_open]
        if open_children:
            self._defect(
                "closing %s before its children %s", span.name, ", ".join(open_children)
            )
            for child in span.children:
                if child.is_open:
                    self.record_cancellation(child)

        end = max(
            [self._clock(), span.start_time_ns]
            + [child.end_time_ns or 0 for child in span.children]
        )
        self._store(span, attributes)
        span.status = status
        span.end_time_ns = end

        if status is SpanStatus.OK:
            span.otel_span.set_status(Status(StatusCode.OK))
        elif status is SpanStatus.ERROR:
            span.otel_span.set_status(Status(StatusCode.ERROR, description))
        span.otel_span.end(end_time=end)

        logger.debug(
            "Span ended: %s status=%s duration_ms=%.1f",
            span.name,
            status.value,
            (end - span.start_time_ns) / 1e6,
        )
        if span.is_transaction:
            self._export(span)

    def _export(self, root: Span) -> None:
        root.tree.exported = True
        if self._collector is None:
            return
        tree = export_span(root)
        try:
            self._collector.collect(tree)
        except Exception as e:
            logger.error("Failed to export trace %s: %s", root.name, e, exc_info=True)

    def _get_otel_tracer(self) -> Tracer:
        if self._otel_tracer is not None:
            return self._otel_tracer
        return trace.get_tracer(INSTRUMENTING_MODULE_NAME)

    def _defect(self, message: str, *args: object) -> None:
        if self._strict:
            raise InstrumentationError(message % args)
        logger.error("Instrumentation defect: " + message, *args)


__all__ = ["SpanTracer"]
