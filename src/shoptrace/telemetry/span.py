"""Span and span tree data model.

A :class:`Span` is one timed unit of work. Spans are created and closed
through a :class:`~shoptrace.telemetry.tracer.SpanTracer`; the span itself
only carries state and delegates every mutation back to its tracer so that
lifecycle rules are enforced in one place.

Example:
    txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
    with txn:
        with tracer.start_child(txn, "api.search", SpanOp.API) as api:
            results = await backend.search_products("watch")
            api.set_attribute(Attr.Search.RESULT_COUNT_BUCKET, "1-10")
"""

from __future__ import annotations

import re
import uuid
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Union

from ..errors import InstrumentationError
from .attributes import RESERVED_KEYS

if TYPE_CHECKING:
    from opentelemetry.trace import Span as OTelSpan

    from .tracer import SpanTracer

AttributeValue = Union[str, bool, int]

MAX_STRING_LENGTH = 64
MAX_INT_MAGNITUDE = 10_000

_NAME_PATTERN = re.compile(r"^[a-z0-9_]+(\.[a-z0-9_]+)+$")
_KEY_PATTERN = re.compile(r"^[a-z0-9_]+(\.[a-z0-9_]+)*$")


class SpanStatus(str, Enum):
    """Terminal status of a span. ``UNSET`` means the span is still open."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"


def is_valid_name(name: str) -> bool:
    """Check that a span name is a dotted ``resource.action`` identifier."""
    return bool(_NAME_PATTERN.match(name))


def attribute_problems(
    attributes: Mapping[str, Any], allow_reserved: bool = False
) -> list[str]:
    """List every reason an attribute mapping may not be stored on a span.

    Args:
        attributes: Candidate attributes
        allow_reserved: Whether tracer-owned keys are permitted

    Returns:
        Human-readable problems, empty when the mapping is valid
    """
    problems = []
    for key, value in attributes.items():
        if not isinstance(key, str) or not _KEY_PATTERN.match(key):
            problems.append(f"invalid attribute key {key!r}")
            continue
        if key in RESERVED_KEYS and not allow_reserved:
            problems.append(f"attribute key {key!r} is reserved for the tracer")
        elif isinstance(value, bool):
            continue
        elif isinstance(value, int):
            if abs(value) >= MAX_INT_MAGNITUDE:
                problems.append(f"{key}: integer {value} is not bucketed")
        elif isinstance(value, str):
            if not value or len(value) > MAX_STRING_LENGTH or any(
                c.isspace() for c in value
            ):
                problems.append(f"{key}: value is not an enumerated label")
        else:
            problems.append(f"{key}: unsupported value type {type(value).__name__}")
    return problems


class SpanTree:
    """Shared state of one transaction and all of its descendants."""

    def __init__(self) -> None:
        self.root: Span | None = None
        self.cancelled = False
        self.exported = False
        self.discarded = False


class Span:
    """One unit of work, optionally nested under a parent.

    Spans are context managers: leaving the ``with`` block closes a span that
    is still open, with ``ok`` on normal exit, ``cancelled`` on
    :class:`asyncio.CancelledError` and ``error`` on any other exception.
    An :class:`~shoptrace.errors.InstrumentationError` is not an outcome: it
    discards the whole tree instead.
    """

    def __init__(
        self,
        tracer: SpanTracer,
        name: str,
        operation: str,
        parent: Span | None,
        tree: SpanTree,
        otel_span: OTelSpan,
        start_time_ns: int,
        recording: bool = True,
    ) -> None:
        self._tracer = tracer
        self._otel_span = otel_span
        self._attributes: dict[str, AttributeValue] = {}
        self._recording = recording

        self.span_id = uuid.uuid4().hex[:16]
        self.name = name
        self.operation = operation
        self.parent = parent
        self.tree = tree
        self.children: list[Span] = []
        self.start_time_ns = start_time_ns
        self.end_time_ns: int | None = None
        self.status = SpanStatus.UNSET

    def __repr__(self) -> str:
        return f"Span(name={self.name!r}, status={self.status.value})"

    def __enter__(self) -> Span:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if not self._recording or not self.is_open:
            return
        if isinstance(exc_val, InstrumentationError):
            self._tracer.discard(self)
        elif exc_val is None:
            self._tracer.record_success(self)
        elif isinstance(exc_val, Exception):
            self._tracer.record_failure(self, exc_val)
        else:
            # CancelledError, KeyboardInterrupt, GeneratorExit
            self._tracer.record_cancellation(self)

    @property
    def parent_id(self) -> str | None:
        return self.parent.span_id if self.parent is not None else None

    @property
    def is_transaction(self) -> bool:
        return self.parent is None

    @property
    def is_open(self) -> bool:
        return self.status is SpanStatus.UNSET

    @property
    def is_recording(self) -> bool:
        """False for the no-op span handed out after a defect in lenient mode."""
        return self._recording

    @property
    def attributes(self) -> Mapping[str, AttributeValue]:
        """Read-only view of the span's attributes."""
        return MappingProxyType(self._attributes)

    @property
    def otel_span(self) -> OTelSpan:
        return self._otel_span

    def set_attribute(self, key: str, value: AttributeValue) -> Span:
        """Set one bucketed attribute.

        Returns:
            Self for method chaining
        """
        self._tracer.set_attributes(self, {key: value})
        return self

    def set_attributes(self, attributes: Mapping[str, AttributeValue]) -> Span:
        """Set several bucketed attributes.

        Returns:
            Self for method chaining
        """
        self._tracer.set_attributes(self, attributes)
        return self

    def walk(self) -> Iterator[Span]:
        """Iterate this span and its descendants depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


__all__ = [
    "AttributeValue",
    "Span",
    "SpanStatus",
    "SpanTree",
    "attribute_problems",
    "is_valid_name",
]
