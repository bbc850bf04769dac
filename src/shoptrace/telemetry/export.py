"""Read-only export of completed span trees and the collectors receiving them."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterator, Protocol, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictBool,
    StrictInt,
    StrictStr,
    model_validator,
)

from .span import SpanStatus

if TYPE_CHECKING:
    from .span import Span

logger = logging.getLogger(__name__)

ExportedValue = Union[StrictBool, StrictInt, StrictStr]


class ExportedSpan(BaseModel):
    """Immutable snapshot of a closed span and its descendants."""

    model_config = ConfigDict(frozen=True)

    span_id: str
    parent_id: str | None = None
    name: str
    operation: str
    start_time_ns: int
    end_time_ns: int
    status: SpanStatus
    attributes: dict[str, ExportedValue]
    children: tuple[ExportedSpan, ...] = ()

    @model_validator(mode="after")
    def _check_closed(self) -> ExportedSpan:
        if self.status is SpanStatus.UNSET:
            raise ValueError(f"span {self.name} exported while still open")
        if self.end_time_ns < self.start_time_ns:
            raise ValueError(f"span {self.name} ends before it starts")
        for child in self.children:
            if child.end_time_ns > self.end_time_ns:
                raise ValueError(f"child {child.name} closes after parent {self.name}")
        return self

    @property
    def duration_ns(self) -> int:
        return self.end_time_ns - self.start_time_ns

    def walk(self) -> Iterator[ExportedSpan]:
        """Iterate this span and its descendants depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, name: str) -> ExportedSpan | None:
        """Return the first span in this tree with the given name."""
        return next((span for span in self.walk() if span.name == name), None)


def export_span(span: Span) -> ExportedSpan:
    """Serialize a closed span and all of its descendants."""
    assert span.end_time_ns is not None, f"span {span.name} is still open"
    return ExportedSpan(
        span_id=span.span_id,
        parent_id=span.parent_id,
        name=span.name,
        operation=span.operation,
        start_time_ns=span.start_time_ns,
        end_time_ns=span.end_time_ns,
        status=span.status,
        attributes=dict(span.attributes),
        children=tuple(export_span(child) for child in span.children),
    )


class TraceCollector(Protocol):
    """Receiver of completed span trees."""

    def collect(self, tree: ExportedSpan) -> None: ...


class InMemoryTraceCollector:
    """Collector that keeps exported trees in memory (thread-safe)."""

    def __init__(self) -> None:
        self._trees: list[ExportedSpan] = []
        self._lock = threading.Lock()

    def collect(self, tree: ExportedSpan) -> None:
        with self._lock:
            self._trees.append(tree)

    def get_trees(self) -> list[ExportedSpan]:
        with self._lock:
            return list(self._trees)

    def find(self, name: str) -> ExportedSpan | None:
        """Return the most recent tree whose transaction has the given name."""
        with self._lock:
            return next((t for t in reversed(self._trees) if t.name == name), None)

    def clear(self) -> None:
        with self._lock:
            self._trees.clear()


class LoggingTraceCollector:
    """Collector that writes every tree as JSON to the log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def collect(self, tree: ExportedSpan) -> None:
        logger.log(self._level, "Trace exported: %s", tree.model_dump_json())


__all__ = [
    "ExportedSpan",
    "InMemoryTraceCollector",
    "LoggingTraceCollector",
    "TraceCollector",
    "export_span",
]
