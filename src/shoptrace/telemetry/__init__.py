"""Shoptrace telemetry: span trees with bucketed attributes.

Quick Start:
    >>> from shoptrace.telemetry import (
    ...     Attr,
    ...     InMemoryTraceCollector,
    ...     SpanOp,
    ...     SpanTracer,
    ...     result_count_bucket,
    ... )
    >>>
    >>> collector = InMemoryTraceCollector()
    >>> tracer = SpanTracer(collector)
    >>> txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
    >>> api = tracer.start_child(txn, "api.search", SpanOp.API)
    >>> tracer.record_success(
    ...     api, {Attr.Search.RESULT_COUNT_BUCKET: result_count_bucket(3)}
    ... )
    >>> tracer.record_success(txn)
    >>> collector.get_trees()[0].children[0].status
    <SpanStatus.OK: 'ok'>
"""

from .attributes import Attr, ResultValue, SpanOp
from .buckets import (
    item_count_bucket,
    payload_size_bucket,
    result_count_bucket,
    retry_count_bucket,
    value_bucket,
)
from .client import TelemetryClient, get_client, init_client, reset_client
from .config import TelemetryConfig
from .context import DeviceContext, TraceContextPropagator
from .export import (
    ExportedSpan,
    InMemoryTraceCollector,
    LoggingTraceCollector,
    TraceCollector,
)
from .span import Span, SpanStatus
from .tracer import SpanTracer

__all__ = [
    # Core classes
    "Span",
    "SpanStatus",
    "SpanTracer",
    "TelemetryConfig",
    "TelemetryClient",
    "TraceContextPropagator",
    "DeviceContext",
    # Export
    "ExportedSpan",
    "TraceCollector",
    "InMemoryTraceCollector",
    "LoggingTraceCollector",
    # Client lifecycle
    "get_client",
    "init_client",
    "reset_client",
    # Semantic conventions
    "Attr",
    "SpanOp",
    "ResultValue",
    # Bucketing
    "item_count_bucket",
    "payload_size_bucket",
    "result_count_bucket",
    "retry_count_bucket",
    "value_bucket",
]
