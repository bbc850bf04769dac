"""Tests for the span tree lifecycle in SpanTracer."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest
from opentelemetry.trace import StatusCode

from shoptrace.errors import (
    InstrumentationError,
    InsufficientFundsError,
    OutcomeCategory,
)
from shoptrace.simulation import LatencyProfile, SimulatedBackend, SimulationSettings
from shoptrace.telemetry import Attr, SpanOp, SpanStatus, SpanTracer

if TYPE_CHECKING:
    from shoptrace.telemetry import InMemoryTraceCollector

    from tests.conftest import SpanCapture


def test_transaction_with_one_child(
    tracer: SpanTracer,
    collector: InMemoryTraceCollector,
    span_capture: SpanCapture,
) -> None:
    """A root with one child exports a two-span tree, both ok."""
    txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
    api = tracer.start_child(txn, "api.search", SpanOp.API)
    tracer.record_success(api, {Attr.Search.RESULT_COUNT_BUCKET: "1-10"})
    tracer.record_success(txn)

    trees = collector.get_trees()
    assert len(trees) == 1
    spans = list(trees[0].walk())
    assert [s.name for s in spans] == ["search.query", "api.search"]
    assert all(s.status is SpanStatus.OK for s in spans)
    assert spans[1].parent_id == spans[0].span_id
    assert spans[1].attributes == {
        Attr.Search.RESULT_COUNT_BUCKET: "1-10",
        "result": "success",
    }

    otel_root = span_capture.get_span("search.query")
    otel_child = span_capture.get_span("api.search")
    assert otel_root.parent is None
    assert otel_child.parent.span_id == otel_root.context.span_id
    assert otel_child.context.trace_id == otel_root.context.trace_id
    assert otel_root.attributes["span.operation"] == "search"
    assert otel_child.status.status_code is StatusCode.OK


def test_context_manager_closes_with_outcome(
    tracer: SpanTracer, collector: InMemoryTraceCollector
) -> None:
    with pytest.raises(InsufficientFundsError):
        with tracer.start_transaction("payment.authorize", SpanOp.PAYMENT) as txn:
            with tracer.start_child(txn, "api.payment", SpanOp.API):
                raise InsufficientFundsError()

    tree = collector.find("payment.authorize")
    assert tree is not None
    for span in tree.walk():
        assert span.status is SpanStatus.ERROR
        assert span.attributes["result"] == "fail"
        assert span.attributes["failure_category"] == "insufficient_funds"


def test_record_failure_returns_category(
    tracer: SpanTracer, span_capture: SpanCapture
) -> None:
    txn = tracer.start_transaction("order.place", SpanOp.ORDER)
    category = tracer.record_failure(txn, ConnectionError("reset"))

    assert category is OutcomeCategory.NETWORK
    assert txn.status is SpanStatus.ERROR
    otel_span = span_capture.get_span("order.place")
    assert otel_span.status.status_code is StatusCode.ERROR
    assert otel_span.status.description == "network"


def test_unrecognized_error_is_unknown(tracer: SpanTracer) -> None:
    txn = tracer.start_transaction("order.place", SpanOp.ORDER)
    assert tracer.record_failure(txn, KeyError("x")) is OutcomeCategory.UNKNOWN
    assert txn.attributes["failure_category"] == "unknown"


def test_nested_failure_does_not_fail_parent(
    tracer: SpanTracer, collector: InMemoryTraceCollector
) -> None:
    txn = tracer.start_transaction("product.detail.load", SpanOp.PRODUCT)
    reco = tracer.start_child(txn, "api.recommendations", SpanOp.API)
    tracer.record_failure(reco, TimeoutError())
    tracer.record_success(txn)

    tree = collector.find("product.detail.load")
    assert tree.status is SpanStatus.OK
    assert tree.children[0].status is SpanStatus.ERROR
    assert tree.children[0].attributes["failure_category"] == "network"


def test_export_happens_once_on_root_close(
    tracer: SpanTracer, collector: InMemoryTraceCollector
) -> None:
    txn = tracer.start_transaction("cart.add_item", SpanOp.CART)
    child = tracer.start_child(txn, "api.cart.add", SpanOp.API)
    tracer.record_success(child)
    assert collector.get_trees() == []

    tracer.record_success(txn)
    assert len(collector.get_trees()) == 1


class TestTiming:
    """End times never precede start times or outlive the parent."""

    def test_end_after_start(self, collector: InMemoryTraceCollector) -> None:
        clock = iter([100, 200, 150, 120])
        tracer = SpanTracer(collector, clock=lambda: next(clock))

        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        child = tracer.start_child(txn, "api.search", SpanOp.API)
        tracer.record_success(child)
        tracer.record_success(txn)

        assert child.start_time_ns == 200
        assert child.end_time_ns == 200
        assert txn.end_time_ns == 200

        tree = collector.get_trees()[0]
        for span in tree.walk():
            assert span.end_time_ns >= span.start_time_ns
            for nested in span.children:
                assert nested.end_time_ns <= span.end_time_ns

    def test_real_clock_durations(
        self, tracer: SpanTracer, collector: InMemoryTraceCollector
    ) -> None:
        with tracer.start_transaction("app.startup", SpanOp.APP):
            pass
        assert collector.get_trees()[0].duration_ns >= 0


class TestDefects:
    """Misuse of the span tree in strict mode."""

    def test_double_close(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        child = tracer.start_child(txn, "api.search", SpanOp.API)
        tracer.record_success(child)

        with pytest.raises(InstrumentationError, match="already closed"):
            tracer.record_failure(child, TimeoutError())

    def test_close_after_export(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        tracer.record_success(txn)

        with pytest.raises(InstrumentationError, match="exported"):
            tracer.record_success(txn)

    def test_parent_closed_before_child(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        tracer.start_child(txn, "api.search", SpanOp.API)

        with pytest.raises(InstrumentationError, match="before its children"):
            tracer.record_success(txn)

    def test_child_under_closed_parent(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        child = tracer.start_child(txn, "api.search", SpanOp.API)
        tracer.record_success(child)

        with pytest.raises(InstrumentationError, match="already closed"):
            tracer.start_child(child, "api.retry", SpanOp.API)

    @pytest.mark.parametrize("name", ["search", "Search.Query", "search query", ""])
    def test_invalid_span_name(self, tracer: SpanTracer, name: str) -> None:
        with pytest.raises(InstrumentationError, match="dotted identifier"):
            tracer.start_transaction(name, SpanOp.SEARCH)

    @pytest.mark.parametrize(
        "attributes",
        [
            {"search.query": "wireless headphones"},
            {"session.note": "x" * 65},
            {"search.result_count": 10_000},
            {"cart.value": 12.5},
            {"result": "success"},
            {"failure_category": "network"},
            {"Search Backend": "mock"},
            {"search.backend": ""},
        ],
    )
    def test_unbucketed_attributes(self, tracer: SpanTracer, attributes) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        with pytest.raises(InstrumentationError, match="attribute"):
            txn.set_attributes(attributes)
        assert dict(txn.attributes) == {}

    def test_accepted_attribute_values(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        txn.set_attributes(
            {
                "search.backend": "mock",
                "feature.reco_enabled": False,
                "search.page": 9_999,
                "search.offset": -9_999,
            }
        )
        assert txn.attributes["search.page"] == 9_999

    def test_collector_failure_is_logged(
        self, span_capture: SpanCapture, caplog: pytest.LogCaptureFixture
    ) -> None:
        class BrokenCollector:
            def collect(self, tree) -> None:
                raise OSError("disk full")

        tracer = SpanTracer(BrokenCollector())
        with caplog.at_level(logging.ERROR):
            tracer.record_success(tracer.start_transaction("app.startup", SpanOp.APP))

        assert "Failed to export trace app.startup" in caplog.text

    def test_defect_inside_block_is_not_a_failure(
        self,
        tracer: SpanTracer,
        collector: InMemoryTraceCollector,
        span_capture: SpanCapture,
    ) -> None:
        """A defect raised in a with block discards the tree unexported."""
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)

        with pytest.raises(InstrumentationError):
            with txn:
                with tracer.start_child(txn, "api.search", SpanOp.API) as api:
                    api.set_attribute("search.query_text", "blue running shoes")

        assert collector.get_trees() == []
        assert txn.tree.discarded
        for name in ("search.query", "api.search"):
            otel_span = span_capture.get_span(name)
            assert otel_span.status.status_code is StatusCode.UNSET
            assert "result" not in otel_span.attributes
            assert "failure_category" not in otel_span.attributes

    def test_discarded_tree_rejects_further_use(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)
        with pytest.raises(InstrumentationError):
            with txn:
                txn.set_attribute("search.backend", "")

        with pytest.raises(InstrumentationError, match="discarded"):
            tracer.record_success(txn)
        with pytest.raises(InstrumentationError, match="discarded"):
            tracer.start_child(txn, "api.search", SpanOp.API)


class TestLenientMode:
    """Defects are logged and the offending call becomes a no-op."""

    def test_parent_closed_before_child_cancels_child(
        self,
        lenient_tracer: SpanTracer,
        collector: InMemoryTraceCollector,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        txn = lenient_tracer.start_transaction("search.query", SpanOp.SEARCH)
        child = lenient_tracer.start_child(txn, "api.search", SpanOp.API)

        with caplog.at_level(logging.ERROR):
            lenient_tracer.record_success(txn)

        assert "Instrumentation defect" in caplog.text
        assert child.status is SpanStatus.CANCELLED
        assert txn.status is SpanStatus.OK
        assert collector.find("search.query").children[0].status is SpanStatus.CANCELLED

    def test_double_close_is_ignored(self, lenient_tracer: SpanTracer) -> None:
        txn = lenient_tracer.start_transaction("search.query", SpanOp.SEARCH)
        child = lenient_tracer.start_child(txn, "api.search", SpanOp.API)
        lenient_tracer.record_success(child)
        lenient_tracer.record_failure(child, TimeoutError())

        assert child.status is SpanStatus.OK
        assert child.attributes["result"] == "success"

    def test_child_of_closed_parent_is_non_recording(
        self, lenient_tracer: SpanTracer, collector: InMemoryTraceCollector
    ) -> None:
        txn = lenient_tracer.start_transaction("search.query", SpanOp.SEARCH)
        lenient_tracer.record_success(txn)

        orphan = lenient_tracer.start_child(txn, "api.search", SpanOp.API)
        assert not orphan.is_recording
        with orphan:
            orphan.set_attribute("search.backend", "mock")

        assert orphan.status is SpanStatus.UNSET
        assert collector.find("search.query").children == ()

    def test_invalid_attributes_are_dropped(self, lenient_tracer: SpanTracer) -> None:
        txn = lenient_tracer.start_transaction("search.query", SpanOp.SEARCH)
        txn.set_attributes({"search.query": "free text here", "search.backend": "mock"})
        assert dict(txn.attributes) == {"search.backend": "mock"}


class TestCancellation:
    """Cancellation closes the whole tree with status cancelled."""

    def test_record_cancellation_cascades(
        self, tracer: SpanTracer, collector: InMemoryTraceCollector
    ) -> None:
        txn = tracer.start_transaction("order.place", SpanOp.ORDER)
        child = tracer.start_child(txn, "api.order.create", SpanOp.API)
        grandchild = tracer.start_child(child, "api.order.retry", SpanOp.API)

        tracer.record_cancellation(txn)

        for span in (txn, child, grandchild):
            assert span.status is SpanStatus.CANCELLED
            assert span.attributes["result"] == "cancel"
        assert txn.tree.cancelled
        assert collector.find("order.place").status is SpanStatus.CANCELLED

    def test_no_children_after_cancellation(self, tracer: SpanTracer) -> None:
        txn = tracer.start_transaction("order.place", SpanOp.ORDER)
        child = tracer.start_child(txn, "api.order.create", SpanOp.API)
        tracer.record_cancellation(child)

        with pytest.raises(InstrumentationError, match="cancelled"):
            tracer.start_child(txn, "inventory.reserve", SpanOp.INVENTORY)

    def test_cancelled_mirror_has_unset_status(
        self, tracer: SpanTracer, span_capture: SpanCapture
    ) -> None:
        tracer.record_cancellation(tracer.start_transaction("order.place", SpanOp.ORDER))
        assert span_capture.get_span("order.place").status.status_code is StatusCode.UNSET

    @pytest.mark.asyncio
    async def test_task_cancelled_mid_delay(
        self,
        tracer: SpanTracer,
        collector: InMemoryTraceCollector,
        span_capture: SpanCapture,
    ) -> None:
        """Cancelling the task during a slow call cancels the open spans."""
        backend = SimulatedBackend(
            SimulationSettings(latency_profile=LatencyProfile.SLOW)
        )
        txn = tracer.start_transaction("search.query", SpanOp.SEARCH)

        async def search() -> None:
            with txn:
                with tracer.start_child(txn, "api.search", SpanOp.API):
                    await backend.search_products("watch")
                with tracer.start_child(txn, "ui.render.results", SpanOp.UI):
                    pass

        task = asyncio.create_task(search())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        tree = collector.find("search.query")
        assert tree.status is SpanStatus.CANCELLED
        assert [child.name for child in tree.children] == ["api.search"]
        assert tree.children[0].status is SpanStatus.CANCELLED
        assert tree.duration_ns < 1_000_000_000

        with pytest.raises(InstrumentationError):
            tracer.start_child(txn, "ui.render.results", SpanOp.UI)
        assert len(span_capture.get_spans()) == 2
