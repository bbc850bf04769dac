"""Tests for instrumented catalog and cart workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shoptrace.errors import NetworkError, NotFoundError, ProviderError
from shoptrace.simulation import Endpoint
from shoptrace.simulation.backend import MOCK_PRODUCTS
from shoptrace.telemetry import Attr, SpanStatus

if TYPE_CHECKING:
    from shoptrace.simulation import SimulationSettings
    from shoptrace.telemetry import InMemoryTraceCollector
    from shoptrace.workflows import ShopApp

CONTEXT_KEYS = {
    Attr.Context.ENVIRONMENT,
    Attr.Context.RELEASE,
    Attr.Context.BUILD,
    Attr.Context.COUNTRY,
    Attr.Context.DEVICE_CLASS,
    Attr.Context.NETWORK_TYPE,
    Attr.Context.SESSION_ID,
    Attr.Context.AB_VARIANT,
}


class TestSearch:
    """Tests for CatalogService.search."""

    @pytest.mark.asyncio
    async def test_search_tree(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        results = await app.catalog.search("watch")

        assert [p.name for p in results] == ["Smart Watch"]
        tree = collector.find("search.query")
        assert tree.status is SpanStatus.OK
        assert tree.operation == "search"
        assert [c.name for c in tree.children] == ["api.search", "ui.render.results"]
        assert all(span.status is SpanStatus.OK for span in tree.walk())

        assert CONTEXT_KEYS <= set(tree.attributes)
        assert tree.attributes[Attr.Search.BACKEND] == "mock"
        assert tree.attributes[Attr.Search.RESULT_COUNT_BUCKET] == "1-10"
        assert tree.find("api.search").attributes[Attr.Search.RESULT_COUNT_BUCKET] == (
            "1-10"
        )
        assert tree.find("ui.render.results").attributes[
            Attr.Render.RESULT_COUNT_BUCKET
        ] == "1-10"

    @pytest.mark.asyncio
    async def test_empty_search(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        assert await app.catalog.search("sofa") == []
        tree = collector.find("search.query")
        assert tree.attributes[Attr.Search.RESULT_COUNT_BUCKET] == "0"

    @pytest.mark.asyncio
    async def test_search_failure(
        self,
        app: ShopApp,
        settings: SimulationSettings,
        collector: InMemoryTraceCollector,
    ) -> None:
        settings.set_failure(Endpoint.SEARCH, True)

        with pytest.raises(NetworkError):
            await app.catalog.search("watch")

        tree = collector.find("search.query")
        assert tree.status is SpanStatus.ERROR
        assert tree.attributes["failure_category"] == "network"
        assert [c.name for c in tree.children] == ["api.search"]
        assert tree.children[0].status is SpanStatus.ERROR

    @pytest.mark.asyncio
    async def test_variant_is_stamped(
        self,
        app: ShopApp,
        settings: SimulationSettings,
        collector: InMemoryTraceCollector,
    ) -> None:
        settings.set_experiment_variant("B")
        await app.catalog.search("cable")
        assert collector.find("search.query").attributes[Attr.Context.AB_VARIANT] == "B"


class TestProductDetail:
    """Tests for CatalogService.get_product_detail."""

    @pytest.mark.asyncio
    async def test_with_recommendations(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        product, recommendations = await app.catalog.get_product_detail("2")

        assert product.name == "Smart Watch"
        assert len(recommendations) == 3
        tree = collector.find("product.detail.load")
        assert tree.status is SpanStatus.OK
        assert [c.name for c in tree.children] == [
            "api.product.detail",
            "api.recommendations",
        ]
        assert tree.attributes[Attr.Product.ID] == "2"
        assert tree.attributes[Attr.Product.RECO_ENABLED] is True

    @pytest.mark.asyncio
    async def test_without_recommendations(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        _, recommendations = await app.catalog.get_product_detail(
            "2", include_recommendations=False
        )

        assert recommendations == []
        tree = collector.find("product.detail.load")
        assert [c.name for c in tree.children] == ["api.product.detail"]
        assert tree.attributes[Attr.Product.RECO_ENABLED] is False

    @pytest.mark.asyncio
    async def test_recommendation_failure_is_not_fatal(
        self,
        app: ShopApp,
        settings: SimulationSettings,
        collector: InMemoryTraceCollector,
    ) -> None:
        settings.set_failure(Endpoint.RECOMMENDATIONS, True)

        product, recommendations = await app.catalog.get_product_detail("1")

        assert product.id == "1"
        assert recommendations == []
        tree = collector.find("product.detail.load")
        assert tree.status is SpanStatus.OK
        assert tree.attributes["result"] == "success"
        reco = tree.find("api.recommendations")
        assert reco.status is SpanStatus.ERROR
        assert reco.attributes["failure_category"] == "provider"

    @pytest.mark.asyncio
    async def test_unknown_product(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        with pytest.raises(NotFoundError):
            await app.catalog.get_product_detail("404")

        tree = collector.find("product.detail.load")
        assert tree.status is SpanStatus.ERROR
        assert tree.attributes["failure_category"] == "not_found"
        assert [c.name for c in tree.children] == ["api.product.detail"]


class TestCart:
    """Tests for CartService."""

    @pytest.mark.asyncio
    async def test_add_item(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        item = await app.cart.add_item(MOCK_PRODUCTS[0], quantity=2)

        assert app.state.cart.items == [item]
        assert app.state.cart.total == pytest.approx(599.98)
        tree = collector.find("cart.add_item")
        assert [c.name for c in tree.children] == ["api.cart.add", "pricing.recalc"]
        assert tree.attributes[Attr.Cart.ITEM_COUNT_BUCKET] == "2-3"
        assert tree.attributes[Attr.Cart.VALUE_BUCKET] == "$250+"
        assert tree.attributes[Attr.Cart.QUANTITY_BUCKET] == "2-3"
        pricing = tree.find("pricing.recalc")
        assert pricing.attributes[Attr.Cart.PROMO_APPLIED] is False
        assert pricing.attributes[Attr.Cart.CURRENCY] == "USD"

    @pytest.mark.asyncio
    async def test_add_item_failure_leaves_cart_unchanged(
        self,
        app: ShopApp,
        settings: SimulationSettings,
        collector: InMemoryTraceCollector,
    ) -> None:
        settings.set_failure(Endpoint.CART, True)

        with pytest.raises(ProviderError):
            await app.cart.add_item(MOCK_PRODUCTS[0])

        assert app.state.cart.items == []
        tree = collector.find("cart.add_item")
        assert tree.attributes["failure_category"] == "provider"
        assert [c.name for c in tree.children] == ["api.cart.add"]

    @pytest.mark.asyncio
    async def test_update_and_remove(
        self, app: ShopApp, collector: InMemoryTraceCollector
    ) -> None:
        item = await app.cart.add_item(MOCK_PRODUCTS[3])

        await app.cart.update_quantity(item.id, 5)
        assert app.state.cart.item_count == 5
        update = collector.find("cart.update_quantity")
        assert update.attributes[Attr.Cart.ITEM_COUNT_BUCKET] == "4-10"

        await app.cart.remove_item(item.id)
        assert app.state.cart.items == []
        remove = collector.find("cart.remove_item")
        assert remove.attributes[Attr.Cart.ITEM_COUNT_BUCKET] == "0"

    @pytest.mark.asyncio
    async def test_promo(self, app: ShopApp) -> None:
        await app.cart.add_item(MOCK_PRODUCTS[6])

        assert app.cart.toggle_promo() is True
        assert app.state.cart.total == pytest.approx(14.99)
        assert app.state.cart.value_bucket == "$0-25"

        assert app.cart.toggle_promo() is False
        assert app.state.cart.total == pytest.approx(24.99)

    def test_promo_never_makes_total_negative(self, app: ShopApp) -> None:
        app.cart.toggle_promo()
        assert app.state.cart.total == 0.0
        assert app.state.cart.value_bucket == "$0-25"
