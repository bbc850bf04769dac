"""Catalog workflows: product search and product detail."""

from __future__ import annotations

import logging

from ..errors import ServiceError
from ..simulation.models import Product
from ..telemetry.attributes import Attr, SpanOp
from ..telemetry.buckets import result_count_bucket
from .base import WorkflowService

logger = logging.getLogger(__name__)


class CatalogService(WorkflowService):
    """Search and product detail, each recorded as one transaction."""

    async def search(self, query: str) -> list[Product]:
        """Search products by name or category.

        Span tree: ``search.query`` > ``api.search``, ``ui.render.results``.
        """
        with self._transaction("search.query", SpanOp.SEARCH) as txn:
            txn.set_attribute(Attr.Search.BACKEND, "mock")

            with self._child(txn, "api.search", SpanOp.API) as api:
                results = await self._backend.search_products(query)
                bucket = result_count_bucket(len(results))
                api.set_attribute(Attr.Search.RESULT_COUNT_BUCKET, bucket)

            with self._child(txn, "ui.render.results", SpanOp.UI) as render:
                render.set_attribute(Attr.Render.RESULT_COUNT_BUCKET, bucket)

            txn.set_attribute(Attr.Search.RESULT_COUNT_BUCKET, bucket)

        return results

    async def get_product_detail(
        self, product_id: str, include_recommendations: bool = True
    ) -> tuple[Product, list[Product]]:
        """Load one product and, optionally, its recommendations.

        A failed recommendations call is recorded on its own span but never
        fails the surrounding transaction.
        """
        with self._transaction("product.detail.load", SpanOp.PRODUCT) as txn:
            txn.set_attributes(
                {
                    Attr.Product.ID: product_id,
                    Attr.Product.RECO_ENABLED: include_recommendations,
                }
            )

            with self._child(txn, "api.product.detail", SpanOp.API):
                product = await self._backend.get_product_detail(product_id)

            recommendations: list[Product] = []
            if include_recommendations:
                with self._child(txn, "api.recommendations", SpanOp.API) as reco:
                    try:
                        recommendations = await self._backend.get_recommendations(
                            product_id
                        )
                    except ServiceError as e:
                        category = self._tracer.record_failure(reco, e)
                        logger.warning(
                            "Recommendations unavailable (category=%s)", category.value
                        )

        return product, recommendations
