"""Cart workflows."""

from __future__ import annotations

import logging
import uuid

from ..simulation.models import CartItem, Product
from ..telemetry.attributes import Attr, SpanOp
from ..telemetry.buckets import item_count_bucket
from .base import WorkflowService

logger = logging.getLogger(__name__)

PROMO_DISCOUNT = 10.0


class CartService(WorkflowService):
    """Add, update and remove cart items; toggle the promo discount."""

    async def add_item(self, product: Product, quantity: int = 1) -> CartItem:
        """Add a product to the cart and recalculate pricing.

        Span tree: ``cart.add_item`` > ``api.cart.add``, ``pricing.recalc``.
        """
        cart = self._state.cart
        with self._transaction("cart.add_item", SpanOp.CART) as txn:
            txn.set_attributes(
                {
                    Attr.Product.ID: product.id,
                    Attr.Cart.QUANTITY_BUCKET: item_count_bucket(quantity),
                }
            )

            with self._child(txn, "api.cart.add", SpanOp.API):
                await self._backend.add_to_cart(product.id, quantity)

            with self._child(txn, "pricing.recalc", SpanOp.PRICING) as pricing:
                item = CartItem(
                    id=str(uuid.uuid4()), product=product, quantity=quantity
                )
                cart.items.append(item)
                pricing.set_attributes(
                    {
                        Attr.Cart.ITEM_COUNT_BUCKET: cart.item_count_bucket,
                        Attr.Cart.VALUE_BUCKET: cart.value_bucket,
                        Attr.Cart.PROMO_APPLIED: cart.promo_applied,
                        Attr.Cart.CURRENCY: product.currency,
                    }
                )

            txn.set_attributes(
                {
                    Attr.Cart.ITEM_COUNT_BUCKET: cart.item_count_bucket,
                    Attr.Cart.VALUE_BUCKET: cart.value_bucket,
                }
            )

        return item

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        cart = self._state.cart
        with self._transaction("cart.update_quantity", SpanOp.CART) as txn:
            await self._backend.update_cart_item(item_id, quantity)

            for index, item in enumerate(cart.items):
                if item.id == item_id:
                    cart.items[index] = CartItem(
                        id=item_id, product=item.product, quantity=quantity
                    )
                    break

            txn.set_attribute(Attr.Cart.ITEM_COUNT_BUCKET, cart.item_count_bucket)

    async def remove_item(self, item_id: str) -> None:
        cart = self._state.cart
        with self._transaction("cart.remove_item", SpanOp.CART) as txn:
            await self._backend.remove_from_cart(item_id)
            cart.items = [item for item in cart.items if item.id != item_id]
            txn.set_attribute(Attr.Cart.ITEM_COUNT_BUCKET, cart.item_count_bucket)

    def toggle_promo(self) -> bool:
        """Toggle the promo discount. Returns whether it is now applied."""
        cart = self._state.cart
        cart.promo_applied = not cart.promo_applied
        cart.promo_discount = PROMO_DISCOUNT if cart.promo_applied else 0.0
        logger.debug("Promo applied: %s", cart.promo_applied)
        return cart.promo_applied
