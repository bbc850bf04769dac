"""Checkout workflows: start, address, shipping and tax."""

from __future__ import annotations

import logging

from ..errors import ValidationFailedError
from ..simulation.models import Address, ShippingOption
from ..telemetry.attributes import Attr, ResultValue, SpanOp
from ..telemetry.buckets import result_count_bucket
from .base import WorkflowService

logger = logging.getLogger(__name__)


class CheckoutService(WorkflowService):
    def start_checkout(self) -> None:
        cart = self._state.cart
        checkout_type = "logged_in" if self._state.is_logged_in else "guest"
        txn = self._transaction("checkout.start", SpanOp.CHECKOUT)
        self._tracer.record_success(
            txn,
            {
                Attr.Checkout.TYPE: checkout_type,
                Attr.Cart.ITEM_COUNT_BUCKET: cart.item_count_bucket,
                Attr.Cart.VALUE_BUCKET: cart.value_bucket,
            },
        )

    async def submit_address(self, address: Address) -> None:
        """Validate and store the shipping address.

        Raises:
            ValidationFailedError: If the address is incomplete
        """
        with self._transaction("checkout.address.submit", SpanOp.CHECKOUT) as txn:
            txn.set_attribute(Attr.Checkout.ADDRESS_COUNTRY, address.country)

            with self._child(txn, "api.address.validate", SpanOp.API) as validation:
                is_valid = await self._backend.validate_address(address)
                if not is_valid:
                    validation.set_attribute(
                        Attr.Checkout.VALIDATION_RESULT, ResultValue.FAIL
                    )
                    raise ValidationFailedError()
                validation.set_attribute(
                    Attr.Checkout.VALIDATION_RESULT, ResultValue.SUCCESS
                )

            self._state.shipping_address = address

    async def load_shipping_options(self) -> list[ShippingOption]:
        address = self._state.shipping_address
        txn = self._transaction("checkout.shipping_options.load", SpanOp.CHECKOUT)
        with txn:
            txn.set_attribute(Attr.Shipping.DESTINATION_COUNTRY, address.country)

            with self._child(txn, "api.shipping.quote", SpanOp.API) as quote:
                options = await self._backend.get_shipping_options(address)
                quote.set_attribute(
                    Attr.Shipping.OPTION_COUNT_BUCKET, result_count_bucket(len(options))
                )

        return options

    def select_shipping_method(self, option: ShippingOption) -> None:
        self._state.selected_shipping_option = option
        logger.debug("Shipping method selected: %s", option.method)

    async def calculate_tax(self) -> None:
        """Quote tax on the cart total plus shipping.

        Raises:
            ValidationFailedError: If no shipping method was selected
        """
        shipping_option = self._state.selected_shipping_option
        if shipping_option is None:
            raise ValidationFailedError("No shipping method selected")

        address = self._state.shipping_address
        with self._transaction("checkout.tax.calculate", SpanOp.CHECKOUT) as txn:
            txn.set_attributes(
                {Attr.Tax.PROVIDER: "mock", Attr.Tax.COUNTRY: address.country}
            )

            with self._child(txn, "api.tax", SpanOp.API):
                subtotal = self._state.cart.total + shipping_option.price
                tax_quote = await self._backend.calculate_tax(subtotal, address)

            self._state.tax_quote = tax_quote
