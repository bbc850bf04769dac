"""Mutable storefront session state shared by the workflow services."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..simulation.models import (
    Address,
    Cart,
    Order,
    PaymentIntent,
    PaymentMethod,
    ShippingOption,
    TaxQuote,
)


@dataclass
class ShopState:
    """Single source of truth for one shopper's session."""

    is_logged_in: bool = False
    current_route: str = "home"
    cart: Cart = field(default_factory=Cart)
    shipping_address: Address = field(default_factory=Address)
    selected_shipping_option: ShippingOption | None = None
    tax_quote: TaxQuote | None = None
    selected_payment_method: PaymentMethod = PaymentMethod.CARD
    payment_intent: PaymentIntent | None = None
    payment_retry_count: int = 0
    current_order: Order | None = None

    def reset_after_order(self) -> None:
        """Clear the cart and payment retry count after a placed order."""
        self.cart = Cart()
        self.payment_retry_count = 0
