"""Simulated storefront backend.

Every public coroutine is one logical endpoint call: it takes a single
settings snapshot, asks the :class:`~shoptrace.simulation.engine.SimulationEngine`
for a delay and outcome, suspends for the delay, then either raises the typed
:class:`~shoptrace.errors.ServiceError` or returns mock data. The delay is the
only suspension point, so cancelling the calling task interrupts it there.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Awaitable, Callable, Sequence

from ..errors import NotFoundError
from .engine import OutcomeDetail, SimulatedOutcome, SimulationEngine
from .models import (
    Address,
    CartItem,
    Order,
    PaymentIntent,
    PaymentMethod,
    Product,
    ShippingOption,
    TaxQuote,
)
from .settings import SimulationSettings
from .types import Endpoint

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

TAX_RATE = 0.08
RECOMMENDATION_COUNT = 3

MOCK_PRODUCTS: tuple[Product, ...] = tuple(
    Product(id=id_, name=name, description=description, price=price, category=category)
    for id_, name, description, price, category in (
        ("1", "Wireless Headphones", "Premium noise-canceling headphones", 299.99, "Electronics"),
        ("2", "Smart Watch", "Fitness tracking smartwatch", 399.99, "Electronics"),
        ("3", "Laptop Stand", "Ergonomic aluminum stand", 49.99, "Accessories"),
        ("4", "USB-C Cable", "Fast charging cable 2m", 19.99, "Accessories"),
        ("5", "Mechanical Keyboard", "RGB backlit gaming keyboard", 149.99, "Electronics"),
        ("6", "Wireless Mouse", "Ergonomic wireless mouse", 79.99, "Electronics"),
        ("7", "Phone Case", "Protective silicone case", 24.99, "Accessories"),
        ("8", "Power Bank", "20,000mAh portable charger", 59.99, "Electronics"),
    )
)

SHIPPING_OPTIONS: tuple[ShippingOption, ...] = (
    ShippingOption(
        id="std", method="standard", name="Standard Shipping", price=5.99, estimated_days=5
    ),
    ShippingOption(
        id="exp", method="express", name="Express Shipping", price=15.99, estimated_days=2
    ),
    ShippingOption(
        id="pickup", method="pickup", name="Store Pickup", price=0.0, estimated_days=1
    ),
)


class SimulatedBackend:
    """Async mock backend with configurable latency and failure injection.

    Args:
        settings: Simulation configuration store
        engine: Decision engine (defaults to one reading ``settings``)
        rng: Random source for mock data (recommendation picks)
        sleep: Awaitable used to wait out simulated delays
    """

    def __init__(
        self,
        settings: SimulationSettings | None = None,
        engine: SimulationEngine | None = None,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if settings is None:
            settings = engine.settings if engine else SimulationSettings()
        self._settings = settings
        self._engine = engine or SimulationEngine(self._settings)
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._products = {product.id: product for product in MOCK_PRODUCTS}

    @property
    def settings(self) -> SimulationSettings:
        return self._settings

    @property
    def engine(self) -> SimulationEngine:
        return self._engine

    async def call(self, endpoint: Endpoint) -> SimulatedOutcome:
        """Perform one simulated call.

        Raises:
            ServiceError: The typed failure chosen by the engine
            asyncio.CancelledError: If the calling task is cancelled mid-delay
        """
        snapshot = self._settings.snapshot()
        delay, outcome = self._engine.execute(endpoint, snapshot)
        if delay > 0:
            await self._sleep(delay)
        if not outcome.ok:
            logger.debug("Simulated %s failed: %s", endpoint.value, outcome.category)
            raise outcome.to_error()
        return outcome

    async def pause(self, seconds: float) -> None:
        """Wait a fixed amount of simulated processing time."""
        await self._sleep(seconds)

    async def search_products(self, query: str) -> list[Product]:
        await self.call(Endpoint.SEARCH)
        needle = query.lower()
        return [
            product
            for product in MOCK_PRODUCTS
            if needle in product.name.lower() or needle in product.category.lower()
        ]

    async def get_product_detail(self, product_id: str) -> Product:
        await self.call(Endpoint.PRODUCT_DETAIL)
        try:
            return self._products[product_id]
        except KeyError:
            raise NotFoundError() from None

    async def get_recommendations(self, product_id: str) -> list[Product]:
        await self.call(Endpoint.RECOMMENDATIONS)
        return self._rng.sample(MOCK_PRODUCTS, RECOMMENDATION_COUNT)

    async def add_to_cart(self, product_id: str, quantity: int) -> None:
        await self.call(Endpoint.CART)

    async def update_cart_item(self, item_id: str, quantity: int) -> None:
        await self.call(Endpoint.CART)

    async def remove_from_cart(self, item_id: str) -> None:
        await self.call(Endpoint.CART)

    async def validate_address(self, address: Address) -> bool:
        await self.call(Endpoint.ADDRESS_VALIDATION)
        return address.is_valid

    async def get_shipping_options(self, address: Address) -> list[ShippingOption]:
        await self.call(Endpoint.SHIPPING_QUOTE)
        return list(SHIPPING_OPTIONS)

    async def calculate_tax(self, amount: float, address: Address) -> TaxQuote:
        await self.call(Endpoint.TAX)
        return TaxQuote(amount=amount * TAX_RATE, rate=TAX_RATE, provider="mock")

    async def create_payment_intent(
        self, amount: float, method: PaymentMethod
    ) -> PaymentIntent:
        outcome = await self.call(Endpoint.PAYMENT)
        requires_action = outcome.detail == OutcomeDetail.REQUIRES_ACTION
        return PaymentIntent(
            id=str(uuid.uuid4()),
            amount=amount,
            status="requires_action" if requires_action else "succeeded",
            requires_action=requires_action,
        )

    async def confirm_3ds(self, payment_intent_id: str) -> None:
        await self.call(Endpoint.PAYMENT_3DS)

    async def create_order(
        self,
        items: Sequence[CartItem],
        shipping_address: Address,
        shipping_option: ShippingOption,
        tax: TaxQuote,
        payment_intent_id: str,
        payment_method: PaymentMethod = PaymentMethod.CARD,
    ) -> Order:
        await self.call(Endpoint.ORDER)
        subtotal = sum(item.total for item in items)
        return Order(
            id=str(uuid.uuid4()),
            items=list(items),
            shipping_address=shipping_address,
            shipping_method=shipping_option.method,
            subtotal=subtotal,
            shipping_cost=shipping_option.price,
            tax=tax.amount,
            total=subtotal + shipping_option.price + tax.amount,
            payment_method=payment_method,
            status="confirmed",
            fulfillment_type="pickup" if shipping_option.method == "pickup" else "ship",
        )

    async def reserve_inventory(self, order_id: str) -> str:
        """Reserve stock for an order.

        Returns:
            ``"reserved"``, or ``"backorder"`` when stock is short (the order
            still succeeds)
        """
        outcome = await self.call(Endpoint.INVENTORY)
        return outcome.detail or OutcomeDetail.RESERVED

    async def send_notification(self, order_id: str, channels: Sequence[str]) -> None:
        await self.call(Endpoint.NOTIFICATION)
