"""Storefront domain models served by the simulated backend."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..telemetry.buckets import item_count_bucket, value_bucket


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    price: float = Field(ge=0)
    currency: str = "USD"
    image_url: str | None = None
    category: str
    in_stock: bool = True

    @property
    def price_formatted(self) -> str:
        return f"${self.price:.2f}"


class CartItem(BaseModel):
    id: str
    product: Product
    quantity: int = Field(ge=1)

    @property
    def total(self) -> float:
        return self.product.price * self.quantity


class Cart(BaseModel):
    items: list[CartItem] = Field(default_factory=list)
    promo_applied: bool = False
    promo_discount: float = 0.0

    @property
    def subtotal(self) -> float:
        return sum(item.total for item in self.items)

    @property
    def total(self) -> float:
        return max(0.0, self.subtotal - self.promo_discount)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def item_count_bucket(self) -> str:
        return item_count_bucket(self.item_count)

    @property
    def value_bucket(self) -> str:
        return value_bucket(self.total)


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = Field(default="US", pattern=r"^[A-Z]{2}$")

    @property
    def is_valid(self) -> bool:
        return bool(self.street and self.city and self.zip_code)


ShippingMethod = Literal["standard", "express", "pickup"]


class ShippingOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    method: ShippingMethod
    name: str
    price: float
    estimated_days: int


class TaxQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: float
    rate: float
    provider: str


class PaymentMethod(str, Enum):
    CARD = "card"
    APPLE_PAY = "apple_pay"
    PAYPAL = "paypal"


class PaymentFlow(str, Enum):
    IN_APP = "in_app"
    REDIRECT = "redirect"
    THREE_D_SECURE = "3ds"


class PaymentIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: float
    currency: str = "USD"
    status: Literal["succeeded", "requires_action"]
    requires_action: bool


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    items: list[CartItem]
    shipping_address: Address
    shipping_method: ShippingMethod
    subtotal: float
    shipping_cost: float
    tax: float
    total: float
    payment_method: PaymentMethod
    status: Literal["confirmed", "backorder"]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    fulfillment_type: Literal["ship", "pickup", "digital"]
