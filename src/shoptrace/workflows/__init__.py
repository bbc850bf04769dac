"""Instrumented storefront workflows.

Thin services that open spans, call the simulated backend, attach bucketed
attributes and close spans with a normalized outcome.
"""

from .app import Route, ShopApp
from .cart import CartService
from .catalog import CatalogService
from .checkout import CheckoutService
from .order import OrderService
from .payment import PaymentService
from .state import ShopState

__all__ = [
    "CartService",
    "CatalogService",
    "CheckoutService",
    "OrderService",
    "PaymentService",
    "Route",
    "ShopApp",
    "ShopState",
]
