"""Simulation types: endpoints, latency profiles and experiment variants."""

from __future__ import annotations

from enum import Enum


class Endpoint(str, Enum):
    """Closed set of simulated backend operations."""

    SEARCH = "search"
    PRODUCT_DETAIL = "product_detail"
    RECOMMENDATIONS = "recommendations"
    CART = "cart"
    ADDRESS_VALIDATION = "address_validation"
    SHIPPING_QUOTE = "shipping_quote"
    TAX = "tax"
    PAYMENT = "payment"
    PAYMENT_3DS = "payment_3ds"
    ORDER = "order"
    INVENTORY = "inventory"
    NOTIFICATION = "notification"


class LatencyProfile(str, Enum):
    """Named range of simulated network delay, in seconds."""

    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"

    @property
    def range(self) -> tuple[float, float]:
        return _LATENCY_RANGES[self]

    @property
    def label(self) -> str:
        return _LATENCY_LABELS[self]


_LATENCY_RANGES = {
    LatencyProfile.FAST: (0.05, 0.1),
    LatencyProfile.NORMAL: (0.2, 0.5),
    LatencyProfile.SLOW: (1.0, 3.0),
}

_LATENCY_LABELS = {
    LatencyProfile.FAST: "Fast (50-100ms)",
    LatencyProfile.NORMAL: "Normal (200-500ms)",
    LatencyProfile.SLOW: "Slow (1-3s)",
}


class ExperimentVariant(str, Enum):
    """A/B experiment arm."""

    A = "A"
    B = "B"
