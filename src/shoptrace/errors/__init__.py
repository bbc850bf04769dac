"""Shoptrace exceptions module.

This module exposes the outcome taxonomy, the typed service errors and the
instrumentation defect signal.
"""

from .errors import (
    FraudDeclinedError,
    InstrumentationError,
    InsufficientFundsError,
    NetworkError,
    NotFoundError,
    OutcomeCategory,
    ProviderError,
    ServiceError,
    UnknownServiceError,
    ValidationFailedError,
    categorize,
    error_for,
)

__all__ = [
    "OutcomeCategory",
    "ServiceError",
    "NetworkError",
    "ValidationFailedError",
    "ProviderError",
    "FraudDeclinedError",
    "InsufficientFundsError",
    "NotFoundError",
    "UnknownServiceError",
    "InstrumentationError",
    "categorize",
    "error_for",
]
