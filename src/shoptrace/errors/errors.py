"""Shoptrace exceptions and the outcome taxonomy.

Two distinct layers live here:

- ``ServiceError`` and its subclasses are business outcomes. Each carries one
  :class:`OutcomeCategory` and is expected, recorded on spans and handed back
  to the workflow that triggered it.
- ``InstrumentationError`` signals a programming defect in the use of the
  span tree (closing twice, closing a parent before its children, stamping
  an unbucketed value). It is never categorized as a business outcome.
"""

from __future__ import annotations

from enum import Enum

from pydantic import ValidationError


class OutcomeCategory(str, Enum):
    """Closed set of failure categories recorded on spans."""

    NETWORK = "network"
    VALIDATION = "validation"
    PROVIDER = "provider"
    FRAUD = "fraud"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ServiceError(Exception):
    """Typed business failure tagged with one outcome category."""

    category: OutcomeCategory = OutcomeCategory.UNKNOWN
    description: str = "An unknown error occurred"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.description)


class NetworkError(ServiceError):
    """Network connection failed."""

    category = OutcomeCategory.NETWORK
    description = "Network connection failed"


class ValidationFailedError(ServiceError):
    """Request data failed validation."""

    category = OutcomeCategory.VALIDATION
    description = "Validation failed"


class ProviderError(ServiceError):
    """Downstream provider failed."""

    category = OutcomeCategory.PROVIDER
    description = "Service provider error"


class FraudDeclinedError(ServiceError):
    """Payment declined by the fraud check."""

    category = OutcomeCategory.FRAUD
    description = "Payment declined - fraud check"


class InsufficientFundsError(ServiceError):
    """Payment declined for insufficient funds."""

    category = OutcomeCategory.INSUFFICIENT_FUNDS
    description = "Insufficient funds"


class NotFoundError(ServiceError):
    """Requested resource does not exist."""

    category = OutcomeCategory.NOT_FOUND
    description = "Resource not found"


class UnknownServiceError(ServiceError):
    """Failure with no more specific category."""

    category = OutcomeCategory.UNKNOWN
    description = "An unknown error occurred"


class InstrumentationError(RuntimeError):
    """Programming defect in span tree usage."""


_ERRORS_BY_CATEGORY: dict[OutcomeCategory, type[ServiceError]] = {
    cls.category: cls
    for cls in (
        NetworkError,
        ValidationFailedError,
        ProviderError,
        FraudDeclinedError,
        InsufficientFundsError,
        NotFoundError,
        UnknownServiceError,
    )
}


def error_for(category: OutcomeCategory) -> ServiceError:
    """Build the typed service error for a category."""
    return _ERRORS_BY_CATEGORY[OutcomeCategory(category)]()


def categorize(error: BaseException | None) -> OutcomeCategory:
    """Resolve any raised error to exactly one outcome category.

    Args:
        error: The error raised by a unit of work, or None

    Returns:
        The matching category; ``OutcomeCategory.UNKNOWN`` for anything
        unrecognized.
    """
    if isinstance(error, ServiceError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return OutcomeCategory.NETWORK
    if isinstance(error, ValidationError):
        return OutcomeCategory.VALIDATION
    return OutcomeCategory.UNKNOWN
