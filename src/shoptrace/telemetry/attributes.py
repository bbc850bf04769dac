"""Semantic conventions for span attributes.

Attribute keys are organized by domain. Every value written under these keys
must be an enumerated label, a bucket label, a boolean or a small integer;
raw measurements go through :mod:`shoptrace.telemetry.buckets` first.

Architecture:
    - Attr.Common.*: Keys reserved for the tracer (result, failure category)
    - Attr.Context.*: Cross-cutting keys stamped by the context propagator
    - Attr.Search.*, Attr.Product.*, Attr.Cart.*: Catalog and cart workflows
    - Attr.Checkout.*, Attr.Shipping.*, Attr.Tax.*: Checkout workflow
    - Attr.Payment.*, Attr.Order.*, Attr.Inventory.*: Payment and order
    - Attr.Notification.*, Attr.Route.*, Attr.App.*: Side effects and app

Usage:
    from shoptrace.telemetry.attributes import Attr, SpanOp

    span = tracer.start_child(txn, "api.search", SpanOp.API)
    tracer.record_success(span, {Attr.Search.RESULT_COUNT_BUCKET: "1-10"})
"""

from __future__ import annotations


class Attr:
    """Root semantic conventions namespace."""

    class Common:
        """Keys written only by the tracer."""

        RESULT = "result"
        FAILURE_CATEGORY = "failure_category"

    class Context:
        """Cross-cutting keys stamped on transactions."""

        ENVIRONMENT = "environment"
        RELEASE = "release"
        BUILD = "build"
        COUNTRY = "country"
        DEVICE_CLASS = "device.class"
        NETWORK_TYPE = "network.type"
        SESSION_ID = "session.id"
        AB_VARIANT = "ab.variant"

    class Search:
        BACKEND = "search.backend"
        RESULT_COUNT_BUCKET = "search.result_count_bucket"

    class Render:
        RESULT_COUNT_BUCKET = "render.result_count_bucket"

    class Product:
        ID = "product.id"
        RECO_ENABLED = "feature.reco_enabled"

    class Cart:
        ITEM_COUNT_BUCKET = "cart.item_count_bucket"
        VALUE_BUCKET = "cart.value_bucket"
        QUANTITY_BUCKET = "cart.quantity_bucket"
        PROMO_APPLIED = "promo.applied"
        CURRENCY = "currency"

    class Checkout:
        TYPE = "checkout.type"
        ADDRESS_COUNTRY = "address.country"
        VALIDATION_RESULT = "validation.result"

    class Shipping:
        DESTINATION_COUNTRY = "shipping.destination_country"
        METHOD = "shipping.method"
        OPTION_COUNT_BUCKET = "shipping.option_count_bucket"

    class Tax:
        PROVIDER = "tax.provider"
        COUNTRY = "country"

    class Payment:
        PROVIDER = "payment.provider"
        METHOD = "payment.method"
        FLOW = "payment.flow"
        RESULT = "payment.result"
        RETRY_COUNT_BUCKET = "retry.count_bucket"

    class Order:
        RESULT = "order.result"
        VALUE_BUCKET = "order.value_bucket"
        FULFILLMENT_TYPE = "fulfillment.type"

    class Inventory:
        RESULT = "inventory.result"

    class Notification:
        CHANNELS = "notification.channels"

    class Route:
        FROM = "route.from"
        TO = "route.to"

    class App:
        STARTUP_TYPE = "app.startup_type"


class SpanOp:
    """Coarse operation classes used to group spans."""

    API = "api"
    UI = "ui"
    SEARCH = "search"
    PRODUCT = "product"
    CART = "cart"
    PRICING = "pricing"
    CHECKOUT = "checkout"
    PAYMENT = "payment"
    ORDER = "order"
    INVENTORY = "inventory"
    NOTIFICATION = "notification"
    NAVIGATION = "navigation"
    APP = "app"


class ResultValue:
    """Values written under ``Attr.Common.RESULT``."""

    SUCCESS = "success"
    FAIL = "fail"
    CANCEL = "cancel"


RESERVED_KEYS = frozenset({Attr.Common.RESULT, Attr.Common.FAILURE_CATEGORY})
