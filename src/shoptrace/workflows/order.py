"""Order workflows: placement and confirmation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

from ..errors import ServiceError, ValidationFailedError
from ..simulation.engine import OutcomeDetail
from ..simulation.models import Order
from ..telemetry.attributes import Attr, ResultValue, SpanOp
from .base import WorkflowService

if TYPE_CHECKING:
    from ..simulation.backend import SimulatedBackend
    from ..telemetry.context import TraceContextPropagator
    from ..telemetry.tracer import SpanTracer
    from .state import ShopState

logger = logging.getLogger(__name__)

NOTIFICATION_CHANNELS = ("email", "push")
CONFIRMATION_DELAY = 0.1


class OrderService(WorkflowService):
    """Place orders and load their confirmation.

    Notifications are sent by detached tasks: they are not cancelled with the
    order workflow and their failure never fails the order.
    """

    def __init__(
        self,
        state: ShopState,
        backend: SimulatedBackend,
        tracer: SpanTracer,
        propagator: TraceContextPropagator,
    ) -> None:
        super().__init__(state, backend, tracer, propagator)
        self._notification_tasks: set[asyncio.Task[None]] = set()

    async def place_order(self) -> Order:
        """Create the order, reserve inventory and dispatch notifications.

        Span tree: ``order.place`` > ``api.order.create``,
        ``inventory.reserve``, ``notification.dispatch``. A backorder is
        recorded as ``inventory.result=backorder`` on a successful order.

        Raises:
            ValidationFailedError: If shipping, tax or payment is missing
            ServiceError: If order creation or inventory reservation fails
        """
        state = self._state
        shipping_option = state.selected_shipping_option
        tax_quote = state.tax_quote
        payment_intent = state.payment_intent
        if shipping_option is None or tax_quote is None or payment_intent is None:
            raise ValidationFailedError("Checkout is incomplete")

        with self._transaction("order.place", SpanOp.ORDER) as txn:
            txn.set_attributes(
                {
                    Attr.Cart.ITEM_COUNT_BUCKET: state.cart.item_count_bucket,
                    Attr.Order.VALUE_BUCKET: state.cart.value_bucket,
                    Attr.Shipping.METHOD: shipping_option.method,
                }
            )

            try:
                with self._child(txn, "api.order.create", SpanOp.API):
                    order = await self._backend.create_order(
                        items=state.cart.items,
                        shipping_address=state.shipping_address,
                        shipping_option=shipping_option,
                        tax=tax_quote,
                        payment_intent_id=payment_intent.id,
                        payment_method=state.selected_payment_method,
                    )

                inventory = self._child(txn, "inventory.reserve", SpanOp.INVENTORY)
                with inventory:
                    inventory_result = await self._backend.reserve_inventory(order.id)
                    inventory.set_attribute(Attr.Inventory.RESULT, inventory_result)
            except ServiceError:
                txn.set_attribute(Attr.Order.RESULT, ResultValue.FAIL)
                raise

            if inventory_result == OutcomeDetail.BACKORDER:
                logger.info("Order created but inventory on backorder")
                order = order.model_copy(update={"status": "backorder"})

            with self._child(
                txn, "notification.dispatch", SpanOp.NOTIFICATION
            ) as dispatch:
                self._dispatch_notification(order.id, NOTIFICATION_CHANNELS)
                dispatch.set_attribute(
                    Attr.Notification.CHANNELS, ",".join(NOTIFICATION_CHANNELS)
                )

            txn.set_attributes(
                {
                    Attr.Order.RESULT: ResultValue.SUCCESS,
                    Attr.Inventory.RESULT: inventory_result,
                    Attr.Order.FULFILLMENT_TYPE: order.fulfillment_type,
                }
            )

            state.current_order = order
            state.reset_after_order()

        return order

    async def load_order_confirmation(self, order_id: str) -> None:
        with self._transaction("order.confirmation.load", SpanOp.ORDER):
            await self._backend.pause(CONFIRMATION_DELAY)

    async def wait_for_notifications(self) -> None:
        """Wait until every dispatched notification task has finished."""
        if self._notification_tasks:
            await asyncio.gather(*self._notification_tasks, return_exceptions=True)

    def _dispatch_notification(self, order_id: str, channels: Sequence[str]) -> None:
        task = asyncio.create_task(self._send_notification(order_id, channels))
        self._notification_tasks.add(task)
        task.add_done_callback(self._notification_tasks.discard)
        task.add_done_callback(_log_notification_error)

    async def _send_notification(self, order_id: str, channels: Sequence[str]) -> None:
        txn = self._transaction("notification.send", SpanOp.NOTIFICATION)
        txn.set_attribute(Attr.Notification.CHANNELS, ",".join(channels))
        try:
            with txn:
                await self._backend.send_notification(order_id, channels)
        except ServiceError as e:
            logger.warning("Notification failed (category=%s)", e.category.value)


def _log_notification_error(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Notification task failed: %r", error)
