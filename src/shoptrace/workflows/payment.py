"""Payment workflows."""

from __future__ import annotations

import logging

from ..errors import ServiceError
from ..simulation.models import PaymentFlow, PaymentIntent, PaymentMethod
from ..telemetry.attributes import Attr, ResultValue, SpanOp
from ..telemetry.buckets import retry_count_bucket
from .base import WorkflowService

logger = logging.getLogger(__name__)

PAYMENT_PROVIDER = "mockpay"
CAPTURE_DELAY = 0.2


class PaymentService(WorkflowService):
    """Select, authorize, challenge and capture payments."""

    def select_payment_method(self, method: PaymentMethod) -> None:
        txn = self._transaction("payment.method.select", SpanOp.PAYMENT)
        self._state.selected_payment_method = method
        self._tracer.record_success(
            txn,
            {
                Attr.Payment.PROVIDER: PAYMENT_PROVIDER,
                Attr.Payment.METHOD: method.value,
            },
        )

    async def authorize_payment(self, amount: float) -> PaymentIntent:
        """Create a payment intent for ``amount``.

        A failed authorization bumps the session's retry count, which is
        reported (bucketed) on the next attempt.

        Raises:
            ServiceError: provider, fraud or insufficient_funds failures
        """
        state = self._state
        with self._transaction("payment.authorize", SpanOp.PAYMENT) as txn:
            txn.set_attributes(
                {
                    Attr.Payment.PROVIDER: PAYMENT_PROVIDER,
                    Attr.Payment.METHOD: state.selected_payment_method.value,
                    Attr.Payment.RETRY_COUNT_BUCKET: retry_count_bucket(
                        state.payment_retry_count
                    ),
                }
            )

            try:
                with self._child(txn, "api.payment", SpanOp.API):
                    intent = await self._backend.create_payment_intent(
                        amount, state.selected_payment_method
                    )
            except ServiceError:
                txn.set_attribute(Attr.Payment.RESULT, ResultValue.FAIL)
                state.payment_retry_count += 1
                logger.info(
                    "Payment authorization failed (retries=%d)",
                    state.payment_retry_count,
                )
                raise

            flow = (
                PaymentFlow.THREE_D_SECURE
                if intent.requires_action
                else PaymentFlow.IN_APP
            )
            txn.set_attributes(
                {
                    Attr.Payment.FLOW: flow.value,
                    Attr.Payment.RESULT: ResultValue.SUCCESS,
                }
            )
            state.payment_intent = intent

        return intent

    async def handle_3ds_challenge(self, payment_intent_id: str) -> None:
        with self._transaction("payment.3ds.challenge", SpanOp.PAYMENT) as txn:
            txn.set_attributes(
                {
                    Attr.Payment.PROVIDER: PAYMENT_PROVIDER,
                    Attr.Payment.FLOW: PaymentFlow.THREE_D_SECURE.value,
                }
            )
            try:
                await self._backend.confirm_3ds(payment_intent_id)
            except ServiceError:
                txn.set_attribute(Attr.Payment.RESULT, ResultValue.FAIL)
                raise
            txn.set_attribute(Attr.Payment.RESULT, ResultValue.SUCCESS)

    async def capture_payment(self) -> None:
        with self._transaction("payment.capture", SpanOp.PAYMENT):
            await self._backend.pause(CAPTURE_DELAY)
