"""Order refunds — commands and handler.

``ProcessOrderRefund`` without an amount refunds whatever remains of the total;
with an amount it behaves exactly like ``ProcessOrderPartialRefund``. Both
accept an idempotency key: a retry whose key is already in the order's refund
history returns the original refund without a second financial effect.

Callers that can race (API, payment reactions) should go through
``shared.dispatch.dispatch(command, serialize_on=order_id)`` so two refunds for
the same order never interleave their read-check-write.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from sales.order.lookup import get_order
from sales.order.order import Order
from shared.money import Money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RefundSummary:
    order_id: str
    refund_id: str
    refund_amount: float
    currency: str
    total_refunded: float
    remaining: float
    is_fully_refunded: bool
    status: str
    payment_status: str
    reason: str | None
    refunded_at: datetime


@sales.command(part_of="Order")
class ProcessOrderRefund:
    order_id = Identifier(required=True)
    amount = Float()  # None → full refund of the remaining total
    currency = String(max_length=3)
    reason = String(max_length=500)
    idempotency_key = String(max_length=255)


@sales.command(part_of="Order")
class ProcessOrderPartialRefund:
    order_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3)
    reason = String(max_length=500)
    idempotency_key = String(max_length=255)


def _summarize(order: Order, record) -> RefundSummary:
    remaining = Money.of(order.total, order.currency).subtract(Money.of(order.refunded_amount, order.currency))
    return RefundSummary(
        order_id=str(order.id),
        refund_id=str(record.id),
        refund_amount=record.amount,
        currency=record.currency,
        total_refunded=order.refunded_amount,
        remaining=remaining.amount_float,
        is_fully_refunded=order.is_fully_refunded,
        status=order.status,
        payment_status=order.payment_status,
        reason=record.reason,
        refunded_at=record.refunded_at,
    )


@sales.command_handler(part_of=Order)
class OrderRefundHandler:
    @handle(ProcessOrderRefund)
    def process_refund(self, command):
        if command.amount is not None:
            return self._partial(
                command.order_id, command.amount, command.currency, command.reason, command.idempotency_key
            )

        order = get_order(command.order_id)
        record = order.process_refund(reason=command.reason, idempotency_key=command.idempotency_key)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order refunded in full",
            order_id=str(order.id),
            amount=record.amount,
            currency=record.currency,
        )
        return _summarize(order, record)

    @handle(ProcessOrderPartialRefund)
    def process_partial_refund(self, command):
        return self._partial(command.order_id, command.amount, command.currency, command.reason, command.idempotency_key)

    def _partial(self, order_id, amount, currency, reason, idempotency_key):
        order = get_order(order_id)
        record = order.process_partial_refund(
            amount=amount,
            currency=currency,
            reason=reason,
            idempotency_key=idempotency_key,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order partially refunded",
            order_id=str(order.id),
            amount=record.amount,
            total_refunded=order.refunded_amount,
            fully_refunded=order.is_fully_refunded,
        )
        return _summarize(order, record)
