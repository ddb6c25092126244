"""
Order Store

Persistence for checkout orders and the sell transition.

All state changes are conditional updates (UPDATE ... WHERE status = expected),
so concurrent callers are arbitrated by the database rather than by
read-then-write code in the application. The orchestrator never holds a row
lock across a network call; the only multi-row atomic step is try_sell().
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from marketplace.catalog.domain.models import Product
from marketplace.infra.observability.metrics import sell_transitions_total
from marketplace.ordering.domain.models import Order
from payment_system.domain.exceptions import ConflictError
from utils.transaction_utils import retry_on_deadlock

logger = logging.getLogger(__name__)


class _ProductAlreadySold(Exception):
    """Rolls back the sell transaction when the product was no longer available."""


class _OrderNotOpen(Exception):
    """Rolls back the sell transaction when the order already left 'created'."""


class OrderStore:
    """
    Store primitives used by the checkout orchestrator.

    Usage:
        store = OrderStore()
        order = store.create_order(product=product, buyer=buyer, ...)
        if store.try_sell(order, payment_id, signature):
            ...  # this order holds the sale
    """

    def create_order(self, **fields) -> Order:
        """Insert a new order in status 'created'."""
        fields.setdefault("status", Order.STATUS_CREATED)
        order = Order.objects.create(**fields)
        logger.info(f"[CHECKOUT] Created order {order.id} for product {order.product_id}")
        return order

    def get_order(self, order_id) -> Optional[Order]:
        return Order.objects.select_related("product").filter(pk=order_id).first()

    def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        return Order.objects.select_related("product").filter(gateway_order_id=gateway_order_id).first()

    def update_order(self, order_id, expected_statuses: Optional[Iterable[str]] = None, **fields) -> bool:
        """
        Update order fields, optionally only while the order is in one of expected_statuses.

        Returns:
            True if the row was updated
        """
        fields["updated_at"] = timezone.now()
        queryset = Order.objects.filter(pk=order_id)
        if expected_statuses is not None:
            queryset = queryset.filter(status__in=list(expected_statuses))
        return queryset.update(**fields) == 1

    @retry_on_deadlock(max_retries=5, delay=0.05)
    def try_sell(self, order: Order, payment_id: str, signature: str = "") -> bool:
        """
        Atomically mark the product sold and the order paid.

        Both updates are conditional and run in one transaction: the product
        must still be available and the order must still be 'created'. Under
        concurrent calls for the same product exactly one returns True.

        Returns:
            True if this order won the product, False if it was already sold

        Raises:
            ConflictError: If the order itself is no longer 'created'
                (already paid, cancelled, expired)
        """
        now = timezone.now()
        try:
            with transaction.atomic():
                product_rows = Product.objects.filter(
                    pk=order.product_id, status=Product.STATUS_AVAILABLE, is_active=True
                ).update(status=Product.STATUS_SOLD, buyer_id=order.buyer_id, sold_at=now, updated_at=now)
                if product_rows == 0:
                    raise _ProductAlreadySold()

                order_rows = Order.objects.filter(pk=order.pk, status=Order.STATUS_CREATED).update(
                    status=Order.STATUS_PAID,
                    gateway_payment_id=payment_id,
                    gateway_signature=signature,
                    paid_at=now,
                    updated_at=now,
                )
                if order_rows == 0:
                    raise _OrderNotOpen()
        except _ProductAlreadySold:
            sell_transitions_total.labels(result="already_sold").inc()
            logger.info(f"[SELL] Product {order.product_id} already sold, order {order.pk} lost the sale")
            return False
        except _OrderNotOpen:
            sell_transitions_total.labels(result="order_not_open").inc()
            raise ConflictError(f"Order {order.pk} is no longer awaiting payment")
        except IntegrityError as e:
            # Single-sale constraint or a payment id already bound to another order
            sell_transitions_total.labels(result="integrity").inc()
            logger.warning(f"[SELL] Integrity conflict selling product {order.product_id}: {e}")
            return False

        sell_transitions_total.labels(result="sold").inc()
        logger.info(f"[SELL] Product {order.product_id} sold to order {order.pk}")
        return True

    def fail_order(
        self,
        order_id,
        reason: str,
        from_statuses: Iterable[str] = (Order.STATUS_CREATED,),
        **fields,
    ) -> bool:
        """
        Move an order to Failed(reason) if it is still in one of from_statuses.

        Never touches the product.

        Returns:
            True if this call failed the order
        """
        now = timezone.now()
        updated = Order.objects.filter(pk=order_id, status__in=list(from_statuses)).update(
            status=Order.STATUS_FAILED,
            failure_reason=reason,
            failed_at=now,
            updated_at=now,
            **fields,
        )
        if updated:
            logger.info(f"[CHECKOUT] Order {order_id} failed: {reason}")
        return updated == 1

    def record_late_payment(self, order_id, payment_id: str, signature: str) -> bool:
        """
        Attach a verified payment to an order that had already failed, flagging it for refund.

        Returns:
            True if the payment was recorded by this call
        """
        try:
            updated = Order.objects.filter(
                pk=order_id, status=Order.STATUS_FAILED, gateway_payment_id__isnull=True
            ).update(
                gateway_payment_id=payment_id,
                gateway_signature=signature,
                refund_required=True,
                updated_at=timezone.now(),
            )
        except IntegrityError as e:
            logger.warning(f"[PAYMENT] Payment {payment_id} already recorded elsewhere: {e}")
            return False
        return updated == 1

    def expire_stale_orders(self, older_than: datetime) -> int:
        """Fail every 'created' order older than the cutoff with reason 'expired'."""
        now = timezone.now()
        expired = Order.objects.filter(status=Order.STATUS_CREATED, created_at__lt=older_than).update(
            status=Order.STATUS_FAILED,
            failure_reason=Order.FAILURE_EXPIRED,
            failed_at=now,
            updated_at=now,
        )
        if expired:
            logger.info(f"[CHECKOUT] Expired {expired} unpaid order(s) created before {older_than.isoformat()}")
        return expired
