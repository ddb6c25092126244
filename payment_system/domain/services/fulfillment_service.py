"""
FulfillmentService - Shipment booking and tracking for sold orders

Runs after the sell transition. Nothing here can undo a sale: a booking
failure leaves the order 'paid' with shipping_booking_failed set for manual
follow-up, and a tracking failure is reported as temporarily unavailable.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils import timezone

from infrastructure.shipping import ShipmentBooking, ShipmentRequest, ShippingException
from marketplace.ordering.domain.models import Order
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from payment_system.domain.events.definitions import CheckoutCompleted, ShipmentBookingFailed
from payment_system.infra.observability.metrics import shipment_bookings_total, tracking_lookups_total

logger = logging.getLogger(__name__)


class FulfillmentService(BaseService):
    """
    Service for the post-payment half of checkout.

    Responsibilities:
    - Book a carrier shipment when the product ships and an address was given
    - Move the order to completed and emit the buyer notification event
    - Report tracking status for shipped orders

    Dependencies:
    - ShippingCarrierInterface: serviceability, booking, tracking
    - OrderStore: conditional order updates
    - EventBus: domain events
    """

    def __init__(self, carrier, store, event_bus):
        super().__init__()
        self.carrier = carrier
        self.store = store
        self.event_bus = event_bus

    @staticmethod
    def needs_shipment(order: Order) -> bool:
        return order.product.requires_carrier and order.wants_delivery and order.has_delivery_address

    @BaseService.log_performance
    def complete_sale(self, order: Order) -> Order:
        """
        Finish a paid order: book the shipment if needed, then complete.

        Returns:
            The order as persisted after this call
        """
        if self.needs_shipment(order):
            booking = self.book_shipment(order)
            if not booking.ok:
                return self.store.get_order(order.pk)

        now = timezone.now()
        completed = self.store.update_order(
            order.pk,
            expected_statuses=[Order.STATUS_PAID, Order.STATUS_SHIPMENT_BOOKED],
            status=Order.STATUS_COMPLETED,
            completed_at=now,
        )
        order = self.store.get_order(order.pk)

        if completed:
            self.logger.info(f"[CHECKOUT] Order {order.pk} completed")
            self._publish(
                CheckoutCompleted(
                    order_id=str(order.pk),
                    product_id=str(order.product_id),
                    buyer_id=str(order.buyer_id),
                    seller_id=str(order.seller_id),
                    amount=order.amount,
                    currency=order.currency,
                    awb_code=order.awb_code or None,
                    occurred_at=now,
                )
            )
        return order

    @BaseService.log_performance
    def book_shipment(self, order: Order) -> ServiceResult[ShipmentBooking]:
        """
        Book a carrier shipment for a paid order.

        Never retried automatically. On failure the order stays 'paid' and is
        flagged for manual follow-up.
        """
        if order.status != Order.STATUS_PAID:
            return service_err(ErrorCodes.INVALID_ORDER_STATE, f"Order is {order.status}, not paid")

        try:
            booking = self.carrier.book_shipment(self._shipment_request(order))
        except Exception as e:
            # The sale has committed; any carrier fault here is a booking to follow up by hand
            shipment_bookings_total.labels(status="failed").inc()
            self.logger.error(
                f"[SHIPPING] Booking failed for paid order {order.pk}: {e}",
                exc_info=True,
            )
            self.store.update_order(
                order.pk,
                expected_statuses=[Order.STATUS_PAID],
                shipping_booking_failed=True,
                shipping_error=str(e)[:1000],
            )
            self._publish(
                ShipmentBookingFailed(
                    order_id=str(order.pk),
                    product_id=str(order.product_id),
                    error=str(e)[:500],
                    occurred_at=timezone.now(),
                )
            )
            return service_err(ErrorCodes.SHIPPING_UNAVAILABLE, "Shipment booking failed, queued for follow-up")

        self.store.update_order(
            order.pk,
            expected_statuses=[Order.STATUS_PAID],
            status=Order.STATUS_SHIPMENT_BOOKED,
            carrier_order_id=booking.carrier_order_id,
            carrier_shipment_id=booking.shipment_id,
            awb_code=booking.awb_code,
            courier_name=booking.courier_name,
            tracking_url=booking.tracking_url,
            shipping_booking_failed=False,
            shipping_error="",
            shipment_booked_at=timezone.now(),
        )
        shipment_bookings_total.labels(status="booked").inc()
        self.logger.info(f"[SHIPPING] Order {order.pk} booked with {booking.courier_name}, AWB {booking.awb_code}")
        return service_ok(booking)

    @BaseService.log_performance
    def track_order(self, order_id, user) -> ServiceResult[dict]:
        """
        Tracking status for an order, visible to its buyer and seller.

        Carrier failures are reported as tracking_unavailable, never as a lost shipment.
        """
        order = self.store.get_order(order_id)
        if order is None:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, "Order not found")
        if user.pk not in (order.buyer_id, order.seller_id):
            return service_err(ErrorCodes.NOT_ORDER_OWNER, "You do not have access to this order")
        if not order.awb_code:
            return service_err(ErrorCodes.NOT_SHIPPED, "This order has not been shipped with a carrier")

        try:
            status = self.carrier.track_shipment(order.awb_code)
        except ShippingException as e:
            tracking_lookups_total.labels(status="unavailable").inc()
            self.logger.warning(f"[SHIPPING] Tracking unavailable for AWB {order.awb_code}: {e}")
            return service_err(
                ErrorCodes.TRACKING_UNAVAILABLE, "Tracking is temporarily unavailable. Please try again later."
            )

        tracking_lookups_total.labels(status="ok").inc()
        return service_ok(
            {
                "order_id": str(order.pk),
                "awb_code": order.awb_code,
                "courier_name": order.courier_name,
                "tracking_url": order.tracking_url,
                "status": status.status,
                "last_update": status.last_update,
                "location": status.location,
            }
        )

    def _shipment_request(self, order: Order) -> ShipmentRequest:
        product = order.product
        length, breadth, height = getattr(settings, "SHIPPING_DEFAULT_DIMENSIONS_CM", (10, 10, 10))
        return ShipmentRequest(
            order_id=str(order.pk),
            order_date=order.paid_at or timezone.now(),
            pickup_postcode=product.seller_pincode,
            buyer_name=order.buyer_name or order.buyer.get_full_name() or order.buyer.get_username(),
            buyer_email=order.buyer_email or order.buyer.email,
            buyer_phone=order.buyer_phone,
            delivery_address=order.delivery_address,
            delivery_city=order.delivery_city,
            delivery_state=order.delivery_state,
            delivery_pincode=order.delivery_pincode,
            item_name=product.name,
            item_sku=str(product.pk)[:20],
            selling_price=order.amount,
            weight_kg=self.parcel_weight(product.weight_kg),
            length_cm=length,
            breadth_cm=breadth,
            height_cm=height,
            courier_id=order.courier_id,
        )

    @staticmethod
    def parcel_weight(weight_kg: Optional[Decimal]) -> Decimal:
        return Decimal(weight_kg) if weight_kg else Decimal(getattr(settings, "SHIPPING_DEFAULT_WEIGHT_KG", "0.5"))

    def _publish(self, event) -> None:
        self.event_bus.publish(event.event_type, event.to_payload())
