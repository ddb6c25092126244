import logging

from infrastructure.events import get_event_bus
from payment_system.domain.events.definitions import REFUND_REQUIRED, SHIPMENT_BOOKING_FAILED
from utils.logging_utils import mask_value


logger = logging.getLogger(__name__)


def handle_refund_required(event_data):
    """
    Handle checkout.refund_required event.

    Refunds are issued by the operations team from the gateway dashboard; this
    handler leaves the audit trail they work from.
    """
    try:
        payload = event_data.get("payload", {})
        logger.warning(
            f"[PAYMENT] Refund required for order {payload.get('order_id')}: "
            f"{payload.get('amount')} {payload.get('currency')} "
            f"(payment {mask_value(payload.get('payment_id'))}, reason: {payload.get('reason')})"
        )
    except Exception as e:
        logger.error(f"Error handling checkout.refund_required event: {e}", exc_info=True)


def handle_shipment_booking_failed(event_data):
    """Handle checkout.shipment_booking_failed event. The order stays paid for manual booking."""
    try:
        payload = event_data.get("payload", {})
        logger.error(
            f"[SHIPPING] Manual booking needed for paid order {payload.get('order_id')}: {payload.get('error')}"
        )
    except Exception as e:
        logger.error(f"Error handling checkout.shipment_booking_failed event: {e}", exc_info=True)


def register_payment_listeners():
    """Register all payment system event listeners."""
    event_bus = get_event_bus()
    event_bus.subscribe(REFUND_REQUIRED, handle_refund_required)
    event_bus.subscribe(SHIPMENT_BOOKING_FAILED, handle_shipment_booking_failed)
    logger.info("Payment system event listeners registered")
