import logging

from infrastructure.events import get_event_bus
from payment_system.domain.events.definitions import CAMPAIGN_ACTIVATED, CHECKOUT_COMPLETED, CHECKOUT_FAILED


logger = logging.getLogger(__name__)


def handle_checkout_completed(event_data):
    """Handle checkout.completed event. Buyer notification trigger."""
    try:
        payload = event_data.get("payload", {})
        awb_code = payload.get("awb_code")
        delivery = f"shipped with AWB {awb_code}" if awb_code else "ready for pickup"
        logger.info(
            f"[Marketplace Listener] Order {payload.get('order_id')} completed for buyer "
            f"{payload.get('buyer_id')}, {delivery}"
        )
    except Exception as e:
        logger.error(f"Error handling checkout.completed event: {e}")


def handle_checkout_failed(event_data):
    """Handle checkout.failed event."""
    try:
        payload = event_data.get("payload", {})
        logger.info(
            f"[Marketplace Listener] Checkout for order {payload.get('order_id')} failed: {payload.get('reason')}"
        )
    except Exception as e:
        logger.error(f"Error handling checkout.failed event: {e}")


def handle_campaign_activated(event_data):
    """Handle ads.campaign_activated event."""
    try:
        payload = event_data.get("payload", {})
        logger.info(
            f"[ADS] Campaign {payload.get('campaign_id')} for product {payload.get('product_id')} "
            f"runs {payload.get('start_date')} to {payload.get('end_date')}"
        )
    except Exception as e:
        logger.error(f"Error handling ads.campaign_activated event: {e}")


def register_marketplace_listeners():
    """Register all marketplace event listeners."""
    event_bus = get_event_bus()
    event_bus.subscribe(CHECKOUT_COMPLETED, handle_checkout_completed)
    event_bus.subscribe(CHECKOUT_FAILED, handle_checkout_failed)
    event_bus.subscribe(CAMPAIGN_ACTIVATED, handle_campaign_activated)
    logger.info("Marketplace event listeners registered")
