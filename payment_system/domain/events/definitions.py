from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


PAYMENT_SUCCEEDED = "checkout.payment_succeeded"
REFUND_REQUIRED = "checkout.refund_required"
SHIPMENT_BOOKING_FAILED = "checkout.shipment_booking_failed"
CHECKOUT_COMPLETED = "checkout.completed"
CHECKOUT_FAILED = "checkout.failed"
CAMPAIGN_ACTIVATED = "ads.campaign_activated"


@dataclass
class DomainEvent:
    event_type = ""

    def to_payload(self) -> dict:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, Decimal):
                payload[key] = str(value)
            elif isinstance(value, datetime):
                payload[key] = value.isoformat()
        return payload


@dataclass
class PaymentSucceeded(DomainEvent):
    order_id: str
    product_id: str
    gateway_order_id: str
    payment_id: str
    amount: Decimal
    currency: str
    occurred_at: datetime

    event_type = PAYMENT_SUCCEEDED


@dataclass
class RefundRequired(DomainEvent):
    """A verified payment that cannot be honoured. Consumed by the refund workflow."""

    order_id: str
    product_id: str
    gateway_order_id: str
    payment_id: str
    amount: Decimal
    currency: str
    reason: str
    occurred_at: datetime

    event_type = REFUND_REQUIRED


@dataclass
class ShipmentBookingFailed(DomainEvent):
    order_id: str
    product_id: str
    error: str
    occurred_at: datetime

    event_type = SHIPMENT_BOOKING_FAILED


@dataclass
class CheckoutCompleted(DomainEvent):
    """Order finalized. Triggers the buyer notification."""

    order_id: str
    product_id: str
    buyer_id: str
    seller_id: str
    amount: Decimal
    currency: str
    awb_code: Optional[str]
    occurred_at: datetime

    event_type = CHECKOUT_COMPLETED


@dataclass
class CheckoutFailed(DomainEvent):
    order_id: str
    product_id: str
    reason: str
    occurred_at: datetime

    event_type = CHECKOUT_FAILED


@dataclass
class CampaignActivated(DomainEvent):
    campaign_id: str
    product_id: str
    seller_id: str
    start_date: str
    end_date: str
    occurred_at: datetime

    event_type = CAMPAIGN_ACTIVATED
