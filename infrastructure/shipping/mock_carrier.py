"""
Mock Shipping Carrier
=====================

Mock implementation of ShippingCarrierInterface for testing.
Quotes, books and tracks in memory instead of calling the carrier.
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .interface import (
    CourierQuote,
    ShipmentBooking,
    ShipmentRequest,
    ShippingCarrierInterface,
    ShippingException,
    TrackingStatus,
)

logger = logging.getLogger(__name__)


class MockShippingCarrier(ShippingCarrierInterface):
    """
    Mock carrier for testing and development.

    Behaviour:
        - Every postcode pair is serviceable unless listed in unserviceable_postcodes
        - Bookings are stored in memory and get a fake AWB
        - Tracking reports 'IN TRANSIT' for known AWBs
    """

    def __init__(self, unserviceable_postcodes: Optional[Iterable[str]] = None):
        """Initialize mock carrier with empty booking list."""
        self.unserviceable_postcodes = set(unserviceable_postcodes or ())
        self.bookings: List[ShipmentRequest] = []
        self.tracking: Dict[str, TrackingStatus] = {}
        self.fail_bookings = False

    def check_serviceability(
        self,
        pickup_postcode: str,
        delivery_postcode: str,
        weight_kg: Decimal,
        cash_on_delivery: bool = False,
    ) -> List[CourierQuote]:
        logger.info(f"[MOCK SHIPPING] Serviceability {pickup_postcode} -> {delivery_postcode} ({weight_kg} kg)")

        if delivery_postcode in self.unserviceable_postcodes or pickup_postcode in self.unserviceable_postcodes:
            return []

        return [
            CourierQuote(courier_name="Mock Surface", rate=Decimal("49.00"), eta="5 days", eta_days=5, courier_id=1),
            CourierQuote(courier_name="Mock Express", rate=Decimal("99.00"), eta="2 days", eta_days=2, courier_id=2),
        ]

    def book_shipment(self, request: ShipmentRequest) -> ShipmentBooking:
        if self.fail_bookings:
            raise ShippingException("Mock carrier configured to reject bookings")

        awb_code = f"MOCKAWB{uuid.uuid4().hex[:10].upper()}"
        self.bookings.append(request)
        self.tracking[awb_code] = TrackingStatus(awb_code=awb_code, status="PICKUP SCHEDULED")

        logger.info(f"[MOCK SHIPPING] Booked order {request.order_id}, AWB {awb_code}")

        return ShipmentBooking(
            carrier_order_id=f"mock_{len(self.bookings)}",
            shipment_id=f"mock_shipment_{len(self.bookings)}",
            awb_code=awb_code,
            courier_name="Mock Surface",
            tracking_url=f"https://tracking.example.com/{awb_code}",
        )

    def track_shipment(self, awb_code: str) -> TrackingStatus:
        known = self.tracking.get(awb_code)
        if known is None:
            return TrackingStatus(awb_code=awb_code, status="NOT FOUND")
        return TrackingStatus(awb_code=awb_code, status="IN TRANSIT", last_update=known.last_update)
