"""
Shipping Carrier Interface
===========================

Abstract base class defining the contract for carrier operations:
serviceability quotes, shipment booking and AWB tracking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass
class CourierQuote:
    """
    One courier able to deliver between two postal codes.

    Attributes:
        courier_name: Display name of the courier
        rate: Shipping charge in the carrier's currency
        eta: Estimated delivery, as the carrier reports it (e.g. 'Mar 04, 2025')
        eta_days: Estimated days to deliver, if known
        courier_id: Carrier-side courier identifier used when assigning an AWB
    """

    courier_name: str
    rate: Decimal
    eta: str = ""
    eta_days: Optional[int] = None
    courier_id: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "courier_name": self.courier_name,
            "rate": str(self.rate),
            "eta": self.eta,
            "eta_days": self.eta_days,
            "courier_id": self.courier_id,
        }


@dataclass
class ShipmentRequest:
    """
    Everything needed to book a prepaid shipment for one sold product.

    Attributes:
        order_id: Marketplace order reference
        order_date: When the order was paid
        pickup_postcode: Seller postal code
        buyer_*: Delivery name, contact and address
        item_name / item_sku / selling_price: The single line item
        weight_kg / length_cm / breadth_cm / height_cm: Parcel size
        courier_id: Preferred courier from the quote, if any
    """

    order_id: str
    order_date: datetime
    pickup_postcode: str
    buyer_name: str
    buyer_email: str
    buyer_phone: str
    delivery_address: str
    delivery_city: str
    delivery_state: str
    delivery_pincode: str
    item_name: str
    item_sku: str
    selling_price: Decimal
    weight_kg: Decimal
    length_cm: int = 10
    breadth_cm: int = 10
    height_cm: int = 10
    delivery_country: str = "India"
    courier_id: Optional[int] = None


@dataclass
class ShipmentBooking:
    """
    Result of booking a shipment.

    Attributes:
        carrier_order_id: Carrier-side order id
        shipment_id: Carrier-side shipment id
        awb_code: Waybill number used for tracking
        courier_name: Courier assigned to the shipment
        tracking_url: Public tracking page
    """

    carrier_order_id: str
    shipment_id: str
    awb_code: str
    courier_name: str
    tracking_url: str = ""


@dataclass
class TrackingStatus:
    """
    Latest known state of a shipment.

    Attributes:
        awb_code: Waybill number
        status: Current status text (e.g. 'IN TRANSIT', 'DELIVERED')
        last_update: Timestamp of the latest scan, as reported
        location: Location of the latest scan
        activities: Full scan history, newest first
    """

    awb_code: str
    status: str
    last_update: str = ""
    location: str = ""
    activities: List[Dict[str, Any]] = field(default_factory=list)


class ShippingCarrierInterface(ABC):
    """
    Abstract interface for shipping carrier operations.

    Concrete implementations:
        - ShiprocketCarrier: Shiprocket external API v1
        - MockShippingCarrier: in-process carrier for tests and local runs
    """

    @abstractmethod
    def check_serviceability(
        self,
        pickup_postcode: str,
        delivery_postcode: str,
        weight_kg: Decimal,
        cash_on_delivery: bool = False,
    ) -> List[CourierQuote]:
        """
        List couriers that can deliver between two postal codes.

        An empty list means no delivery option and is not an error.

        Raises:
            ShippingUnavailable: If the carrier could not be reached
        """
        pass

    @abstractmethod
    def book_shipment(self, request: ShipmentRequest) -> ShipmentBooking:
        """
        Create the carrier order and assign an AWB.

        Raises:
            ShippingUnavailable: If the carrier could not be reached
            ShippingException: If the carrier rejected the booking
        """
        pass

    @abstractmethod
    def track_shipment(self, awb_code: str) -> TrackingStatus:
        """
        Fetch tracking status for a waybill.

        Raises:
            ShippingUnavailable: If the carrier could not be reached
        """
        pass


class ShippingException(Exception):
    """Base exception for shipping operations."""

    pass


class ShippingUnavailable(ShippingException):
    """Carrier unreachable, timed out, or returned a server error."""

    pass


class ShippingAuthenticationError(ShippingException):
    """Carrier login failed. Credentials are wrong or missing."""

    pass
