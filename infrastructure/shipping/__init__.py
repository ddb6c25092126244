"""
Shipping Carrier Abstraction Layer
===================================

Provides a unified interface for serviceability, booking and tracking across carriers.
"""

from .factory import ShippingCarrierFactory
from .interface import (
    CourierQuote,
    ShipmentBooking,
    ShipmentRequest,
    ShippingAuthenticationError,
    ShippingCarrierInterface,
    ShippingException,
    ShippingUnavailable,
    TrackingStatus,
)
from .mock_carrier import MockShippingCarrier
from .shiprocket_provider import ShiprocketCarrier

__all__ = [
    "ShippingCarrierInterface",
    "CourierQuote",
    "ShipmentRequest",
    "ShipmentBooking",
    "TrackingStatus",
    "ShippingException",
    "ShippingUnavailable",
    "ShippingAuthenticationError",
    "ShiprocketCarrier",
    "MockShippingCarrier",
    "ShippingCarrierFactory",
]
