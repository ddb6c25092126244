"""
Shipping Carrier Factory
========================

Factory pattern for creating shipping carrier instances based on configuration.
"""

import logging
from typing import Literal

from django.conf import settings

from .interface import ShippingCarrierInterface
from .mock_carrier import MockShippingCarrier
from .shiprocket_provider import ShiprocketCarrier

logger = logging.getLogger(__name__)

ShippingBackend = Literal["shiprocket", "mock"]


class ShippingCarrierFactory:
    """
    Factory for creating shipping carrier instances.

    Usage:
        # In settings.py
        SHIPPING_CARRIER = 'shiprocket'  # or 'mock' for tests

        # In your code
        carrier = ShippingCarrierFactory.create()
    """

    @staticmethod
    def create(backend: ShippingBackend | None = None) -> ShippingCarrierInterface:
        """
        Create a shipping carrier instance.

        Args:
            backend: Carrier backend type ('shiprocket' or 'mock')
                    If None, reads from settings.SHIPPING_CARRIER

        Returns:
            ShippingCarrierInterface implementation

        Raises:
            ValueError: If backend type is invalid
        """
        backend_type = backend or getattr(settings, "SHIPPING_CARRIER", "shiprocket")

        logger.info(f"Creating shipping carrier: {backend_type}")

        if backend_type == "shiprocket":
            return ShiprocketCarrier()
        elif backend_type == "mock":
            return MockShippingCarrier()
        else:
            raise ValueError(f"Invalid shipping carrier: {backend_type}. " f"Must be 'shiprocket' or 'mock'")
