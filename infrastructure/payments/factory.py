"""
Payment Gateway Factory
=======================

Factory pattern for creating payment gateway instances based on configuration.
"""

import logging
from typing import Literal

from django.conf import settings

from .interface import PaymentGatewayInterface
from .mock_gateway import MockPaymentGateway
from .razorpay_provider import RazorpayGateway

logger = logging.getLogger(__name__)

PaymentBackend = Literal["razorpay", "mock"]


class PaymentGatewayFactory:
    """
    Factory for creating payment gateway instances.

    Usage:
        # In settings.py
        PAYMENT_GATEWAY = 'razorpay'  # or 'mock' for tests

        # In your code
        gateway = PaymentGatewayFactory.create()
    """

    @staticmethod
    def create(backend: PaymentBackend | None = None) -> PaymentGatewayInterface:
        """
        Create a payment gateway instance.

        Args:
            backend: Payment backend type ('razorpay' or 'mock')
                    If None, reads from settings.PAYMENT_GATEWAY

        Returns:
            PaymentGatewayInterface implementation

        Raises:
            ValueError: If backend type is invalid
        """
        backend_type = backend or getattr(settings, "PAYMENT_GATEWAY", "razorpay")

        logger.info(f"Creating payment gateway: {backend_type}")

        if backend_type == "razorpay":
            return RazorpayGateway()
        elif backend_type == "mock":
            return MockPaymentGateway()
        else:
            raise ValueError(f"Invalid payment gateway: {backend_type}. " f"Must be 'razorpay' or 'mock'")
