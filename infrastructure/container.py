"""
Dependency Injection Container
================================

Simple service locator pattern for managing infrastructure dependencies.
Provides centralized access to infrastructure services through their
abstract interfaces, and to the domain services built on top of them.

Usage:
    from infrastructure.container import container

    # In your service
    gateway = container.payment_gateway()
    carrier = container.shipping_carrier()
    checkout = container.checkout_service()
"""

import logging
import threading
from typing import Optional

from .events import EventBus, get_event_bus, reset_event_bus
from .payments import PaymentGatewayFactory, PaymentGatewayInterface
from .shipping import ShippingCarrierFactory, ShippingCarrierInterface

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Service container for infrastructure dependencies.

    Implements lazy initialization and caching of service instances.
    Thread-safe singleton pattern.
    """

    _instance: Optional["ServiceContainer"] = None
    _initialized: bool = False
    _lock = threading.Lock()

    def __new__(cls):
        """Ensure only one instance exists (singleton pattern)."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize container (only once)."""
        if not self._initialized:
            self._payment_gateway: Optional[PaymentGatewayInterface] = None
            self._shipping_carrier: Optional[ShippingCarrierInterface] = None

            # Domain Services
            self._order_store = None
            self._fulfillment_service = None
            self._checkout_service = None
            self._campaign_counter_service = None
            self._campaign_service = None

            self._initialized = True
            logger.info("Service container initialized")

    def payment_gateway(self, backend: Optional[str] = None) -> PaymentGatewayInterface:
        """
        Get payment gateway instance.

        Args:
            backend: Payment backend type ('razorpay' or 'mock')
                    If None, uses configuration from settings

        Returns:
            PaymentGatewayInterface implementation (cached)
        """
        if self._payment_gateway is None or backend is not None:
            self._payment_gateway = PaymentGatewayFactory.create(backend)
            logger.debug(f"Created payment gateway: {type(self._payment_gateway).__name__}")

        return self._payment_gateway

    def shipping_carrier(self, backend: Optional[str] = None) -> ShippingCarrierInterface:
        """
        Get shipping carrier instance. Cached so the carrier token is reused.

        Args:
            backend: Carrier backend type ('shiprocket' or 'mock')
                    If None, uses configuration from settings

        Returns:
            ShippingCarrierInterface implementation (cached)
        """
        if self._shipping_carrier is None or backend is not None:
            self._shipping_carrier = ShippingCarrierFactory.create(backend)
            logger.debug(f"Created shipping carrier: {type(self._shipping_carrier).__name__}")

        return self._shipping_carrier

    def event_bus(self) -> EventBus:
        """Get event bus instance (Redis or in-memory, per settings)."""
        return get_event_bus()

    def currency_service(self):
        """Get the process-wide CurrencyConversionService."""
        from payment_system.domain.services.currency_service import get_currency_service

        return get_currency_service()

    def order_store(self):
        """Get OrderStore instance."""
        if self._order_store is None:
            from marketplace.ordering.domain.services import OrderStore

            self._order_store = OrderStore()
            logger.debug("Created OrderStore")
        return self._order_store

    def fulfillment_service(self):
        """Get FulfillmentService instance."""
        if self._fulfillment_service is None:
            from payment_system.domain.services.fulfillment_service import FulfillmentService

            self._fulfillment_service = FulfillmentService(
                carrier=self.shipping_carrier(),
                store=self.order_store(),
                event_bus=self.event_bus(),
            )
            logger.debug("Created FulfillmentService")
        return self._fulfillment_service

    def checkout_service(self):
        """Get CheckoutService instance."""
        if self._checkout_service is None:
            from payment_system.domain.services.checkout_service import CheckoutService

            self._checkout_service = CheckoutService(
                gateway=self.payment_gateway(),
                currency_service=self.currency_service(),
                store=self.order_store(),
                fulfillment=self.fulfillment_service(),
                carrier=self.shipping_carrier(),
                event_bus=self.event_bus(),
            )
            logger.debug("Created CheckoutService")
        return self._checkout_service

    def campaign_counter_service(self):
        """Get CampaignCounterService instance."""
        if self._campaign_counter_service is None:
            from marketplace.ads.domain.services import CampaignCounterService

            self._campaign_counter_service = CampaignCounterService()
            logger.debug("Created CampaignCounterService")
        return self._campaign_counter_service

    def campaign_service(self):
        """Get CampaignService instance."""
        if self._campaign_service is None:
            from marketplace.ads.domain.services import CampaignService

            self._campaign_service = CampaignService(gateway=self.payment_gateway(), event_bus=self.event_bus())
            logger.debug("Created CampaignService")
        return self._campaign_service

    def reset(self):
        """
        Reset all cached service instances.

        Useful for testing or when switching between environments.
        """
        from payment_system.domain.services.currency_service import set_currency_service

        self._payment_gateway = None
        self._shipping_carrier = None
        self._order_store = None
        self._fulfillment_service = None
        self._checkout_service = None
        self._campaign_counter_service = None
        self._campaign_service = None
        set_currency_service(None)
        reset_event_bus()
        logger.info("Service container reset")

    def configure_for_testing(self):
        """
        Configure container with mock services for testing.

        Sets up:
            - Mock payment gateway (signs callbacks with RAZORPAY_KEY_SECRET)
            - Mock shipping carrier
            - In-memory event bus (via EVENT_BUS_BACKEND in test settings)
        """
        self.reset()
        self._payment_gateway = PaymentGatewayFactory.create("mock")
        self._shipping_carrier = ShippingCarrierFactory.create("mock")
        logger.info("Service container configured for testing")


# Global singleton instance
container = ServiceContainer()


# Convenience functions for quick access
def get_payment_gateway() -> PaymentGatewayInterface:
    """Get payment gateway from global container."""
    return container.payment_gateway()


def get_shipping_carrier() -> ShippingCarrierInterface:
    """Get shipping carrier from global container."""
    return container.shipping_carrier()
