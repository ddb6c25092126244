import logging
import re
import sys

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


logger = logging.getLogger(__name__)

CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")
MANAGEMENT_COMMANDS_WITHOUT_STARTUP = {"migrate", "makemigrations", "showmigrations", "collectstatic", "test"}


def validate_checkout_settings():
    """
    Fail fast on configuration checkout cannot run with.

    Raises:
        ImproperlyConfigured: On a malformed settlement currency, a non-positive
            payment minimum, or missing credentials for the selected gateway/carrier
    """
    errors = []

    settlement = str(getattr(settings, "SETTLEMENT_CURRENCY", "")).upper()
    if not CURRENCY_CODE_RE.match(settlement):
        errors.append(f"SETTLEMENT_CURRENCY must be a 3-letter currency code, got '{settlement}'")

    base = str(getattr(settings, "EXCHANGE_RATE_BASE_CURRENCY", "USD")).upper()
    if not CURRENCY_CODE_RE.match(base):
        errors.append(f"EXCHANGE_RATE_BASE_CURRENCY must be a 3-letter currency code, got '{base}'")

    try:
        minimum = int(getattr(settings, "PAYMENT_MINIMUM_AMOUNT_MINOR", 100))
    except (TypeError, ValueError):
        minimum = 0
    if minimum <= 0:
        errors.append("PAYMENT_MINIMUM_AMOUNT_MINOR must be a positive integer")

    if getattr(settings, "PAYMENT_GATEWAY", "razorpay") == "razorpay":
        if not getattr(settings, "RAZORPAY_KEY_ID", "") or not getattr(settings, "RAZORPAY_KEY_SECRET", ""):
            errors.append("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required for the razorpay gateway")

    if getattr(settings, "SHIPPING_CARRIER", "shiprocket") == "shiprocket":
        if not getattr(settings, "SHIPROCKET_EMAIL", "") or not getattr(settings, "SHIPROCKET_PASSWORD", ""):
            errors.append("SHIPROCKET_EMAIL and SHIPROCKET_PASSWORD are required for the shiprocket carrier")

    if errors:
        raise ImproperlyConfigured("Checkout configuration invalid: " + "; ".join(errors))


class PaymentSystemConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payment_system"
    verbose_name = "Payment System"

    def ready(self):
        """Validate checkout configuration and register event listeners when Django starts"""
        validate_checkout_settings()

        # Register event listeners (Must run in all processes)
        try:
            from payment_system.infra.events.listeners import register_payment_listeners

            register_payment_listeners()
        except Exception as e:
            logger.error(f"Failed to register payment listeners: {e}")

        if any(arg in MANAGEMENT_COMMANDS_WITHOUT_STARTUP for arg in sys.argv):
            return

        # Both apps have subscribed by now; the Redis bus reads its channel list on start
        from infrastructure.events import get_event_bus

        get_event_bus().start_listening()

        if getattr(settings, "EXCHANGE_RATE_BACKGROUND_REFRESH", True) and "runserver" in sys.argv:
            self._warm_exchange_rates()

    def _warm_exchange_rates(self):
        """Load the exchange-rate snapshot in the background so the first checkout does not wait on it."""
        from payment_system.domain.services.currency_service import get_currency_service

        logger.info("[FX] Warming exchange rate snapshot on startup")
        get_currency_service()._refresh_in_background()
