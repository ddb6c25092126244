from .checkout_service import CheckoutLaunch, CheckoutService, OrderOutcome, ShippingChoice
from .checkout_state import CheckoutAttempt, CheckoutState, InvalidTransition
from .currency_service import CurrencyConversionService, SettlementAmount, get_currency_service
from .exchange_rate_service import ExchangeRateService
from .fulfillment_service import FulfillmentService

__all__ = [
    "CheckoutAttempt",
    "CheckoutLaunch",
    "CheckoutService",
    "CheckoutState",
    "CurrencyConversionService",
    "ExchangeRateService",
    "FulfillmentService",
    "InvalidTransition",
    "OrderOutcome",
    "SettlementAmount",
    "ShippingChoice",
    "get_currency_service",
]
