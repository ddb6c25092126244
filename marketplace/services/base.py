"""
Service layer primitives shared by checkout, fulfillment and ads.

Services return a ServiceResult for outcomes the caller is expected to
handle (product already sold, no courier for the route, bad signature) and
raise only when something is broken. The API layer turns a failed result
into an HTTP status through payment_system.api.responses.
"""

import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    ok is True with value set, or False with error (an ErrorCodes string) and
    error_detail (a message safe to show the user). A failed result may still
    carry a value, e.g. the order as it stands after a rejected callback.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None


def service_ok(value: T = None) -> ServiceResult[T]:
    return ServiceResult(ok=True, value=value)


def service_err(error: str, error_detail: str = "", value: Any = None) -> ServiceResult:
    """
    Create a failed ServiceResult.

    Args:
        error: Error code from ErrorCodes (e.g. "already_sold")
        error_detail: Message for the user; defaults to the code
        value: Optional payload that still matters on failure
    """
    return ServiceResult(ok=False, value=value, error=error, error_detail=error_detail or error)


class BaseService:
    """
    Base class for services: a logger named after the concrete class and a
    timing decorator for public operations.

    Usage:
        class FulfillmentService(BaseService):
            @BaseService.log_performance
            def track_order(self, order_id, user):
                ...
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{type(self).__module__}.{type(self).__name__}")

    @staticmethod
    def log_performance(func: Callable) -> Callable:
        """
        Log how long a service method took and how it ended.

        Failed ServiceResults log at WARNING with their error code. Exceptions
        log at ERROR with traceback and propagate unchanged.
        """

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            operation = f"{type(self).__name__}.{func.__name__}"
            started = time.perf_counter()
            self.logger.debug(f"{operation} started")

            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                self.logger.error(f"{operation} raised after {elapsed_ms:.2f}ms: {e}", exc_info=True)
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            if isinstance(result, ServiceResult) and not result.ok:
                self.logger.warning(f"{operation} returned '{result.error}' in {elapsed_ms:.2f}ms")
            else:
                self.logger.info(f"{operation} completed in {elapsed_ms:.2f}ms")
            return result

        return wrapper


class ErrorCodes:
    """Error codes returned in ServiceResult.error and in API error bodies."""

    # Product
    PRODUCT_NOT_FOUND = "product_not_found"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    NOT_PRODUCT_OWNER = "not_product_owner"
    OWN_PRODUCT = "own_product"

    # Pricing
    AMOUNT_TOO_SMALL = "amount_too_small"
    UNSUPPORTED_CURRENCY = "unsupported_currency"

    # Order
    ORDER_NOT_FOUND = "order_not_found"
    NOT_ORDER_OWNER = "not_order_owner"
    INVALID_ORDER_STATE = "invalid_order_state"
    ALREADY_SOLD = "already_sold"

    # Payment
    SIGNATURE_INVALID = "signature_invalid"
    PAYMENT_PROVIDER_ERROR = "payment_provider_error"

    # Shipping
    SHIPPING_UNAVAILABLE = "shipping_unavailable"
    TRACKING_UNAVAILABLE = "tracking_unavailable"
    NOT_SHIPPED = "not_shipped"

    # Campaigns
    CAMPAIGN_NOT_FOUND = "campaign_not_found"
    INVALID_CAMPAIGN_DURATION = "invalid_campaign_duration"

    VALIDATION_ERROR = "validation_error"
    INTERNAL_ERROR = "internal_error"
