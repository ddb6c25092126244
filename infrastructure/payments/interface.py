"""
Payment Gateway Interface
==========================

Abstract base class defining the contract for payment gateway operations.

A checkout creates a gateway order for a settlement amount before any payment
UI is shown, and later verifies the signed callback the gateway hands back to
the client once the buyer has paid.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class GatewayOrderStatus(str, Enum):
    """Gateway order status enumeration."""

    CREATED = "created"
    ATTEMPTED = "attempted"
    PAID = "paid"


@dataclass
class GatewayOrder:
    """
    Represents an order reserved with the payment gateway.

    Attributes:
        gateway_order_id: Gateway-side order identifier
        amount_minor: Amount in the smallest currency unit (paise, cents)
        currency: ISO currency code (e.g., 'INR')
        receipt: Merchant receipt reference sent with the order
        launch_params: Everything the client needs to open the payment UI
        status: Gateway order status
    """

    gateway_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    launch_params: Dict[str, Any] = field(default_factory=dict)
    status: GatewayOrderStatus = GatewayOrderStatus.CREATED


@dataclass
class CallbackVerification:
    """
    Result of verifying a payment callback.

    Attributes:
        gateway_order_id: Order the callback claims to settle
        payment_id: Gateway payment identifier
        verified: True only if the signature matched
    """

    gateway_order_id: str
    payment_id: str
    verified: bool


class PaymentGatewayInterface(ABC):
    """
    Abstract interface for payment gateway operations.

    Concrete implementations:
        - RazorpayGateway: Razorpay orders API + HMAC callback signatures
        - MockPaymentGateway: in-process gateway for tests and local runs
    """

    #: Smallest amount, in minor units, the gateway accepts
    minimum_amount_minor: int = 100

    @abstractmethod
    def create_order(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GatewayOrder:
        """
        Create a gateway order.

        Args:
            amount_minor: Settlement amount in the smallest currency unit
            currency: ISO currency code
            metadata: receipt, notes and prefill data for the payment UI

        Returns:
            GatewayOrder with the gateway order id and client launch parameters

        Raises:
            PaymentValidationError: If the amount is below the gateway minimum.
                Raised before any network call.
            PaymentGatewayUnavailable: If the gateway could not be reached
            PaymentException: If the gateway rejected the order
        """
        pass

    @abstractmethod
    def verify_callback(self, payload: Dict[str, str]) -> CallbackVerification:
        """
        Verify a completed-payment callback.

        Args:
            payload: gateway_order_id, payment_id and signature as returned to the client

        Returns:
            CallbackVerification; verified is False on any signature mismatch

        Raises:
            PaymentValidationError: If required fields are missing
        """
        pass

    def check_minimum(self, amount_minor: int, currency: str) -> None:
        if amount_minor < self.minimum_amount_minor:
            raise PaymentValidationError(
                f"Amount {amount_minor} {currency} is below the gateway minimum of {self.minimum_amount_minor}"
            )


class PaymentException(Exception):
    """Base exception for payment operations."""

    pass


class PaymentGatewayUnavailable(PaymentException):
    """Gateway unreachable, timed out, or returned a server error."""

    pass


class PaymentValidationError(PaymentException):
    """Request rejected locally before reaching the gateway."""

    pass
