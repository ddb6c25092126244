"""
Payment Gateway Abstraction Layer
==================================

Provides a unified interface for payment operations across different payment gateways.
"""

from .factory import PaymentGatewayFactory
from .interface import (
    CallbackVerification,
    GatewayOrder,
    GatewayOrderStatus,
    PaymentException,
    PaymentGatewayInterface,
    PaymentGatewayUnavailable,
    PaymentValidationError,
)
from .mock_gateway import MockPaymentGateway
from .razorpay_provider import RazorpayGateway, compute_signature

__all__ = [
    "PaymentGatewayInterface",
    "GatewayOrder",
    "GatewayOrderStatus",
    "CallbackVerification",
    "PaymentException",
    "PaymentGatewayUnavailable",
    "PaymentValidationError",
    "RazorpayGateway",
    "MockPaymentGateway",
    "PaymentGatewayFactory",
    "compute_signature",
]
