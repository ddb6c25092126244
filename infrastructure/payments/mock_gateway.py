"""
Mock Payment Gateway
====================

Mock implementation of PaymentGatewayInterface for testing.
Creates gateway orders in memory instead of calling the gateway.
"""

import hmac
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from django.conf import settings

from .interface import CallbackVerification, GatewayOrder, PaymentGatewayInterface, PaymentValidationError
from .razorpay_provider import compute_signature

logger = logging.getLogger(__name__)


class MockPaymentGateway(PaymentGatewayInterface):
    """
    Mock payment gateway for testing and development.

    Instead of calling the gateway, this service:
        - Logs all order operations
        - Stores created orders in memory for verification
        - Signs and verifies callbacks exactly like Razorpay, with RAZORPAY_KEY_SECRET

    Useful for:
        - Unit testing
        - Development environments
        - CI/CD pipelines
    """

    def __init__(self, key_secret: Optional[str] = None):
        """Initialize mock gateway with an empty order list."""
        self.key_id = getattr(settings, "RAZORPAY_KEY_ID", "rzp_test_mock_key")
        self.key_secret = key_secret or getattr(settings, "RAZORPAY_KEY_SECRET", "mock_secret")
        self.minimum_amount_minor = int(getattr(settings, "PAYMENT_MINIMUM_AMOUNT_MINOR", 100))
        self.created_orders: List[GatewayOrder] = []
        self._lock = threading.Lock()

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GatewayOrder:
        """
        Mock order creation - logs and stores the order.

        Raises:
            PaymentValidationError: If the amount is below the minimum
        """
        self.check_minimum(amount_minor, currency)
        metadata = metadata or {}

        gateway_order_id = f"order_mock_{uuid.uuid4().hex[:14]}"
        order = GatewayOrder(
            gateway_order_id=gateway_order_id,
            amount_minor=int(amount_minor),
            currency=currency.upper(),
            receipt=str(metadata.get("receipt") or ""),
            launch_params={
                "key": self.key_id,
                "amount": int(amount_minor),
                "currency": currency.upper(),
                "order_id": gateway_order_id,
                "name": getattr(settings, "PAYMENT_MERCHANT_NAME", "Flipp"),
                "description": metadata.get("description", ""),
                "prefill": metadata.get("prefill") or {},
                "notes": metadata.get("notes") or {},
            },
        )

        logger.info(f"[MOCK PAYMENT] Created order {gateway_order_id} for {amount_minor} {currency}")

        with self._lock:
            self.created_orders.append(order)
        return order

    def verify_callback(self, payload: Dict[str, str]) -> CallbackVerification:
        gateway_order_id = payload.get("gateway_order_id") or ""
        payment_id = payload.get("payment_id") or ""
        signature = payload.get("signature") or ""

        if not gateway_order_id or not payment_id:
            raise PaymentValidationError("gateway_order_id and payment_id are required")

        verified = bool(signature) and hmac.compare_digest(signature, self.sign(gateway_order_id, payment_id))
        return CallbackVerification(gateway_order_id, payment_id, verified=verified)

    def sign(self, gateway_order_id: str, payment_id: str) -> str:
        """Produce the signature the gateway would hand to the client."""
        return compute_signature(self.key_secret, gateway_order_id, payment_id)

    def clear(self):
        """Forget all created orders."""
        with self._lock:
            self.created_orders = []
