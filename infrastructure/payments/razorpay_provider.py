"""
Razorpay Payment Gateway
=========================

Concrete implementation of PaymentGatewayInterface using the Razorpay orders API.

Order creation is a plain POST with HTTP basic auth. It is not retried: a
timed-out request may still have created an order, and a second POST would
create another one. Callback signatures are HMAC-SHA256 of
"<order_id>|<payment_id>" keyed with the API secret.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from .interface import (
    CallbackVerification,
    GatewayOrder,
    GatewayOrderStatus,
    PaymentException,
    PaymentGatewayInterface,
    PaymentGatewayUnavailable,
    PaymentValidationError,
)

logger = logging.getLogger(__name__)

RECEIPT_MAX_LENGTH = 40


def compute_signature(secret: str, gateway_order_id: str, payment_id: str) -> str:
    message = f"{gateway_order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway(PaymentGatewayInterface):
    """
    Razorpay payment gateway implementation.

    Configuration (in settings.py):
        RAZORPAY_KEY_ID: Public key id, also handed to the client checkout
        RAZORPAY_KEY_SECRET: API secret, used for basic auth and signatures
        RAZORPAY_API_URL: API root (default https://api.razorpay.com/v1)
        PAYMENT_MINIMUM_AMOUNT_MINOR: Gateway minimum in minor units
        PAYMENT_MERCHANT_NAME: Name shown in the payment UI
    """

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None, timeout: int = 15):
        """Initialize Razorpay gateway with API credentials."""
        self.key_id = key_id or getattr(settings, "RAZORPAY_KEY_ID", "")
        self.key_secret = key_secret or getattr(settings, "RAZORPAY_KEY_SECRET", "")
        self.api_url = getattr(settings, "RAZORPAY_API_URL", "https://api.razorpay.com/v1").rstrip("/")
        self.minimum_amount_minor = int(getattr(settings, "PAYMENT_MINIMUM_AMOUNT_MINOR", 100))
        self.merchant_name = getattr(settings, "PAYMENT_MERCHANT_NAME", "Flipp")
        self.timeout = timeout
        self.session = requests.Session()

        if not self.key_id or not self.key_secret:
            logger.warning("RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not configured")

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GatewayOrder:
        """
        Create a Razorpay order.

        Args:
            amount_minor: Amount in paise (or the currency's minor unit)
            currency: ISO currency code
            metadata: receipt, notes, description and prefill

        Returns:
            GatewayOrder object

        Raises:
            PaymentValidationError: Amount below minimum, checked before the request
            PaymentGatewayUnavailable: Network failure or 5xx
            PaymentException: Any other rejection
        """
        self.check_minimum(amount_minor, currency)
        metadata = metadata or {}

        receipt = str(metadata.get("receipt") or "")[:RECEIPT_MAX_LENGTH]
        body = {
            "amount": int(amount_minor),
            "currency": currency.upper(),
            "receipt": receipt,
            "notes": {str(k): str(v) for k, v in (metadata.get("notes") or {}).items()},
        }

        try:
            response = self.session.post(
                f"{self.api_url}/orders",
                json=body,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[PAYMENT] Razorpay order creation failed to reach gateway: {str(e)}")
            raise PaymentGatewayUnavailable(f"Payment gateway unreachable: {str(e)}") from e

        if response.status_code >= 500:
            logger.error(f"[PAYMENT] Razorpay returned {response.status_code} for order creation")
            raise PaymentGatewayUnavailable(f"Payment gateway error: HTTP {response.status_code}")

        if response.status_code >= 400:
            description = self._error_description(response)
            logger.error(f"[PAYMENT] Razorpay rejected order ({response.status_code}): {description}")
            raise PaymentException(f"Failed to create gateway order: {description}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"[PAYMENT] Razorpay returned a non-JSON body for order creation: {response.text[:200]!r}")
            raise PaymentGatewayUnavailable("Payment gateway returned an unreadable response") from e
        if not isinstance(data, dict):
            raise PaymentException("Gateway response was not a JSON object")

        gateway_order_id = data.get("id")
        if not gateway_order_id:
            raise PaymentException("Gateway response did not include an order id")

        logger.info(f"[PAYMENT] Created Razorpay order: {gateway_order_id} for {amount_minor} {currency}")

        return GatewayOrder(
            gateway_order_id=gateway_order_id,
            amount_minor=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency.upper()),
            receipt=data.get("receipt", receipt),
            launch_params=self._launch_params(gateway_order_id, amount_minor, currency, metadata),
            status=self._map_status(data.get("status")),
        )

    def verify_callback(self, payload: Dict[str, str]) -> CallbackVerification:
        """
        Verify a Razorpay checkout callback signature.

        Args:
            payload: gateway_order_id, payment_id, signature

        Returns:
            CallbackVerification object
        """
        gateway_order_id = payload.get("gateway_order_id") or ""
        payment_id = payload.get("payment_id") or ""
        signature = payload.get("signature") or ""

        if not gateway_order_id or not payment_id:
            raise PaymentValidationError("gateway_order_id and payment_id are required")

        if not signature:
            return CallbackVerification(gateway_order_id, payment_id, verified=False)

        expected = compute_signature(self.key_secret, gateway_order_id, payment_id)
        verified = hmac.compare_digest(expected, signature)
        return CallbackVerification(gateway_order_id, payment_id, verified=verified)

    def _launch_params(self, gateway_order_id: str, amount_minor: int, currency: str, metadata: Dict) -> Dict:
        return {
            "key": self.key_id,
            "amount": int(amount_minor),
            "currency": currency.upper(),
            "order_id": gateway_order_id,
            "name": self.merchant_name,
            "description": metadata.get("description", ""),
            "prefill": metadata.get("prefill") or {},
            "notes": metadata.get("notes") or {},
        }

    @staticmethod
    def _error_description(response) -> str:
        try:
            return response.json().get("error", {}).get("description") or response.text
        except ValueError:
            return response.text

    @staticmethod
    def _map_status(status: Optional[str]) -> GatewayOrderStatus:
        try:
            return GatewayOrderStatus(status)
        except ValueError:
            return GatewayOrderStatus.CREATED
