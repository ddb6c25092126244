"""
Audit logging for payment processing
"""

import logging

from utils.logging_utils import mask_value

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Get real client IP address"""
    if request is None:
        return None
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


class PaymentAuditLogger:
    """Audit logging for checkout and payment operations"""

    @staticmethod
    def log_checkout_started(user_id, order_id, gateway_order_id, amount, currency):
        """Log gateway order creation for a checkout"""
        logger.info(
            f"[PAYMENT] Checkout started: order {order_id}, gateway order {gateway_order_id}",
            extra={
                "user_id": user_id,
                "order_id": str(order_id),
                "gateway_order_id": gateway_order_id,
                "amount": str(amount),
                "currency": currency,
                "event_type": "checkout_started",
            },
        )

    @staticmethod
    def log_payment_verified(order_id, gateway_order_id, payment_id):
        """Log a callback whose signature matched"""
        logger.info(
            f"[PAYMENT] Payment verified for gateway order {gateway_order_id}",
            extra={
                "order_id": str(order_id),
                "gateway_order_id": gateway_order_id,
                "payment_id": payment_id,
                "event_type": "payment_verified",
            },
        )

    @staticmethod
    def log_payment_failure(order_id, reason, gateway_order_id=None, payment_id=None):
        """Log an order that ended Failed after the gateway order existed"""
        logger.warning(
            f"[PAYMENT] Payment failed for order {order_id}: {reason}",
            extra={
                "order_id": str(order_id),
                "gateway_order_id": gateway_order_id,
                "payment_id": payment_id,
                "reason": reason,
                "event_type": "payment_failure",
            },
        )

    @staticmethod
    def log_security_event(event_type, ip_address=None, user_id=None, details=None):
        """Log security-related events. Signatures in details are masked."""
        details = dict(details or {})
        if details.get("signature"):
            details["signature"] = mask_value(details["signature"])
        logger.warning(
            f"[SECURITY] Security event: {event_type} {details}",
            extra={
                "event_type": f"security_{event_type}",
                "ip_address": ip_address,
                "user_id": user_id,
                "details": details,
            },
        )
