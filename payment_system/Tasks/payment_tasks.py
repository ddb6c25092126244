"""
Payment System Celery Tasks

Sweeps checkouts whose payment window elapsed.
"""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, queue="payment_tasks")
def expire_stale_checkouts_task(self, timeout_minutes=None):
    """
    Fail every unpaid order older than PAYMENT_TIMEOUT_MINUTES with reason 'expired'.

    Products are never touched: an unpaid order never reserved anything. A
    verified payment arriving after expiry is flagged for refund by the
    callback handler.

    Returns:
        dict: Number of orders expired
    """
    from infrastructure.container import container

    timeout_minutes = int(timeout_minutes or getattr(settings, "PAYMENT_TIMEOUT_MINUTES", 30))
    try:
        expired = container.checkout_service().expire_stale_checkouts(timeout_minutes)
    except Exception as e:
        logger.error(f"[CHECKOUT] Error expiring stale checkouts: {e}", exc_info=True)
        try:
            raise self.retry(countdown=60 * (2**self.request.retries))
        except self.MaxRetriesExceededError:
            return {"success": False, "expired_count": 0, "error": f"Max retries exceeded: {str(e)}"}

    logger.info(f"[CHECKOUT] Stale checkout sweep expired {expired} order(s)")
    return {"success": True, "expired_count": expired, "timeout_minutes": timeout_minutes}
