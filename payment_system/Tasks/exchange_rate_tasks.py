"""
Exchange Rate Celery Tasks

Periodic refresh of the shared exchange-rate snapshot.
"""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, queue="marketplace_tasks")
def refresh_exchange_rates_task(self, cleanup: bool = True):
    """
    Fetch the latest rate table, persist it and replace the in-process snapshot.

    Retries with exponential backoff while upstream is unreachable; the
    previous snapshot keeps serving (marked stale once expired) meanwhile.

    Returns:
        dict: Snapshot status after the refresh
    """
    from payment_system.domain.services.currency_service import SOURCE_API, get_currency_service
    from payment_system.domain.services.exchange_rate_service import ExchangeRateService

    logger.info("[FX] Starting periodic exchange rate refresh")
    service = get_currency_service()
    snapshot = service.refresh()

    result = {"success": snapshot.source == SOURCE_API, **snapshot.as_dict()}

    if snapshot.source != SOURCE_API:
        logger.warning(f"[FX] Refresh did not reach upstream, still serving {snapshot.source} rates")
        try:
            raise self.retry(countdown=60 * (2**self.request.retries))
        except self.MaxRetriesExceededError:
            result["error"] = "Max retries exceeded: upstream rate source unavailable"
            return result

    if cleanup:
        deleted = ExchangeRateService.cleanup_old_rates(getattr(settings, "EXCHANGE_RATE_KEEP_DAYS", 7))
        result["deleted_count"] = deleted

    logger.info(f"[FX] Exchange rate refresh completed ({len(snapshot.rates)} currencies)")
    return result
