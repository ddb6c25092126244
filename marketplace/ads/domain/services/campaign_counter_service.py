"""
Campaign Counter Service

Impression and click counting for sponsored listings.

Every increment is evaluated by the database (SET impressions = impressions + 1),
so concurrent viewers never overwrite each other's counts. Counting is
best-effort telemetry: failures are logged and counted, never raised, and must
not delay the page showing the sponsored listing.
"""

import logging
from typing import Iterable

from django.db.models import F
from django.utils import timezone

from marketplace.ads.domain.models import AdCampaign
from marketplace.infra.observability.metrics import campaign_counter_failures_total

logger = logging.getLogger(__name__)


class CampaignCounterService:
    """
    Usage:
        counters = CampaignCounterService()
        counters.record_impression(campaign_id)
        counters.record_click(campaign_id)
    """

    def record_impression(self, campaign_id) -> bool:
        """Add one impression. Returns False if nothing was counted."""
        return self._increment(campaign_id, "impressions")

    def record_click(self, campaign_id) -> bool:
        """Add one click. Returns False if nothing was counted."""
        return self._increment(campaign_id, "clicks")

    def record_impressions(self, campaign_ids: Iterable) -> int:
        """
        Add one impression to each campaign shown on a results page.

        Duplicate ids in one call count once per occurrence.

        Returns:
            Number of increments applied
        """
        counted = 0
        for campaign_id in campaign_ids:
            if self.record_impression(campaign_id):
                counted += 1
        return counted

    def _increment(self, campaign_id, counter: str) -> bool:
        try:
            updated = AdCampaign.objects.filter(pk=campaign_id).update(
                **{counter: F(counter) + 1, "updated_at": timezone.now()}
            )
        except Exception as e:
            campaign_counter_failures_total.labels(counter=counter).inc()
            logger.warning(f"[ADS] Failed to record {counter} for campaign {campaign_id}: {e}")
            return False

        if not updated:
            campaign_counter_failures_total.labels(counter=counter).inc()
            logger.debug(f"[ADS] No campaign {campaign_id} to record {counter} for")
            return False
        return True
