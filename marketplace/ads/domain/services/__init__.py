from .campaign_counter_service import CampaignCounterService
from .campaign_service import CampaignService


__all__ = [
    "CampaignCounterService",
    "CampaignService",
]
