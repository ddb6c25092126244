"""
Marketplace Service Layer

Shared service primitives plus the marketplace-side services used by checkout
and sponsored listings.

Services:
- OrderStore: Order persistence and the atomic sell transition
- CampaignCounterService: Atomic impression/click counters
- CampaignService: Ad campaign purchase and activation

Usage:
    from marketplace.services import CampaignService, service_ok, service_err

    result = CampaignService(gateway=container.payment_gateway()).purchase_campaign(product_id, seller, days=7)

    if result.ok:
        campaign = result.value
    else:
        error = result.error
"""

from .base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok

__all__ = [
    # Base classes
    "BaseService",
    "ServiceResult",
    # Helper functions
    "service_ok",
    "service_err",
    # Error codes
    "ErrorCodes",
]
