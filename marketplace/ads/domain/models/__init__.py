from .campaign import AdCampaign


__all__ = [
    "AdCampaign",
]
