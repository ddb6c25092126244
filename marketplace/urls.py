from django.urls import path

from .ads.api import views as ads_views

app_name = "marketplace"

urlpatterns = [
    # Campaign purchase
    path("campaigns/", ads_views.purchase_campaign, name="purchase_campaign"),
    path("campaigns/confirm/", ads_views.confirm_campaign, name="confirm_campaign"),
    # Counters (anonymous browsing counts)
    path("campaigns/<uuid:campaign_id>/impression/", ads_views.record_impression, name="campaign_impression"),
    path("campaigns/<uuid:campaign_id>/click/", ads_views.record_click, name="campaign_click"),
]
